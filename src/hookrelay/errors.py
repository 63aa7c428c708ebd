class HookRelayError(Exception):
    """Base error for the relay."""


class MakerKeyMissing(HookRelayError):
    """Raised when an outbound trigger is attempted without a webhook key."""


class InvalidPort(HookRelayError):
    def __init__(self, value):
        super().__init__(f"Invalid port: {value}")
        self.value = value
