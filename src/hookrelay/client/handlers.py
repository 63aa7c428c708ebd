from typing import Callable, Optional, Protocol, Union, runtime_checkable


@runtime_checkable
class EventHandler(Protocol):
    """Receives events pulled from the relay."""

    def handle(self, identifier: str, payload: Optional[str]) -> None:
        ...


HandlerFunc = Callable[[str, Optional[str]], None]


class CallbackHandler:
    """Adapts a plain ``(identifier, payload)`` callable to EventHandler."""

    def __init__(self, func: HandlerFunc):
        self.func = func

    def handle(self, identifier: str, payload: Optional[str]) -> None:
        self.func(identifier, payload)

    def __repr__(self) -> str:
        return f"CallbackHandler({self.func!r})"


def as_handler(handler: Union[EventHandler, HandlerFunc, None]) -> Optional[EventHandler]:
    if handler is None or isinstance(handler, EventHandler):
        return handler
    if callable(handler):
        return CallbackHandler(handler)
    raise TypeError(f"Not an event handler: {handler!r}")
