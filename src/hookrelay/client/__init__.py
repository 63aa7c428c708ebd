from .handlers import CallbackHandler, EventHandler, as_handler
from .poller import Poller, Subscription

__all__ = ["CallbackHandler", "EventHandler", "Poller", "Subscription", "as_handler"]
