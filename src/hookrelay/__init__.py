"""In-memory webhook-to-poll relay."""
from hookrelay.client import Poller
from hookrelay.main import create_app
from hookrelay.models import Broker, Event

__all__ = ["Broker", "Event", "Poller", "create_app"]
__version__ = "0.1.0"
