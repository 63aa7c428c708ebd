from .models import Broker, Clock, CursorTable, Event, EventBuffer, UNSEEN

__all__ = ["Broker", "Clock", "CursorTable", "Event", "EventBuffer", "UNSEEN"]
