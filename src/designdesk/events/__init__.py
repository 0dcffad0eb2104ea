"""Event system for notifying consumers of queue and assignment changes."""

from designdesk.events.bus import EventBus, event_bus
from designdesk.events.types import Event, EventType

__all__ = ["Event", "EventBus", "EventType", "event_bus"]
