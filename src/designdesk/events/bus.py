"""Event bus carrying assignment and queue changes to notification consumers."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from designdesk.events.types import Event, EventType

logger = logging.getLogger(__name__)


class EventBus:
    """Fan-out of events to subscribers.

    Supports both:
    - Queues for streaming consumers (optionally filtered to one user)
    - Callbacks for in-process handlers such as email notifiers
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, tuple[asyncio.Queue[Event], str | None]] = {}
        self._callbacks: list[Callable[[Event], Any]] = []
        self._lock = asyncio.Lock()

    async def subscribe(self, subscriber_id: str, user_id: str | None = None) -> asyncio.Queue[Event]:
        """Subscribe to events and return a queue to receive them.

        Args:
            subscriber_id: Unique ID for this subscriber
            user_id: Only deliver events addressed to this user, plus
                broadcasts (None = all events)

        Returns:
            Queue that will receive events
        """
        async with self._lock:
            queue: asyncio.Queue[Event] = asyncio.Queue()
            self._subscribers[subscriber_id] = (queue, user_id)
            logger.debug(f"Subscriber {subscriber_id} connected (user: {user_id or 'all'})")
            return queue

    async def unsubscribe(self, subscriber_id: str) -> None:
        """Unsubscribe from events."""
        async with self._lock:
            if subscriber_id in self._subscribers:
                del self._subscribers[subscriber_id]
                logger.debug(f"Subscriber {subscriber_id} disconnected")

    def add_callback(self, callback: Callable[[Event], Any]) -> None:
        """Add a callback to be called for every event."""
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[Event], Any]) -> None:
        """Remove a callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    async def publish(self, event: Event) -> None:
        """Publish an event to matching subscribers and all callbacks.

        Delivery failures are logged and do not reach the publisher.
        """
        logger.debug(f"Publishing event: {event.type.value}")

        async with self._lock:
            for subscriber_id, (queue, user_id) in list(self._subscribers.items()):
                if user_id and event.recipients and user_id not in event.recipients:
                    continue
                try:
                    await queue.put(event)
                except Exception as e:
                    logger.error(f"Failed to send event to {subscriber_id}: {e}")

        for callback in self._callbacks:
            try:
                result = callback(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Callback error: {e}")

    async def emit(
        self,
        event_type: EventType,
        data: dict[str, Any] | None = None,
        recipients: list[str] | None = None,
    ) -> Event:
        """Convenience method to create and publish an event."""
        event = Event(type=event_type, data=data or {}, recipients=recipients or [])
        await self.publish(event)
        return event

    @property
    def subscriber_count(self) -> int:
        """Get the number of active subscribers."""
        return len(self._subscribers)


# Global event bus instance
event_bus = EventBus()
