"""Event type definitions for the event bus."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Types of events that can be broadcast."""

    # Request events
    REQUEST_CREATED = "request.created"
    REQUEST_ASSIGNED = "request.assigned"
    REQUEST_QUEUED = "request.queued"
    REQUEST_STATUS_CHANGED = "request.status_changed"

    # Executor events
    EXECUTOR_CREATED = "executor.created"
    EXECUTOR_UPDATED = "executor.updated"

    # Queue events
    QUEUE_UPDATED = "queue.updated"


class Event(BaseModel):
    """A broadcast event."""

    id: str = Field(default_factory=lambda: uuid4().hex[:12])
    type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    data: dict[str, Any] = Field(default_factory=dict)
    recipients: list[str] = Field(default_factory=list)  # User IDs to notify

    def to_json(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
            "recipients": self.recipients,
        }
