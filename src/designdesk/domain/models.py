"""Core domain models for Designdesk.

- DesignRequest: a unit of design work submitted by a requester
- Executor: a person who completes requests, ranked by role tier
- QueueEntry: the derived position of an active request in its scope group
"""

import random
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from designdesk.domain.enums import (
    ACTIVE_STATUSES,
    ExecutorRole,
    QueueStage,
    RequestStatus,
    Specialty,
    UnavailableReason,
    Urgency,
)

WILDCARD_DESIGN_TYPE = "all"

# Role defaults (tier 1 = served first)
ROLE_CAPACITY = {
    ExecutorRole.GERENTE: 15,
    ExecutorRole.DISENADOR: 8,
    ExecutorRole.PRACTICANTE: 5,
}

ROLE_PRIORITY = {
    ExecutorRole.GERENTE: 1,
    ExecutorRole.DISENADOR: 2,
    ExecutorRole.PRACTICANTE: 3,
}

ROLE_ALLOWED_DESIGN_TYPES = {
    ExecutorRole.GERENTE: [WILDCARD_DESIGN_TYPE],
    ExecutorRole.DISENADOR: ["redes", "pieza_impresa", "presentacion", "video", "banner"],
    ExecutorRole.PRACTICANTE: ["redes", "pieza_impresa"],
}


def utc_now() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def generate_request_id() -> str:
    """Generate a request ID (req-xxxxxxxx)."""
    return f"req-{uuid4().hex[:8]}"


def generate_request_number(now: datetime | None = None) -> str:
    """Generate a human-facing request number (REQ-YYYYMMDD-NNNN)."""
    now = now or utc_now()
    return f"REQ-{now.strftime('%Y%m%d')}-{random.randint(1000, 9999)}"


class DesignRequest(BaseModel):
    """A design work item waiting for, or being handled by, an executor."""

    id: str = Field(default_factory=generate_request_id)
    request_number: str = Field(default_factory=generate_request_number)
    requester_id: str
    title: str
    description: str | None = None

    # Scope
    area: str | None = None  # Department that asked for the work
    design_type: str
    preferred_executor_role: str | None = None  # Raw value, normalized when ranked

    urgency: Urgency = Urgency.NORMAL
    status: RequestStatus = RequestStatus.PENDING

    delivery_date: datetime | None = None
    queued_at: datetime | None = Field(default_factory=utc_now)

    # Assignment (assigned_at is stamped together with assigned_to)
    assigned_to: str | None = None
    assigned_at: datetime | None = None
    completed_at: datetime | None = None

    # Cached position, recomputed on every query
    queue_position: int | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator(
        "delivery_date", "queued_at", "assigned_at", "completed_at", "created_at", "updated_at"
    )
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def is_active(self) -> bool:
        """Whether the request still counts toward queues and load."""
        return self.status in ACTIVE_STATUSES


class ExecutorStats(BaseModel):
    """Statistics derived from the requests an executor has handled."""

    total_completed: int = 0
    average_completion_days: float = 0.0
    on_time_delivery_rate: float = 100.0  # Percentage
    current_load: int = 0


class Executor(BaseModel):
    """A person who completes design requests.

    Capacity, priority tier and allowed design types default from the role
    when they are not given explicitly.
    """

    id: str = Field(default_factory=lambda: f"exec-{uuid4().hex[:8]}")
    name: str
    email: str | None = None
    role: ExecutorRole
    capacity: int
    priority: int
    allowed_design_types: list[str]
    specialties: list[Specialty] = Field(default_factory=list)

    # Availability
    available: bool = True
    unavailable_reason: UnavailableReason | None = None
    unavailable_until: datetime | None = None
    is_active: bool = True

    stats: ExecutorStats = Field(default_factory=ExecutorStats)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="before")
    @classmethod
    def _apply_role_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("role") is None:
            return data

        try:
            role = ExecutorRole(data["role"])
        except ValueError:
            return data  # Field validation reports the bad role

        data = dict(data)
        if data.get("capacity") is None:
            data["capacity"] = ROLE_CAPACITY[role]
        if data.get("priority") is None:
            data["priority"] = ROLE_PRIORITY[role]
        if data.get("allowed_design_types") is None:
            data["allowed_design_types"] = list(ROLE_ALLOWED_DESIGN_TYPES[role])
        return data


class QueueScope(BaseModel):
    """Department and executor type a request is queued under."""

    department: str
    executor_type: ExecutorRole


class QueueEntry(BaseModel):
    """Ranked position of one active request within its scope group."""

    ticket_id: str
    stage: QueueStage
    scope: QueueScope
    position: int
    total: int
    ahead: int
    urgency: Urgency
    queue_timestamp: datetime | None = None
