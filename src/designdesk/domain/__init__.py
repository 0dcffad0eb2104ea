"""Domain models for Designdesk."""

from designdesk.domain.enums import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    ExecutorRole,
    QueueStage,
    RequestStatus,
    Specialty,
    UnavailableReason,
    Urgency,
)
from designdesk.domain.models import (
    WILDCARD_DESIGN_TYPE,
    DesignRequest,
    Executor,
    ExecutorStats,
    QueueEntry,
    QueueScope,
)

__all__ = [
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "WILDCARD_DESIGN_TYPE",
    "ExecutorRole",
    "QueueStage",
    "RequestStatus",
    "Specialty",
    "UnavailableReason",
    "Urgency",
    "DesignRequest",
    "Executor",
    "ExecutorStats",
    "QueueEntry",
    "QueueScope",
]
