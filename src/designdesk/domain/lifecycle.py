"""Request status transitions."""

from datetime import datetime

from designdesk.domain.enums import RequestStatus
from designdesk.domain.models import DesignRequest, utc_now
from designdesk.exceptions import InvalidTransitionError

# Status advances in-process -> review -> completed, or diverts to rejected.
# Review may bounce back to in-process for another round of changes.
ALLOWED_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.IN_PROCESS, RequestStatus.REJECTED}),
    RequestStatus.IN_PROCESS: frozenset({RequestStatus.REVIEW, RequestStatus.REJECTED}),
    RequestStatus.REVIEW: frozenset(
        {RequestStatus.COMPLETED, RequestStatus.IN_PROCESS, RequestStatus.REJECTED}
    ),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.REJECTED: frozenset(),
}


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    """Check whether a request may move from one status to another."""
    return target in ALLOWED_TRANSITIONS[current]


def apply_status(
    request: DesignRequest,
    target: RequestStatus,
    now: datetime | None = None,
) -> DesignRequest:
    """Move a request to a new status, stamping completion time.

    Work cannot start without an executor, so pending -> in-process is only
    allowed once the request has been assigned.
    """
    if not can_transition(request.status, target):
        raise InvalidTransitionError(request.status.value, target.value)
    if target == RequestStatus.IN_PROCESS and not request.assigned_to:
        raise InvalidTransitionError(request.status.value, target.value)

    now = now or utc_now()
    request.status = target
    request.updated_at = now
    if target == RequestStatus.COMPLETED:
        request.completed_at = now
    return request
