"""Automatic assignment of new requests to executors.

A single deterministic pass over a snapshot of the roster and the request
set:

- Candidates are active, available executors of the preferred role (or of
  any role when none is requested) that have free capacity and are allowed
  to do the request's design type.
- Express requests go to the highest-ranked tier; everything else goes to
  the executor with the lowest share of their capacity in use.
- Ties fall to the lower current load, then the lower executor ID.

Finding nobody is a normal outcome: the request stays pending and waits for
the next sweep.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from designdesk.domain import DesignRequest, Executor, RequestStatus, Urgency
from designdesk.domain.executor import (
    can_execute_type,
    compute_stats,
    has_capacity,
    is_eligible,
    load_map,
    load_percentage,
    validate_capacity,
)
from designdesk.domain.models import utc_now
from designdesk.exceptions import AssignmentError, QueueInputError
from designdesk.queue.ranking import resolve_executor_role

logger = logging.getLogger(__name__)


class UnassignedReason(str, Enum):
    """Why no executor could take a request."""

    EMPTY_ROSTER = "empty_roster"
    NO_ROLE_MATCH = "no_role_match"
    UNAVAILABLE = "unavailable"
    NO_CAPACITY = "no_capacity"
    NO_TYPE_MATCH = "no_type_match"


@dataclass
class Candidate:
    """An eligible executor and the load it currently carries."""

    executor: Executor
    load: int

    @property
    def load_percentage(self) -> float:
        return load_percentage(self.executor, self.load)


@dataclass
class AssignmentResult:
    """Outcome of an assignment attempt."""

    request: DesignRequest
    executor: Executor | None = None
    reason: UnassignedReason | None = None
    candidate_count: int = 0

    @property
    def assigned(self) -> bool:
        return self.executor is not None


def candidate_pool(
    request: DesignRequest,
    roster: Sequence[Executor],
    loads: dict[str, int],
) -> tuple[list[Candidate], UnassignedReason | None]:
    """Filter the roster down to executors eligible for the request.

    Returns the candidates and, when there are none, the filter that
    eliminated the last of them.
    """
    if not roster:
        return [], UnassignedReason.EMPTY_ROSTER

    preferred_role = resolve_executor_role(request.preferred_executor_role)
    pool = [
        e for e in roster
        if e.is_active and (preferred_role is None or e.role == preferred_role)
    ]
    if not pool:
        return [], UnassignedReason.NO_ROLE_MATCH

    eligible = [e for e in pool if is_eligible(e, request.design_type, loads.get(e.id, 0))]
    if eligible:
        return [Candidate(executor=e, load=loads.get(e.id, 0)) for e in eligible], None
    return [], _rejection_reason(pool, loads)


def _rejection_reason(
    pool: Sequence[Executor],
    loads: dict[str, int],
) -> UnassignedReason:
    # Replays the eligibility checks in order to name the one that emptied the pool
    pool = [e for e in pool if e.available]
    if not pool:
        return UnassignedReason.UNAVAILABLE
    pool = [e for e in pool if has_capacity(e, loads.get(e.id, 0))]
    if not pool:
        return UnassignedReason.NO_CAPACITY
    return UnassignedReason.NO_TYPE_MATCH


def select_candidate(request: DesignRequest, candidates: Sequence[Candidate]) -> Candidate | None:
    """Pick the winning candidate according to the request's urgency."""
    if not candidates:
        return None

    if request.urgency == Urgency.EXPRESS:
        return min(candidates, key=lambda c: (c.executor.priority, c.load, c.executor.id))

    return min(candidates, key=lambda c: (c.load_percentage, c.load, c.executor.id))


def try_assign(
    request: DesignRequest,
    roster: Sequence[Executor],
    requests: Iterable[DesignRequest],
    now: datetime | None = None,
) -> AssignmentResult:
    """Try to hand a pending request to the best eligible executor.

    Args:
        request: The pending, unassigned request.
        roster: Snapshot of all executors.
        requests: Snapshot of the request set; executor load is derived from it.
        now: Assignment timestamp (defaults to the current time).

    Returns:
        The result. On success the request is moved to in-process with the
        executor stamped on it, and the executor's stats are refreshed.
    """
    if request is None:
        raise QueueInputError("Request is required for assignment")
    if roster is None:
        raise QueueInputError("Executor roster is required for assignment")
    if requests is None:
        raise QueueInputError("Request set is required to derive executor load")

    if request.assigned_to:
        raise AssignmentError(f"Request {request.id} is already assigned to {request.assigned_to}")
    if request.status != RequestStatus.PENDING:
        raise AssignmentError(
            f"Request {request.id} is {request.status.value}; only pending requests can be assigned"
        )

    for executor in roster:
        validate_capacity(executor)

    snapshot = [r for r in requests if r.id != request.id]
    loads = load_map(snapshot)

    candidates, reason = candidate_pool(request, roster, loads)
    chosen = select_candidate(request, candidates)
    if chosen is None:
        logger.info(f"Request {request.id} left pending: {reason.value if reason else 'no candidate'}")
        return AssignmentResult(request=request, reason=reason)

    now = now or utc_now()
    request.status = RequestStatus.IN_PROCESS
    request.assigned_to = chosen.executor.id
    request.assigned_at = now
    request.updated_at = now

    snapshot.append(request)
    chosen.executor.stats = compute_stats(chosen.executor.id, snapshot)

    logger.info(
        f"Assigned request {request.id} ({request.urgency.value}) to executor "
        f"{chosen.executor.id} [{chosen.executor.role.value}] "
        f"load {chosen.executor.stats.current_load}/{chosen.executor.capacity}"
    )
    return AssignmentResult(
        request=request,
        executor=chosen.executor,
        candidate_count=len(candidates),
    )


def check_manual_assignment(
    request: DesignRequest,
    executor: Executor,
    requests: Iterable[DesignRequest],
) -> None:
    """Raise AssignmentError unless the executor may take this request now."""
    validate_capacity(executor)
    if not request.is_active:
        raise AssignmentError(f"Request {request.id} is {request.status.value}")
    if not executor.is_active or not executor.available:
        raise AssignmentError(f"Executor {executor.id} is not available")

    load = load_map(r for r in requests if r.id != request.id).get(executor.id, 0)
    if not has_capacity(executor, load):
        raise AssignmentError(
            f"Executor {executor.id} is at capacity ({load}/{executor.capacity})"
        )
    if not can_execute_type(executor, request.design_type):
        raise AssignmentError(
            f"Executor {executor.id} does not handle design type '{request.design_type}'"
        )
