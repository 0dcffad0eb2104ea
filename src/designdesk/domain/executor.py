"""Capacity and eligibility predicates for executors.

These are pure functions: the executor's load is always derived from the
request set handed in by the caller, never read from stored counters.
"""

from collections.abc import Iterable

from designdesk.domain.enums import RequestStatus
from designdesk.domain.models import (
    WILDCARD_DESIGN_TYPE,
    DesignRequest,
    Executor,
    ExecutorStats,
)
from designdesk.exceptions import InvalidExecutorError

SECONDS_PER_DAY = 60 * 60 * 24


def validate_capacity(executor: Executor) -> None:
    """Raise if the executor's capacity cannot take any work at all."""
    if executor.capacity <= 0:
        raise InvalidExecutorError(
            f"Executor {executor.id} has non-positive capacity ({executor.capacity})"
        )


def current_load(executor_id: str, requests: Iterable[DesignRequest]) -> int:
    """Count the active requests assigned to an executor."""
    return sum(1 for r in requests if r.assigned_to == executor_id and r.is_active)


def load_map(requests: Iterable[DesignRequest]) -> dict[str, int]:
    """Count active requests per assignee in a single pass."""
    loads: dict[str, int] = {}
    for request in requests:
        if request.assigned_to and request.is_active:
            loads[request.assigned_to] = loads.get(request.assigned_to, 0) + 1
    return loads


def load_percentage(executor: Executor, load: int) -> float:
    """Share of capacity in use, as a fraction (0.5 = half full)."""
    validate_capacity(executor)
    return load / executor.capacity


def has_capacity(executor: Executor, load: int) -> bool:
    """Whether the executor can take one more request."""
    return load < executor.capacity


def can_execute_type(executor: Executor, design_type: str) -> bool:
    """Whether the executor is allowed to work on this design type."""
    allowed = executor.allowed_design_types
    return WILDCARD_DESIGN_TYPE in allowed or design_type in allowed


def is_eligible(executor: Executor, design_type: str, load: int) -> bool:
    """Available, below capacity, and allowed to do the design type."""
    return (
        executor.available
        and has_capacity(executor, load)
        and can_execute_type(executor, design_type)
    )


def compute_stats(executor_id: str, requests: Iterable[DesignRequest]) -> ExecutorStats:
    """Recompute an executor's statistics from scratch.

    Requests without a delivery date count as delivered on time.
    """
    requests = list(requests)
    completed = [
        r for r in requests
        if r.assigned_to == executor_id and r.status == RequestStatus.COMPLETED
    ]

    stats = ExecutorStats(current_load=current_load(executor_id, requests))
    if not completed:
        return stats

    total_days = 0.0
    on_time = 0
    for request in completed:
        finished = request.completed_at or request.updated_at
        total_days += (finished - request.created_at).total_seconds() / SECONDS_PER_DAY
        if request.delivery_date is None or finished <= request.delivery_date:
            on_time += 1

    stats.total_completed = len(completed)
    stats.average_completion_days = total_days / len(completed)
    stats.on_time_delivery_rate = (on_time / len(completed)) * 100
    return stats
