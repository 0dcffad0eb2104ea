"""Queue ranking for active design requests.

Active requests are split into groups by (stage, department, executor type)
and each group is ordered independently:

1. Urgency, express first
2. Time the request entered its stage (queued_at while pending,
   assigned_at once assigned)
3. Creation time
4. Request ID, so no two requests ever tie

Everything here is a pure function of the request set passed in. Positions
stored on requests are caches; these functions are the source of truth.
"""

import math
import unicodedata
from collections import defaultdict
from collections.abc import Iterable
from datetime import UTC, datetime

from pydantic import BaseModel, Field, computed_field

from designdesk.domain import (
    DesignRequest,
    ExecutorRole,
    QueueEntry,
    QueueScope,
    QueueStage,
    Urgency,
)
from designdesk.exceptions import QueueInputError

URGENCY_WEIGHT = {
    Urgency.EXPRESS: 3,
    Urgency.URGENT: 2,
    Urgency.NORMAL: 1,
}

DEFAULT_AREA = "Sin área"
DEFAULT_EXECUTOR_TYPE = ExecutorRole.DISENADOR

EXECUTOR_TYPE_ALIASES = {
    "manager": ExecutorRole.GERENTE.value,
    "designer": ExecutorRole.DISENADOR.value,
    "disenador": ExecutorRole.DISENADOR.value,
}

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 200

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class QueuedRequest(BaseModel):
    """A request together with its current queue entry (None if inactive)."""

    request: DesignRequest
    queue_info: QueueEntry | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def queue_position(self) -> int | None:
        return self.queue_info.position if self.queue_info else None


class UserQueue(BaseModel):
    """Active requests a user is involved in, split by their role in each."""

    as_requester: list[QueuedRequest] = Field(default_factory=list)
    as_executor: list[QueuedRequest] = Field(default_factory=list)


class QueueFilters(BaseModel):
    """Filters applied to a scoped queue view (None = not filtered)."""

    department: str | None = None
    executor_type: str | None = None
    stage: QueueStage | None = None


class Pagination(BaseModel):
    """Page metadata for a scoped queue view."""

    page: int
    limit: int
    total: int
    pages: int


class ScopedQueuePage(BaseModel):
    """One page of the administrator queue view."""

    filters: QueueFilters
    pagination: Pagination
    queue: list[QueuedRequest]


def resolve_executor_role(value: str | ExecutorRole | None) -> ExecutorRole | None:
    """Map a raw executor-type value to a role, or None if unrecognised."""
    if isinstance(value, ExecutorRole):
        return value
    normalized = str(value or "").strip().lower()
    normalized = EXECUTOR_TYPE_ALIASES.get(normalized, normalized)
    try:
        return ExecutorRole(normalized)
    except ValueError:
        return None


def normalize_executor_type(value: str | ExecutorRole | None) -> ExecutorRole:
    """Resolve an executor type, falling back to the most general one."""
    return resolve_executor_role(value) or DEFAULT_EXECUTOR_TYPE


def normalize_area(value: str | None) -> str:
    """Resolve a department, bucketing missing ones together."""
    area = str(value or "").strip()
    return area or DEFAULT_AREA


def queue_stage(request: DesignRequest) -> QueueStage:
    """Assigned requests wait in a separate queue from unassigned ones."""
    return QueueStage.ASSIGNED if request.assigned_to else QueueStage.PENDING


def queue_timestamp(request: DesignRequest) -> datetime | None:
    """Time the request entered its current stage."""
    if queue_stage(request) == QueueStage.ASSIGNED:
        return request.assigned_at or request.updated_at or request.created_at
    return request.queued_at or request.created_at


def queue_scope(request: DesignRequest) -> QueueScope:
    return QueueScope(
        department=normalize_area(request.area),
        executor_type=normalize_executor_type(request.preferred_executor_role),
    )


def group_key(request: DesignRequest) -> tuple[QueueStage, str, ExecutorRole]:
    scope = queue_scope(request)
    return (queue_stage(request), scope.department, scope.executor_type)


def _as_utc(value: datetime | None) -> datetime:
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def queue_sort_key(request: DesignRequest) -> tuple[int, datetime, datetime, str]:
    """Sort key implementing the queue order (ascending = served first)."""
    return (
        -URGENCY_WEIGHT.get(request.urgency, 1),
        _as_utc(queue_timestamp(request)),
        _as_utc(request.created_at),
        request.id,
    )


def rank_queue(requests: Iterable[DesignRequest]) -> dict[str, QueueEntry]:
    """Compute the queue entry of every active request, keyed by request ID.

    Inactive requests in the input are ignored; an empty or all-terminal
    input gives an empty mapping.
    """
    if requests is None:
        raise QueueInputError("Request set is required for ranking")

    groups: dict[tuple[QueueStage, str, ExecutorRole], list[DesignRequest]] = defaultdict(list)
    for request in requests:
        if request.is_active and request.id:
            groups[group_key(request)].append(request)

    index: dict[str, QueueEntry] = {}
    for (stage, department, executor_type), members in groups.items():
        ordered = sorted(members, key=queue_sort_key)
        total = len(ordered)
        scope = QueueScope(department=department, executor_type=executor_type)

        for position, request in enumerate(ordered, start=1):
            index[request.id] = QueueEntry(
                ticket_id=request.id,
                stage=stage,
                scope=scope,
                position=position,
                total=total,
                ahead=position - 1,
                urgency=request.urgency,
                queue_timestamp=queue_timestamp(request),
            )

    return index


def attach_queue_info(
    requests: Iterable[DesignRequest],
    all_requests: Iterable[DesignRequest] | None = None,
) -> list[QueuedRequest]:
    """Pair each request with its entry, ranked against all_requests."""
    requests = list(requests)
    index = rank_queue(requests if all_requests is None else all_requests)
    return [QueuedRequest(request=r, queue_info=index.get(r.id)) for r in requests]


def get_queue_entry(
    request: DesignRequest,
    active_requests: Iterable[DesignRequest],
) -> QueueEntry | None:
    """Position of a single ticket, or None if it is not in an active queue."""
    if request is None:
        raise QueueInputError("Request is required for a position lookup")
    if not request.is_active:
        return None

    pool = [r for r in active_requests if r.id != request.id]
    pool.append(request)
    return rank_queue(pool).get(request.id)


def user_queue(user_id: str, active_requests: Iterable[DesignRequest]) -> UserQueue:
    """Active requests where the user is the requester or the assignee."""
    active_requests = list(active_requests)
    related = [
        r for r in active_requests
        if r.requester_id == user_id or r.assigned_to == user_id
    ]
    enriched = attach_queue_info(related, active_requests)

    return UserQueue(
        as_requester=[q for q in enriched if q.request.requester_id == user_id],
        as_executor=[q for q in enriched if q.request.assigned_to == user_id],
    )


def _collation_key(value: str) -> str:
    # Accent-insensitive, case-insensitive ordering for department names
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


def _scope_sort_key(info: QueueEntry) -> tuple[str, str, str, int]:
    scope = f"{info.scope.department}|{info.scope.executor_type.value}"
    return (info.stage.value, _collation_key(scope), scope, info.position)


def scoped_queue(
    active_requests: Iterable[DesignRequest],
    department: str | None = None,
    executor_type: str | None = None,
    stage: str | None = None,
    page: int | None = 1,
    limit: int | None = DEFAULT_PAGE_SIZE,
    max_limit: int = MAX_PAGE_SIZE,
) -> ScopedQueuePage:
    """Administrator view of the queue: filter, order by scope, paginate.

    Unknown stage values are ignored rather than rejected. Page is at least 1
    and limit is clamped to 1..max_limit.
    """
    department_filter = (department or "").strip() or None
    executor_filter = (executor_type or "").strip().lower() or None
    stage_filter = None
    if stage and stage.strip().lower() in {s.value for s in QueueStage}:
        stage_filter = QueueStage(stage.strip().lower())

    page = max(page or 1, 1)
    limit = min(max(limit or DEFAULT_PAGE_SIZE, 1), max_limit)

    active_requests = list(active_requests)
    items = [q for q in attach_queue_info(active_requests) if q.queue_info is not None]

    if department_filter:
        items = [q for q in items if q.queue_info.scope.department == department_filter]
    if executor_filter:
        items = [q for q in items if q.queue_info.scope.executor_type.value == executor_filter]
    if stage_filter:
        items = [q for q in items if q.queue_info.stage == stage_filter]

    items.sort(key=lambda q: _scope_sort_key(q.queue_info))

    total = len(items)
    start = (page - 1) * limit

    return ScopedQueuePage(
        filters=QueueFilters(
            department=department_filter,
            executor_type=executor_filter,
            stage=stage_filter,
        ),
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=max(math.ceil(total / limit), 1),
        ),
        queue=items[start:start + limit],
    )
