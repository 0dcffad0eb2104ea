"""Queue manager for request admission, assignment and lifecycle."""

import asyncio
import logging
from typing import Any

import aiosqlite

from designdesk.config import Settings, get_settings
from designdesk.db import Database, ExecutorRepository, RequestRepository
from designdesk.domain import (
    DesignRequest,
    Executor,
    QueueEntry,
    RequestStatus,
)
from designdesk.domain.executor import compute_stats, has_capacity, load_map
from designdesk.domain.lifecycle import apply_status
from designdesk.domain.models import generate_request_number, utc_now
from designdesk.events import EventBus, EventType
from designdesk.exceptions import ExecutorNotFoundError, RequestNotFoundError
from designdesk.queue.assignment import AssignmentResult, check_manual_assignment, try_assign
from designdesk.queue.hours import is_business_hours
from designdesk.queue.ranking import (
    ScopedQueuePage,
    UserQueue,
    get_queue_entry,
    queue_sort_key,
    scoped_queue,
    user_queue,
)

logger = logging.getLogger(__name__)

# Request numbers carry a random suffix; retry on the rare same-day clash
REQUEST_NUMBER_ATTEMPTS = 5


class QueueManager:
    """Manages request admission and executor assignments.

    Responsibilities:
    - Admit new requests and try to assign them immediately
    - Sweep the pending queue for requests that can now be assigned
    - Apply status changes and keep executor statistics fresh
    - Answer queue position queries

    Every check-then-assign sequence runs under the database's write lock,
    so two requests admitted at the same time cannot both take an
    executor's last free slot.
    """

    def __init__(
        self,
        db: Database,
        events: EventBus | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.events = events
        self.settings = settings or get_settings()
        self.request_repo = RequestRepository(db)
        self.executor_repo = ExecutorRepository(db)
        self._running = False

    async def start(self) -> None:
        """Start the pending-queue sweep loop."""
        self._running = True
        logger.info(f"Queue manager started (sweep every {self.settings.poll_interval}s)")

        while self._running:
            try:
                await self.assign_pending()
            except Exception as e:
                logger.error(f"Queue sweep error: {e}")

            await asyncio.sleep(self.settings.poll_interval)

    async def stop(self) -> None:
        """Stop the sweep loop."""
        self._running = False
        logger.info("Queue manager stopped")

    async def create_request(self, request: DesignRequest) -> AssignmentResult:
        """Admit a new request, assigning it right away when possible."""
        request.queued_at = request.queued_at or utc_now()

        async with self.db.write_lock:
            await self._insert_request(request)
            logger.info(f"Request {request.id} ({request.request_number}) admitted")

            if self.settings.auto_assign:
                roster = await self.executor_repo.roster()
                active = await self.request_repo.list_active()
                result = try_assign(request, roster, active)
                if result.assigned:
                    await self._persist_assignment(request, result.executor)
            else:
                result = AssignmentResult(request=request)

            await self._cache_position(request)

        await self._emit(
            EventType.REQUEST_CREATED,
            {"request_id": request.id, "request_number": request.request_number},
        )
        if result.assigned:
            await self._emit_assigned(request, result.executor)
        else:
            await self._emit(
                EventType.REQUEST_QUEUED,
                {
                    "request_id": request.id,
                    "queue_position": request.queue_position,
                    "reason": result.reason.value if result.reason else None,
                },
                recipients=[request.requester_id],
            )
        await self._emit(EventType.QUEUE_UPDATED)
        return result

    async def assign_pending(self) -> int:
        """Sweep pending requests in queue order and assign what fits.

        Returns the number of requests assigned.
        """
        assigned: list[tuple[DesignRequest, Executor]] = []

        async with self.db.write_lock:
            active = await self.request_repo.list_active()
            pending = sorted(
                (r for r in active if r.status == RequestStatus.PENDING and not r.assigned_to),
                key=queue_sort_key,
            )
            if not pending:
                return 0

            roster = await self.executor_repo.roster()
            logger.debug(f"Sweeping {len(pending)} pending requests against {len(roster)} executors")

            # Requests are mutated in place, so later iterations see earlier loads
            for request in pending:
                result = try_assign(request, roster, active)
                if result.assigned:
                    await self._persist_assignment(request, result.executor)
                    assigned.append((request, result.executor))

        for request, executor in assigned:
            await self._emit_assigned(request, executor)
        if assigned:
            await self._emit(EventType.QUEUE_UPDATED)
            logger.info(f"Pending sweep assigned {len(assigned)} requests")
        return len(assigned)

    async def assign_manually(self, request_id: str, executor_id: str) -> DesignRequest:
        """Assign (or reassign) a request to a specific executor."""
        async with self.db.write_lock:
            request = await self._get_request(request_id)
            executor = await self.executor_repo.get(executor_id)
            if not executor:
                raise ExecutorNotFoundError(f"Executor {executor_id} not found")

            active = await self.request_repo.list_active()
            check_manual_assignment(request, executor, active)

            previous = request.assigned_to
            now = utc_now()
            request.assigned_to = executor.id
            request.assigned_at = now
            request.updated_at = now
            if request.status == RequestStatus.PENDING:
                request.status = RequestStatus.IN_PROCESS

            await self._persist_assignment(request, executor)
            if previous and previous != executor.id:
                await self.refresh_executor_stats(previous)

        logger.info(f"Request {request_id} manually assigned to {executor_id}")
        await self._emit_assigned(request, executor)
        await self._emit(EventType.QUEUE_UPDATED)
        return request

    async def update_status(self, request_id: str, status: RequestStatus) -> DesignRequest:
        """Move a request through its lifecycle."""
        async with self.db.write_lock:
            request = await self._get_request(request_id)
            previous = request.status
            apply_status(request, status)
            await self.request_repo.update(request)

            if request.assigned_to:
                await self.refresh_executor_stats(request.assigned_to)

        logger.info(f"Request {request_id} moved from {previous.value} to {status.value}")
        await self._emit(
            EventType.REQUEST_STATUS_CHANGED,
            {"request_id": request.id, "from": previous.value, "to": status.value},
            recipients=[r for r in (request.requester_id, request.assigned_to) if r],
        )
        if not request.is_active:
            await self._emit(EventType.QUEUE_UPDATED)
        return request

    async def refresh_executor_stats(self, executor_id: str) -> Executor:
        """Recompute an executor's statistics from every request they handled."""
        executor = await self.executor_repo.get(executor_id)
        if not executor:
            raise ExecutorNotFoundError(f"Executor {executor_id} not found")

        history = await self.request_repo.list_for_executor(executor_id)
        executor.stats = compute_stats(executor_id, history)
        await self.executor_repo.update(executor)
        return executor

    async def get_position(self, request_id: str) -> QueueEntry | None:
        """Queue entry for a ticket, or None if it has left the active queue."""
        request = await self._get_request(request_id)
        if not request.is_active:
            return None
        active = await self.request_repo.list_active()
        return get_queue_entry(request, active)

    async def get_user_queue(self, user_id: str) -> UserQueue:
        """Active requests the user asked for or is working on."""
        active = await self.request_repo.list_active()
        return user_queue(user_id, active)

    async def get_scoped_queue(
        self,
        department: str | None = None,
        executor_type: str | None = None,
        stage: str | None = None,
        page: int | None = 1,
        limit: int | None = None,
    ) -> ScopedQueuePage:
        """Administrator view of the full queue."""
        active = await self.request_repo.list_active()
        return scoped_queue(
            active,
            department=department,
            executor_type=executor_type,
            stage=stage,
            page=page,
            limit=limit or self.settings.queue_page_size,
            max_limit=self.settings.queue_max_page_size,
        )

    async def get_queue_stats(self) -> dict[str, Any]:
        """Get current queue statistics."""
        by_status = await self.request_repo.count_by_status()
        active = await self.request_repo.list_active()
        roster = await self.executor_repo.roster()
        loads = load_map(active)

        active_executors = [e for e in roster if e.is_active]
        available = [e for e in active_executors if e.available]
        at_capacity = [e for e in available if not has_capacity(e, loads.get(e.id, 0))]

        return {
            "pending_requests": by_status.get(RequestStatus.PENDING.value, 0),
            "in_process_requests": by_status.get(RequestStatus.IN_PROCESS.value, 0),
            "review_requests": by_status.get(RequestStatus.REVIEW.value, 0),
            "completed_requests": by_status.get(RequestStatus.COMPLETED.value, 0),
            "rejected_requests": by_status.get(RequestStatus.REJECTED.value, 0),
            "unassigned_requests": sum(1 for r in active if not r.assigned_to),
            "active_executors": len(active_executors),
            "available_executors": len(available),
            "executors_at_capacity": len(at_capacity),
            "business_hours": is_business_hours(),
        }

    async def _insert_request(self, request: DesignRequest) -> None:
        for attempt in range(1, REQUEST_NUMBER_ATTEMPTS + 1):
            try:
                await self.request_repo.create(request)
                return
            except aiosqlite.IntegrityError:
                if attempt == REQUEST_NUMBER_ATTEMPTS:
                    raise
                logger.debug(f"Request number {request.request_number} taken, regenerating")
                request.request_number = generate_request_number()

    async def _get_request(self, request_id: str) -> DesignRequest:
        request = await self.request_repo.get(request_id)
        if not request:
            raise RequestNotFoundError(f"Request {request_id} not found")
        return request

    async def _persist_assignment(self, request: DesignRequest, executor: Executor) -> None:
        await self.request_repo.update(request)
        history = await self.request_repo.list_for_executor(executor.id)
        executor.stats = compute_stats(executor.id, history)
        await self.executor_repo.update(executor)

    async def _cache_position(self, request: DesignRequest) -> None:
        # Best-effort cache; positions are always recomputed on query
        active = await self.request_repo.list_active()
        entry = get_queue_entry(request, active)
        request.queue_position = entry.position if entry else None
        await self.request_repo.set_queue_position(request.id, request.queue_position)

    async def _emit_assigned(self, request: DesignRequest, executor: Executor) -> None:
        await self._emit(
            EventType.REQUEST_ASSIGNED,
            {
                "request_id": request.id,
                "executor_id": executor.id,
                "status": request.status.value,
                "current_load": executor.stats.current_load,
                "capacity": executor.capacity,
            },
            recipients=[request.requester_id, executor.id],
        )

    async def _emit(
        self,
        event_type: EventType,
        data: dict[str, Any] | None = None,
        recipients: list[str] | None = None,
    ) -> None:
        if self.events is None:
            return
        await self.events.emit(event_type, data, recipients)
