"""Tests for the queue manager."""

import asyncio

import pytest
from conftest import at, make_executor, make_request

from designdesk.db import ExecutorRepository, RequestRepository
from designdesk.domain import QueueStage, RequestStatus, Urgency
from designdesk.events import EventBus, EventType
from designdesk.exceptions import (
    AssignmentError,
    ExecutorNotFoundError,
    InvalidTransitionError,
    RequestNotFoundError,
)
from designdesk.queue import QueueManager, UnassignedReason


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
async def manager(db, bus, settings) -> QueueManager:
    return QueueManager(db, bus, settings)


async def add_executor(db, id: str, role: str = "diseñador", **overrides):
    return await ExecutorRepository(db).create(make_executor(id, role=role, **overrides))


async def drain(queue: asyncio.Queue) -> list:
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


class TestCreateRequest:
    """Tests for request admission."""

    async def test_assigns_immediately(self, db, manager, bus):
        await add_executor(db, "exec-1")
        queue = await bus.subscribe("test")

        result = await manager.create_request(make_request("r1"))

        assert result.assigned
        stored = await RequestRepository(db).get("r1")
        assert stored.status == RequestStatus.IN_PROCESS
        assert stored.assigned_to == "exec-1"
        assert stored.assigned_at is not None
        assert stored.queue_position == 1

        executor = await ExecutorRepository(db).get("exec-1")
        assert executor.stats.current_load == 1

        types = [e.type for e in await drain(queue)]
        assert types == [
            EventType.REQUEST_CREATED,
            EventType.REQUEST_ASSIGNED,
            EventType.QUEUE_UPDATED,
        ]

    async def test_queues_when_nobody_fits(self, db, manager, bus):
        await add_executor(db, "exec-1", capacity=1)
        await manager.create_request(make_request("r1", 0))
        queue = await bus.subscribe("test")

        result = await manager.create_request(make_request("r2", 1, requester_id="bob"))

        assert not result.assigned
        assert result.reason == UnassignedReason.NO_CAPACITY
        stored = await RequestRepository(db).get("r2")
        assert stored.status == RequestStatus.PENDING
        assert stored.assigned_to is None
        assert stored.queued_at == at(1)
        assert stored.queue_position == 1

        queued = [e for e in await drain(queue) if e.type == EventType.REQUEST_QUEUED]
        assert queued[0].recipients == ["bob"]
        assert queued[0].data["reason"] == "no_capacity"

    async def test_auto_assign_disabled(self, db, bus, settings):
        await add_executor(db, "exec-1")
        manager = QueueManager(db, bus, settings.model_copy(update={"auto_assign": False}))

        result = await manager.create_request(make_request("r1"))

        assert not result.assigned
        assert (await RequestRepository(db).get("r1")).status == RequestStatus.PENDING

    async def test_concurrent_creates_respect_capacity(self, db, manager):
        await add_executor(db, "exec-1", capacity=2)

        results = await asyncio.gather(
            *(manager.create_request(make_request(f"r{i}", i)) for i in range(5))
        )

        assert sum(1 for r in results if r.assigned) == 2
        active = await RequestRepository(db).list_active()
        assert sum(1 for r in active if r.assigned_to == "exec-1") == 2

    @pytest.mark.parametrize("yields", [0, 1, 3, 10])
    async def test_sweep_during_create_keeps_assignment(self, db, bus, settings, yields):
        await add_executor(db, "exec-1", available=False)
        creator = QueueManager(db, bus, settings)
        sweeper = QueueManager(db, bus, settings)

        async def free_and_sweep() -> int:
            for _ in range(yields):
                await asyncio.sleep(0)
            async with db.write_lock:
                repo = ExecutorRepository(db)
                executor = await repo.get("exec-1")
                executor.available = True
                await repo.update(executor)
            return await sweeper.assign_pending()

        await asyncio.gather(creator.create_request(make_request("r1")), free_and_sweep())

        stored = await RequestRepository(db).get("r1")
        assert stored.status == RequestStatus.IN_PROCESS
        assert stored.assigned_to == "exec-1"
        assert stored.assigned_at is not None
        assert (await ExecutorRepository(db).get("exec-1")).stats.current_load == 1

    async def test_works_without_event_bus(self, db, settings):
        await add_executor(db, "exec-1")
        manager = QueueManager(db, settings=settings)
        result = await manager.create_request(make_request("r1"))
        assert result.assigned


class TestAssignPending:
    """Tests for the pending-queue sweep."""

    async def test_sweep_in_queue_order(self, db, manager):
        executor = await add_executor(db, "exec-1", capacity=2)
        requests = RequestRepository(db)
        await requests.create(make_request("normal-early", 0))
        await requests.create(make_request("normal-late", 5))
        await requests.create(make_request("express", 9, urgency=Urgency.EXPRESS))

        # Inserted directly, so nothing was assigned on arrival
        assert await manager.assign_pending() == 2

        assigned = {r.id for r in await requests.list(assigned_to=executor.id)}
        assert assigned == {"express", "normal-early"}
        still_pending = await requests.get("normal-late")
        assert still_pending.status == RequestStatus.PENDING

    async def test_sweep_with_nothing_pending(self, manager):
        assert await manager.assign_pending() == 0

    async def test_sweep_after_capacity_frees(self, db, manager):
        await add_executor(db, "exec-1", capacity=1)
        await manager.create_request(make_request("first", 0))
        await manager.create_request(make_request("second", 1))
        assert await manager.assign_pending() == 0

        await manager.update_status("first", RequestStatus.REJECTED)
        assert await manager.assign_pending() == 1
        assert (await RequestRepository(db).get("second")).assigned_to == "exec-1"

    async def test_background_loop(self, db, manager):
        await RequestRepository(db).create(make_request("r1"))
        await add_executor(db, "exec-1")

        task = asyncio.create_task(manager.start())
        for _ in range(100):
            if (await RequestRepository(db).get("r1")).assigned_to:
                break
            await asyncio.sleep(0.01)
        await manager.stop()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert (await RequestRepository(db).get("r1")).assigned_to == "exec-1"


class TestManualAssignment:
    """Tests for administrator assignment."""

    async def test_assign_manually(self, db, manager):
        await add_executor(db, "exec-1", available=False)
        result = await manager.create_request(make_request("r1"))
        assert not result.assigned
        await add_executor(db, "exec-2", role="gerente")

        request = await manager.assign_manually("r1", "exec-2")

        assert request.assigned_to == "exec-2"
        assert request.status == RequestStatus.IN_PROCESS

    async def test_reassign_refreshes_previous_executor(self, db, manager):
        await add_executor(db, "exec-1")
        await add_executor(db, "exec-2", role="gerente")
        await manager.create_request(make_request("r1"))
        assert (await ExecutorRepository(db).get("exec-2")).stats.current_load == 0

        await manager.assign_manually("r1", "exec-2")

        assert (await ExecutorRepository(db).get("exec-1")).stats.current_load == 0
        assert (await ExecutorRepository(db).get("exec-2")).stats.current_load == 1

    async def test_ineligible_executor(self, db, manager):
        await add_executor(db, "intern", role="practicante", available=False)
        await RequestRepository(db).create(make_request("r1", design_type="video"))

        with pytest.raises(AssignmentError):
            await manager.assign_manually("r1", "intern")

    async def test_missing_records(self, db, manager):
        await add_executor(db, "exec-1")
        await RequestRepository(db).create(make_request("r1"))

        with pytest.raises(RequestNotFoundError):
            await manager.assign_manually("missing", "exec-1")
        with pytest.raises(ExecutorNotFoundError):
            await manager.assign_manually("r1", "missing")


class TestStatusUpdates:
    """Tests for lifecycle updates."""

    async def test_complete_updates_stats(self, db, manager, bus):
        await add_executor(db, "exec-1")
        await manager.create_request(make_request("r1"))
        queue = await bus.subscribe("test")

        await manager.update_status("r1", RequestStatus.REVIEW)
        done = await manager.update_status("r1", RequestStatus.COMPLETED)

        assert done.completed_at is not None
        executor = await ExecutorRepository(db).get("exec-1")
        assert executor.stats.total_completed == 1
        assert executor.stats.current_load == 0

        changes = [e for e in await drain(queue) if e.type == EventType.REQUEST_STATUS_CHANGED]
        assert [(e.data["from"], e.data["to"]) for e in changes] == [
            ("in-process", "review"),
            ("review", "completed"),
        ]
        assert changes[0].recipients == ["user-1", "exec-1"]

    async def test_invalid_transition(self, db, manager):
        await RequestRepository(db).create(make_request("r1"))
        with pytest.raises(InvalidTransitionError):
            await manager.update_status("r1", RequestStatus.COMPLETED)

    async def test_unknown_request(self, manager):
        with pytest.raises(RequestNotFoundError):
            await manager.update_status("missing", RequestStatus.REVIEW)


class TestQueries:
    """Tests for queue queries."""

    async def test_position_and_user_queue(self, db, manager):
        requests = RequestRepository(db)
        await requests.create(make_request("a", 0, requester_id="alice", area="Comercial"))
        await requests.create(make_request("b", 1, requester_id="bob", area="Comercial"))

        entry = await manager.get_position("b")
        assert entry.position == 2
        assert entry.stage == QueueStage.PENDING

        queue = await manager.get_user_queue("bob")
        assert [q.request.id for q in queue.as_requester] == ["b"]
        assert queue.as_executor == []

    async def test_position_of_finished_request(self, db, manager):
        await RequestRepository(db).create(make_request("r1", status=RequestStatus.REJECTED))
        assert await manager.get_position("r1") is None

    async def test_position_of_missing_request(self, manager):
        with pytest.raises(RequestNotFoundError):
            await manager.get_position("missing")

    async def test_scoped_queue_uses_page_size(self, db, bus, settings):
        manager = QueueManager(db, bus, settings.model_copy(update={"queue_page_size": 2}))
        requests = RequestRepository(db)
        for i in range(5):
            await requests.create(make_request(f"r{i}", i))

        page = await manager.get_scoped_queue()

        assert page.pagination.limit == 2
        assert page.pagination.pages == 3
        assert [q.request.id for q in page.queue] == ["r0", "r1"]

    async def test_queue_stats(self, db, manager):
        await add_executor(db, "exec-1", capacity=1)
        await add_executor(db, "exec-2", role="practicante", available=False)
        await manager.create_request(make_request("r1", 0))
        await manager.create_request(make_request("r2", 1))

        stats = await manager.get_queue_stats()

        assert stats["pending_requests"] == 1
        assert stats["in_process_requests"] == 1
        assert stats["unassigned_requests"] == 1
        assert stats["active_executors"] == 2
        assert stats["available_executors"] == 1
        assert stats["executors_at_capacity"] == 1
        assert isinstance(stats["business_hours"], bool)
