"""Tests for the event bus system."""

import asyncio

import pytest

from designdesk.events import Event, EventBus, EventType


@pytest.fixture
def event_bus_fixture() -> EventBus:
    """Create a fresh event bus for each test."""
    return EventBus()


async def test_subscribe_and_receive(event_bus_fixture: EventBus) -> None:
    """Test that subscribers receive published events."""
    queue = await event_bus_fixture.subscribe("test-sub-1")

    event = Event(type=EventType.REQUEST_CREATED, data={"request_id": "req-123"})
    await event_bus_fixture.publish(event)

    received = await asyncio.wait_for(queue.get(), timeout=1.0)
    assert received.type == EventType.REQUEST_CREATED
    assert received.data["request_id"] == "req-123"


async def test_unsubscribe(event_bus_fixture: EventBus) -> None:
    """Test that unsubscribed clients don't receive events."""
    queue = await event_bus_fixture.subscribe("test-sub-2")
    await event_bus_fixture.unsubscribe("test-sub-2")

    await event_bus_fixture.emit(EventType.QUEUE_UPDATED)

    assert queue.empty()
    assert event_bus_fixture.subscriber_count == 0


async def test_user_subscription_filters_by_recipient(event_bus_fixture: EventBus) -> None:
    """A user-scoped subscriber sees events addressed to them and broadcasts."""
    alice = await event_bus_fixture.subscribe("sub-alice", user_id="alice")
    everyone = await event_bus_fixture.subscribe("sub-all")

    await event_bus_fixture.emit(
        EventType.REQUEST_ASSIGNED, {"request_id": "r1"}, recipients=["bob", "exec-1"]
    )
    await event_bus_fixture.emit(
        EventType.REQUEST_QUEUED, {"request_id": "r2"}, recipients=["alice"]
    )
    await event_bus_fixture.emit(EventType.QUEUE_UPDATED)

    received = [await asyncio.wait_for(alice.get(), timeout=1.0) for _ in range(2)]
    assert [e.type for e in received] == [EventType.REQUEST_QUEUED, EventType.QUEUE_UPDATED]
    assert alice.empty()
    assert everyone.qsize() == 3


async def test_callback_execution(event_bus_fixture: EventBus) -> None:
    """Test that callbacks are called for events."""
    received_events: list[Event] = []

    def callback(event: Event) -> None:
        received_events.append(event)

    event_bus_fixture.add_callback(callback)
    await event_bus_fixture.emit(EventType.EXECUTOR_CREATED)
    assert len(received_events) == 1

    event_bus_fixture.remove_callback(callback)
    await event_bus_fixture.emit(EventType.EXECUTOR_UPDATED)
    assert len(received_events) == 1


async def test_async_callback(event_bus_fixture: EventBus) -> None:
    """Test that async callbacks work correctly."""
    received: list[Event] = []

    async def async_callback(event: Event) -> None:
        await asyncio.sleep(0.01)
        received.append(event)

    event_bus_fixture.add_callback(async_callback)
    await event_bus_fixture.emit(EventType.REQUEST_STATUS_CHANGED, data={"to": "review"})

    assert len(received) == 1
    assert received[0].data["to"] == "review"


async def test_failing_callback_does_not_reach_publisher(event_bus_fixture: EventBus) -> None:
    def broken(event: Event) -> None:
        raise RuntimeError("smtp down")

    event_bus_fixture.add_callback(broken)
    event = await event_bus_fixture.emit(EventType.QUEUE_UPDATED)
    assert event.type == EventType.QUEUE_UPDATED


def test_event_to_json() -> None:
    """Test Event serialization to JSON."""
    event = Event(
        type=EventType.REQUEST_ASSIGNED,
        data={"executor_id": "exec-1"},
        recipients=["user-1", "exec-1"],
    )

    json_dict = event.to_json()

    assert json_dict["type"] == "request.assigned"
    assert json_dict["data"]["executor_id"] == "exec-1"
    assert json_dict["recipients"] == ["user-1", "exec-1"]
    assert "timestamp" in json_dict
    assert "id" in json_dict


def test_event_type_values() -> None:
    """Test that EventType enum has expected values."""
    assert EventType.REQUEST_CREATED.value == "request.created"
    assert EventType.REQUEST_STATUS_CHANGED.value == "request.status_changed"
    assert EventType.QUEUE_UPDATED.value == "queue.updated"
