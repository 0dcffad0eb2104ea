"""Executor API routes."""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from designdesk.api.deps import Actor, get_current_user, get_db, get_events, require_admin
from designdesk.db import Database, ExecutorRepository
from designdesk.domain import Executor, ExecutorRole, ExecutorStats, Specialty, UnavailableReason
from designdesk.events import EventBus, EventType
from designdesk.exceptions import ExecutorNotFoundError
from designdesk.queue import QueueManager

logger = logging.getLogger(__name__)
router = APIRouter()


class ExecutorCreate(BaseModel):
    """Request body for registering an executor.

    Capacity, priority and allowed design types default from the role.
    """

    id: str | None = None  # Usually the user ID of the person
    name: str = Field(min_length=1)
    email: str | None = None
    role: ExecutorRole
    capacity: int | None = Field(default=None, gt=0)
    priority: int | None = Field(default=None, ge=1)
    allowed_design_types: list[str] | None = None
    specialties: list[Specialty] = []
    available: bool = True
    unavailable_reason: UnavailableReason | None = None
    unavailable_until: datetime | None = None


class ExecutorUpdate(BaseModel):
    """Request body for updating an executor."""

    name: str | None = None
    email: str | None = None
    capacity: int | None = Field(default=None, gt=0)
    priority: int | None = Field(default=None, ge=1)
    allowed_design_types: list[str] | None = None
    specialties: list[Specialty] | None = None
    available: bool | None = None
    unavailable_reason: UnavailableReason | None = None
    unavailable_until: datetime | None = None
    is_active: bool | None = None


@router.get("")
async def list_executors(
    db: Annotated[Database, Depends(get_db)],
    _actor: Annotated[Actor, Depends(get_current_user)],
    role: ExecutorRole | None = None,
    active_only: bool = False,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
) -> list[Executor]:
    """List executors, highest tier first."""
    repo = ExecutorRepository(db)
    executors = await repo.list(role=role, active_only=active_only, limit=limit, offset=offset)
    logger.info(f"Found {len(executors)} executors")
    return executors


@router.post("", status_code=201)
async def create_executor(
    db: Annotated[Database, Depends(get_db)],
    events: Annotated[EventBus | None, Depends(get_events)],
    _admin: Annotated[Actor, Depends(require_admin)],
    body: ExecutorCreate,
) -> Executor:
    """Register a new executor.

    An available executor joins with free capacity, so the pending queue is
    swept right away.
    """
    logger.info(f"Creating executor: name={body.name}, role={body.role.value}")

    repo = ExecutorRepository(db)
    data = body.model_dump(exclude_none=True)
    if body.available:
        data.pop("unavailable_reason", None)
        data.pop("unavailable_until", None)

    async with db.write_lock:
        if body.id and await repo.get(body.id):
            raise HTTPException(status_code=409, detail="Executor already exists")
        executor = await repo.create(Executor(**data))

    if events:
        await events.emit(
            EventType.EXECUTOR_CREATED,
            {"executor_id": executor.id, "role": executor.role.value},
        )

    logger.info(f"Executor created: id={executor.id}, capacity={executor.capacity}")

    if executor.available and executor.is_active:
        manager = QueueManager(db, events)
        if manager.settings.auto_assign:
            count = await manager.assign_pending()
            logger.info(f"New executor {executor.id}; sweep assigned {count}")
            if count:
                executor = await repo.get(executor.id) or executor

    return executor


@router.get("/{executor_id}")
async def get_executor(
    db: Annotated[Database, Depends(get_db)],
    _actor: Annotated[Actor, Depends(get_current_user)],
    executor_id: str,
) -> Executor:
    """Get an executor by ID."""
    repo = ExecutorRepository(db)
    executor = await repo.get(executor_id)
    if not executor:
        logger.warning(f"Executor not found: executor_id={executor_id}")
        raise HTTPException(status_code=404, detail="Executor not found")
    return executor


@router.patch("/{executor_id}")
async def update_executor(
    db: Annotated[Database, Depends(get_db)],
    events: Annotated[EventBus | None, Depends(get_events)],
    _admin: Annotated[Actor, Depends(require_admin)],
    executor_id: str,
    body: ExecutorUpdate,
) -> Executor:
    """Update an executor.

    Freeing capacity (more capacity, or becoming available again) triggers a
    sweep of the pending queue.
    """
    update_fields = body.model_dump(exclude_unset=True)
    logger.info(f"Updating executor: executor_id={executor_id}, fields={list(update_fields)}")

    async with db.write_lock:
        repo = ExecutorRepository(db)
        executor = await repo.get(executor_id)
        if not executor:
            raise HTTPException(status_code=404, detail="Executor not found")

        previous_capacity = executor.capacity
        was_available = executor.available and executor.is_active

        for field, value in update_fields.items():
            if value is None and field not in ("unavailable_reason", "unavailable_until"):
                continue
            setattr(executor, field, value)

        if executor.available:
            executor.unavailable_reason = None
            executor.unavailable_until = None

        updated = await repo.update(executor)

    if events:
        await events.emit(
            EventType.EXECUTOR_UPDATED,
            {"executor_id": updated.id, "available": updated.available},
            recipients=[updated.id],
        )

    freed = updated.capacity > previous_capacity or (
        updated.available and updated.is_active and not was_available
    )
    if freed:
        manager = QueueManager(db, events)
        if manager.settings.auto_assign:
            count = await manager.assign_pending()
            logger.info(f"Executor {executor_id} freed capacity; sweep assigned {count}")

    return updated


@router.get("/{executor_id}/stats")
async def get_executor_stats(
    db: Annotated[Database, Depends(get_db)],
    _actor: Annotated[Actor, Depends(get_current_user)],
    executor_id: str,
) -> ExecutorStats:
    """Recompute and return an executor's statistics."""
    manager = QueueManager(db)
    try:
        executor = await manager.refresh_executor_stats(executor_id)
    except ExecutorNotFoundError as e:
        raise HTTPException(status_code=404, detail="Executor not found") from e
    return executor.stats
