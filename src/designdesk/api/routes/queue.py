"""Queue API routes."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from designdesk.api.deps import Actor, get_current_user, get_db, get_events, require_admin
from designdesk.db import Database, RequestRepository
from designdesk.domain import QueueEntry
from designdesk.events import EventBus
from designdesk.queue import QueueManager
from designdesk.queue.ranking import ScopedQueuePage, UserQueue

logger = logging.getLogger(__name__)
router = APIRouter()


class TicketPosition(BaseModel):
    """Position of one ticket in its queue."""

    ticket_id: str
    in_queue: bool
    queue_info: QueueEntry | None = None
    message: str


@router.get("/tickets/{ticket_id}/position")
async def get_ticket_position(
    db: Annotated[Database, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_user)],
    ticket_id: str,
) -> TicketPosition:
    """Where a ticket stands in its queue (requester, assignee or administrator)."""
    repo = RequestRepository(db)
    request = await repo.get(ticket_id)
    if not request:
        raise HTTPException(status_code=404, detail="Request not found")
    if not (actor.is_admin or actor.user_id in (request.requester_id, request.assigned_to)):
        raise HTTPException(status_code=403, detail="Not allowed to view this ticket")

    manager = QueueManager(db)
    entry = await manager.get_position(ticket_id)
    if entry is None:
        return TicketPosition(
            ticket_id=ticket_id,
            in_queue=False,
            message=f"Request is {request.status.value} and no longer queued",
        )

    return TicketPosition(
        ticket_id=ticket_id,
        in_queue=True,
        queue_info=entry,
        message=f"Position {entry.position} of {entry.total} ({entry.ahead} ahead)",
    )


@router.get("/my")
async def get_my_queue(
    db: Annotated[Database, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_user)],
) -> UserQueue:
    """Active requests the caller submitted or is working on."""
    manager = QueueManager(db)
    queue = await manager.get_user_queue(actor.user_id)
    logger.info(
        f"User queue for {actor.user_id}: {len(queue.as_requester)} requested, "
        f"{len(queue.as_executor)} assigned"
    )
    return queue


@router.get("/scope")
async def get_scoped_queue(
    db: Annotated[Database, Depends(get_db)],
    _admin: Annotated[Actor, Depends(require_admin)],
    department: str | None = None,
    executor_type: str | None = None,
    stage: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
) -> ScopedQueuePage:
    """Full queue grouped by scope, filtered and paginated."""
    manager = QueueManager(db)
    return await manager.get_scoped_queue(
        department=department,
        executor_type=executor_type,
        stage=stage,
        page=page,
        limit=limit,
    )


@router.get("/stats")
async def get_queue_stats(
    db: Annotated[Database, Depends(get_db)],
    _actor: Annotated[Actor, Depends(get_current_user)],
) -> dict:
    """Get current queue statistics."""
    logger.info("Getting queue statistics")
    manager = QueueManager(db)
    stats = await manager.get_queue_stats()
    logger.info(f"Queue stats retrieved: {stats}")
    return stats


@router.post("/assign-pending")
async def assign_pending(
    db: Annotated[Database, Depends(get_db)],
    events: Annotated[EventBus | None, Depends(get_events)],
    _admin: Annotated[Actor, Depends(require_admin)],
) -> dict:
    """Run one sweep of the pending queue now."""
    manager = QueueManager(db, events)
    assigned = await manager.assign_pending()
    logger.info(f"Manual sweep assigned {assigned} requests")
    return {"assigned": assigned}
