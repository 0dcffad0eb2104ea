"""Design request API routes."""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from designdesk.api.deps import Actor, get_current_user, get_db, get_events, require_admin
from designdesk.db import Database, RequestRepository
from designdesk.domain import DesignRequest, RequestStatus, Urgency
from designdesk.events import EventBus
from designdesk.exceptions import (
    AssignmentError,
    ExecutorNotFoundError,
    InvalidExecutorError,
    InvalidTransitionError,
    RequestNotFoundError,
)
from designdesk.queue import QueueManager

logger = logging.getLogger(__name__)
router = APIRouter()


class RequestCreate(BaseModel):
    """Request body for submitting a design request."""

    title: str = Field(min_length=1)
    description: str | None = None
    area: str | None = None
    design_type: str = Field(min_length=1)
    urgency: Urgency = Urgency.NORMAL
    preferred_executor_role: str | None = None
    delivery_date: datetime | None = None


class RequestCreated(BaseModel):
    """Response for a newly submitted request."""

    request: DesignRequest
    assigned: bool
    executor_id: str | None = None
    reason: str | None = None
    queue_position: int | None = None


class StatusUpdate(BaseModel):
    """Request body for moving a request to a new status."""

    status: RequestStatus


class AssignBody(BaseModel):
    """Request body for a manual assignment."""

    executor_id: str


def _can_view(actor: Actor, request: DesignRequest) -> bool:
    return actor.is_admin or actor.user_id in (request.requester_id, request.assigned_to)


@router.post("", status_code=201)
async def create_request(
    db: Annotated[Database, Depends(get_db)],
    events: Annotated[EventBus | None, Depends(get_events)],
    actor: Annotated[Actor, Depends(get_current_user)],
    body: RequestCreate,
) -> RequestCreated:
    """Submit a request and try to assign it right away."""
    logger.info(
        f"Creating request: requester={actor.user_id}, type={body.design_type}, "
        f"urgency={body.urgency.value}"
    )

    request = DesignRequest(requester_id=actor.user_id, **body.model_dump())
    manager = QueueManager(db, events)
    result = await manager.create_request(request)

    logger.info(
        f"Request created: id={request.id}, assigned={result.assigned}, "
        f"position={request.queue_position}"
    )
    return RequestCreated(
        request=request,
        assigned=result.assigned,
        executor_id=result.executor.id if result.executor else None,
        reason=result.reason.value if result.reason else None,
        queue_position=request.queue_position,
    )


@router.get("")
async def list_requests(
    db: Annotated[Database, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_user)],
    status: RequestStatus | None = None,
    area: str | None = None,
    assigned_to: str | None = None,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
) -> list[DesignRequest]:
    """List requests.

    Administrators see every request; everyone else sees the requests they
    submitted plus the ones assigned to them.
    """
    repo = RequestRepository(db)

    if actor.is_admin:
        return await repo.list(
            status=status, assigned_to=assigned_to, area=area, limit=limit, offset=offset
        )

    return await repo.list(
        status=status,
        assigned_to=assigned_to,
        area=area,
        involving=actor.user_id,
        limit=limit,
        offset=offset,
    )


@router.get("/{request_id}")
async def get_request(
    db: Annotated[Database, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_user)],
    request_id: str,
) -> DesignRequest:
    """Get a request by ID."""
    repo = RequestRepository(db)
    request = await repo.get(request_id)
    if not request:
        logger.warning(f"Request not found: request_id={request_id}")
        raise HTTPException(status_code=404, detail="Request not found")
    if not _can_view(actor, request):
        raise HTTPException(status_code=403, detail="Not allowed to view this request")
    return request


@router.patch("/{request_id}/status")
async def update_request_status(
    db: Annotated[Database, Depends(get_db)],
    events: Annotated[EventBus | None, Depends(get_events)],
    actor: Annotated[Actor, Depends(get_current_user)],
    request_id: str,
    body: StatusUpdate,
) -> DesignRequest:
    """Move a request through its lifecycle (assignee or administrator)."""
    repo = RequestRepository(db)
    request = await repo.get(request_id)
    if not request:
        raise HTTPException(status_code=404, detail="Request not found")
    if not (actor.is_admin or actor.user_id == request.assigned_to):
        raise HTTPException(status_code=403, detail="Only the assignee or an administrator can change status")

    manager = QueueManager(db, events)
    try:
        updated = await manager.update_status(request_id, body.status)
    except InvalidTransitionError as e:
        logger.warning(f"Rejected status change for {request_id}: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from e
    except RequestNotFoundError as e:
        raise HTTPException(status_code=404, detail="Request not found") from e

    return updated


@router.post("/{request_id}/assign")
async def assign_request(
    db: Annotated[Database, Depends(get_db)],
    events: Annotated[EventBus | None, Depends(get_events)],
    _admin: Annotated[Actor, Depends(require_admin)],
    request_id: str,
    body: AssignBody,
) -> DesignRequest:
    """Assign a request to a specific executor."""
    logger.info(f"Manual assignment: request_id={request_id}, executor_id={body.executor_id}")

    manager = QueueManager(db, events)
    try:
        return await manager.assign_manually(request_id, body.executor_id)
    except RequestNotFoundError as e:
        raise HTTPException(status_code=404, detail="Request not found") from e
    except ExecutorNotFoundError as e:
        raise HTTPException(status_code=404, detail="Executor not found") from e
    except (AssignmentError, InvalidExecutorError) as e:
        logger.warning(f"Manual assignment rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from e
