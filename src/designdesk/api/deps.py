"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request
from pydantic import BaseModel

from designdesk.db import Database
from designdesk.events import EventBus

ADMIN_ROLE = "admin"


class Actor(BaseModel):
    """The caller, as identified by the fronting gateway."""

    user_id: str
    role: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


async def get_db(request: Request) -> Database:
    """Get the database instance from app state."""
    return request.app.state.db


async def get_events(request: Request) -> EventBus | None:
    """Get the event bus from app state, if one is attached."""
    return getattr(request.app.state, "events", None)


async def get_current_user(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Actor:
    """Identify the caller from the X-User-Id / X-User-Role headers."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    role = x_user_role.strip().lower() if x_user_role else None
    return Actor(user_id=x_user_id, role=role)


async def require_admin(
    actor: Annotated[Actor, Depends(get_current_user)],
) -> Actor:
    """Reject callers that are not administrators."""
    if not actor.is_admin:
        raise HTTPException(status_code=403, detail="Administrator role required")
    return actor
