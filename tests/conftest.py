"""Pytest configuration and fixtures."""

import tempfile
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from designdesk.config import Settings
from designdesk.db.connection import Database
from designdesk.domain import DesignRequest, Executor

BASE_TIME = datetime(2024, 3, 4, 9, 0, tzinfo=UTC)


def at(minutes: int) -> datetime:
    """A fixed timestamp, `minutes` after the base time."""
    return BASE_TIME + timedelta(minutes=minutes)


def make_request(id: str, minute: int = 0, **overrides) -> DesignRequest:
    """Build a request with deterministic timestamps."""
    data = {
        "id": id,
        "requester_id": "user-1",
        "request_number": f"REQ-20240304-{id}",
        "title": f"Request {id}",
        "design_type": "redes",
        "created_at": at(minute),
        "updated_at": at(minute),
        "queued_at": at(minute),
    }
    data.update(overrides)
    return DesignRequest(**data)


def make_executor(id: str, role: str = "diseñador", **overrides) -> Executor:
    """Build an executor with role defaults unless overridden."""
    return Executor(id=id, name=f"Executor {id}", role=role, **overrides)


@pytest.fixture(scope="session")
def anyio_backend():
    """Use asyncio as the async backend."""
    return "asyncio"


@pytest.fixture
async def db():
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        database = Database(db_path)
        await database.connect()
        yield database
        await database.disconnect()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway location, auto-assign on."""
    return Settings(db_path=tmp_path / "settings.db", auto_assign=True, poll_interval=0.01)
