"""Repository classes for database access."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from designdesk.db.connection import Database
from designdesk.domain import (
    ACTIVE_STATUSES,
    DesignRequest,
    Executor,
    ExecutorRole,
    ExecutorStats,
    RequestStatus,
    Specialty,
    UnavailableReason,
    Urgency,
)


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


_ACTIVE_PLACEHOLDERS = ", ".join("?" for _ in ACTIVE_STATUSES)
_ACTIVE_VALUES = tuple(sorted(s.value for s in ACTIVE_STATUSES))


class RequestRepository:
    """Repository for DesignRequest entities."""

    def __init__(self, db: Database):
        self.db = db

    async def create(self, request: DesignRequest) -> DesignRequest:
        """Create a new request."""
        await self.db.execute(
            """
            INSERT INTO requests (
                id, request_number, requester_id, title, description, area, design_type,
                preferred_executor_role, urgency, status, delivery_date, queued_at,
                assigned_to, assigned_at, completed_at, queue_position, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                request.id,
                request.request_number,
                request.requester_id,
                request.title,
                request.description,
                request.area,
                request.design_type,
                request.preferred_executor_role,
                request.urgency.value,
                request.status.value,
                _to_iso(request.delivery_date),
                _to_iso(request.queued_at),
                request.assigned_to,
                _to_iso(request.assigned_at),
                _to_iso(request.completed_at),
                request.queue_position,
                request.created_at.isoformat(),
                request.updated_at.isoformat(),
            ),
        )
        await self.db.commit()
        return request

    async def get(self, request_id: str) -> DesignRequest | None:
        """Get a request by ID."""
        row = await self.db.fetchone("SELECT * FROM requests WHERE id = ?", (request_id,))
        if not row:
            return None
        return self._row_to_request(row)

    async def list(
        self,
        status: RequestStatus | None = None,
        requester_id: str | None = None,
        assigned_to: str | None = None,
        area: str | None = None,
        involving: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[DesignRequest]:
        """List requests with optional filters, newest first.

        ``involving`` matches requests the user either submitted or is assigned to.
        """
        conditions = []
        params: list[Any] = []

        if status:
            conditions.append("status = ?")
            params.append(status.value)
        if requester_id:
            conditions.append("requester_id = ?")
            params.append(requester_id)
        if assigned_to:
            conditions.append("assigned_to = ?")
            params.append(assigned_to)
        if area:
            conditions.append("area = ?")
            params.append(area)
        if involving:
            conditions.append("(requester_id = ? OR assigned_to = ?)")
            params.extend([involving, involving])

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        query = f"""
            SELECT * FROM requests
            WHERE {where_clause}
            ORDER BY created_at DESC, id DESC
            LIMIT ? OFFSET ?
        """
        params.extend([limit, offset])

        rows = await self.db.fetchall(query, tuple(params))
        return [self._row_to_request(row) for row in rows]

    async def list_active(self) -> list[DesignRequest]:
        """All requests that count toward queues and executor load."""
        rows = await self.db.fetchall(
            f"SELECT * FROM requests WHERE status IN ({_ACTIVE_PLACEHOLDERS})",
            _ACTIVE_VALUES,
        )
        return [self._row_to_request(row) for row in rows]

    async def list_for_executor(self, executor_id: str) -> list[DesignRequest]:
        """Every request ever assigned to an executor (any status)."""
        rows = await self.db.fetchall(
            "SELECT * FROM requests WHERE assigned_to = ?", (executor_id,)
        )
        return [self._row_to_request(row) for row in rows]

    async def update(self, request: DesignRequest) -> DesignRequest:
        """Update an existing request."""
        await self.db.execute(
            """
            UPDATE requests SET
                title = ?, description = ?, area = ?, design_type = ?,
                preferred_executor_role = ?, urgency = ?, status = ?, delivery_date = ?,
                queued_at = ?, assigned_to = ?, assigned_at = ?, completed_at = ?,
                queue_position = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                request.title,
                request.description,
                request.area,
                request.design_type,
                request.preferred_executor_role,
                request.urgency.value,
                request.status.value,
                _to_iso(request.delivery_date),
                _to_iso(request.queued_at),
                request.assigned_to,
                _to_iso(request.assigned_at),
                _to_iso(request.completed_at),
                request.queue_position,
                request.updated_at.isoformat(),
                request.id,
            ),
        )
        await self.db.commit()
        return request

    async def set_queue_position(self, request_id: str, position: int | None) -> None:
        """Store the cached queue position without touching the rest of the row."""
        await self.db.execute(
            "UPDATE requests SET queue_position = ? WHERE id = ?", (position, request_id)
        )
        await self.db.commit()

    async def count_by_status(self) -> dict[str, int]:
        """Number of requests in each status."""
        rows = await self.db.fetchall(
            "SELECT status, COUNT(*) as count FROM requests GROUP BY status"
        )
        return {row["status"]: row["count"] for row in rows}

    def _row_to_request(self, row: Any) -> DesignRequest:
        """Convert a database row to a DesignRequest."""
        return DesignRequest(
            id=row["id"],
            request_number=row["request_number"],
            requester_id=row["requester_id"],
            title=row["title"],
            description=row["description"],
            area=row["area"],
            design_type=row["design_type"],
            preferred_executor_role=row["preferred_executor_role"],
            urgency=Urgency(row["urgency"]),
            status=RequestStatus(row["status"]),
            delivery_date=_from_iso(row["delivery_date"]),
            queued_at=_from_iso(row["queued_at"]),
            assigned_to=row["assigned_to"],
            assigned_at=_from_iso(row["assigned_at"]),
            completed_at=_from_iso(row["completed_at"]),
            queue_position=row["queue_position"],
            created_at=_from_iso(row["created_at"]),
            updated_at=_from_iso(row["updated_at"]),
        )


class ExecutorRepository:
    """Repository for Executor entities."""

    def __init__(self, db: Database):
        self.db = db

    async def create(self, executor: Executor) -> Executor:
        """Create a new executor."""
        await self.db.execute(
            """
            INSERT INTO executors (
                id, name, email, role, capacity, priority, allowed_design_types, specialties,
                available, unavailable_reason, unavailable_until, is_active, stats,
                created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                executor.id,
                executor.name,
                executor.email,
                executor.role.value,
                executor.capacity,
                executor.priority,
                json.dumps(executor.allowed_design_types),
                json.dumps([s.value for s in executor.specialties]),
                executor.available,
                executor.unavailable_reason.value if executor.unavailable_reason else None,
                _to_iso(executor.unavailable_until),
                executor.is_active,
                executor.stats.model_dump_json(),
                executor.created_at.isoformat(),
                executor.updated_at.isoformat(),
            ),
        )
        await self.db.commit()
        return executor

    async def get(self, executor_id: str) -> Executor | None:
        """Get an executor by ID."""
        row = await self.db.fetchone("SELECT * FROM executors WHERE id = ?", (executor_id,))
        if not row:
            return None
        return self._row_to_executor(row)

    async def list(
        self,
        role: ExecutorRole | None = None,
        active_only: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Executor]:
        """List executors, highest tier first."""
        conditions = []
        params: list[Any] = []

        if role:
            conditions.append("role = ?")
            params.append(role.value)
        if active_only:
            conditions.append("is_active = 1")

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        query = f"""
            SELECT * FROM executors
            WHERE {where_clause}
            ORDER BY priority ASC, id ASC
            LIMIT ? OFFSET ?
        """
        params.extend([limit, offset])

        rows = await self.db.fetchall(query, tuple(params))
        return [self._row_to_executor(row) for row in rows]

    async def roster(self) -> list[Executor]:
        """Every executor, for an assignment snapshot."""
        rows = await self.db.fetchall("SELECT * FROM executors ORDER BY priority ASC, id ASC")
        return [self._row_to_executor(row) for row in rows]

    async def update(self, executor: Executor) -> Executor:
        """Update an existing executor."""
        executor.updated_at = datetime.now(UTC)
        await self.db.execute(
            """
            UPDATE executors SET
                name = ?, email = ?, role = ?, capacity = ?, priority = ?,
                allowed_design_types = ?, specialties = ?, available = ?,
                unavailable_reason = ?, unavailable_until = ?, is_active = ?,
                stats = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                executor.name,
                executor.email,
                executor.role.value,
                executor.capacity,
                executor.priority,
                json.dumps(executor.allowed_design_types),
                json.dumps([s.value for s in executor.specialties]),
                executor.available,
                executor.unavailable_reason.value if executor.unavailable_reason else None,
                _to_iso(executor.unavailable_until),
                executor.is_active,
                executor.stats.model_dump_json(),
                executor.updated_at.isoformat(),
                executor.id,
            ),
        )
        await self.db.commit()
        return executor

    def _row_to_executor(self, row: Any) -> Executor:
        """Convert a database row to an Executor."""
        return Executor(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            role=ExecutorRole(row["role"]),
            capacity=row["capacity"],
            priority=row["priority"],
            allowed_design_types=json.loads(row["allowed_design_types"]) if row["allowed_design_types"] else [],
            specialties=[Specialty(s) for s in json.loads(row["specialties"] or "[]")],
            available=bool(row["available"]),
            unavailable_reason=UnavailableReason(row["unavailable_reason"]) if row["unavailable_reason"] else None,
            unavailable_until=_from_iso(row["unavailable_until"]),
            is_active=bool(row["is_active"]),
            stats=ExecutorStats.model_validate_json(row["stats"]) if row["stats"] else ExecutorStats(),
            created_at=_from_iso(row["created_at"]),
            updated_at=_from_iso(row["updated_at"]),
        )
