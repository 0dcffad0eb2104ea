"""Designdesk CLI entry point."""

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import TypeVar

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from designdesk.domain import ExecutorRole, RequestStatus, UnavailableReason, Urgency
from designdesk.exceptions import DesignDeskError, ExecutorNotFoundError

console = Console()

# Type variable for async function return types
T = TypeVar("T")

STATUS_COLORS = {
    "pending": "blue",
    "in-process": "yellow",
    "review": "magenta",
    "completed": "green",
    "rejected": "red",
}

URGENCY_COLORS = {
    "express": "red",
    "urgent": "yellow",
    "normal": "white",
}


def run_async(coro: Callable[[], Awaitable[T]]) -> T:
    """Run an async function, closing the database afterwards.

    aiosqlite keeps a background thread per connection; leaving it open
    keeps the CLI process alive.
    """
    from designdesk.db import close_database

    async def wrapped() -> T:
        try:
            return await coro()
        finally:
            await close_database()

    try:
        return asyncio.run(wrapped())
    except DesignDeskError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1) from e


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


def _status_cell(status: str) -> str:
    color = STATUS_COLORS.get(status, "white")
    return f"[{color}]{status}[/{color}]"


def _urgency_cell(urgency: str) -> str:
    color = URGENCY_COLORS.get(urgency, "white")
    return f"[{color}]{urgency}[/{color}]"


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.option(
    "--db-path",
    type=click.Path(path_type=Path),
    envvar="DESIGNDESK_DB_PATH",
    help="Database path (defaults to the configured one)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, db_path: Path | None) -> None:
    """Designdesk - design request intake, assignment and queueing."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["db_path"] = db_path
    setup_logging(verbose)


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8080, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int, reload: bool) -> None:
    """Start the Designdesk API server."""
    import uvicorn

    from designdesk.config import get_settings

    db_path = ctx.obj["db_path"]
    if db_path:
        # The app builds its settings from the environment, also in reload workers
        os.environ["DESIGNDESK_DB_PATH"] = str(db_path)
        get_settings.cache_clear()

    console.print(f"[bold green]Starting Designdesk API server on {host}:{port}[/bold green]")

    uvicorn.run(
        "designdesk.api.app:app",
        host=host,
        port=port,
        reload=reload,
    )


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Initialize the Designdesk database."""
    from designdesk.db import get_database

    async def do_init() -> None:
        db = await get_database(ctx.obj["db_path"])
        console.print(f"[green]Database initialized at {db.db_path}[/green]")

    run_async(do_init)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show queue and executor status."""
    from designdesk.db import get_database
    from designdesk.queue import QueueManager

    async def show_status() -> None:
        db = await get_database(ctx.obj["db_path"])
        manager = QueueManager(db)
        stats = await manager.get_queue_stats()

        table = Table(title="Designdesk Status")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Pending", str(stats["pending_requests"]))
        table.add_row("In Process", str(stats["in_process_requests"]))
        table.add_row("In Review", str(stats["review_requests"]))
        table.add_row("Completed", str(stats["completed_requests"]))
        table.add_row("Rejected", str(stats["rejected_requests"]))
        table.add_row("Unassigned", str(stats["unassigned_requests"]))
        table.add_row("Available Executors", str(stats["available_executors"]))
        table.add_row("Executors at Capacity", str(stats["executors_at_capacity"]))
        table.add_row("Business Hours", "yes" if stats["business_hours"] else "no")

        console.print(table)

    run_async(show_status)


@cli.command()
@click.option("--watch", is_flag=True, help="Keep sweeping until interrupted")
@click.option("--poll-interval", type=float, help="Seconds between sweeps when watching")
@click.pass_context
def sweep(ctx: click.Context, watch: bool, poll_interval: float | None) -> None:
    """Assign pending requests to executors with free capacity."""
    from designdesk.config import get_settings
    from designdesk.db import get_database
    from designdesk.queue import QueueManager

    settings = get_settings()
    if poll_interval is not None:
        settings = settings.model_copy(update={"poll_interval": poll_interval})

    async def do_sweep() -> None:
        db = await get_database(ctx.obj["db_path"])
        manager = QueueManager(db, settings=settings)

        if not watch:
            assigned = await manager.assign_pending()
            console.print(f"[green]Assigned {assigned} pending request(s)[/green]")
            return

        console.print("[bold green]Sweeping pending queue...[/bold green]")
        try:
            await manager.start()
        except asyncio.CancelledError:
            await manager.stop()

    try:
        run_async(do_sweep)
    except KeyboardInterrupt:
        console.print("\n[yellow]Sweep stopped[/yellow]")


@cli.group()
def executor() -> None:
    """Manage executors."""
    pass


@executor.command("add")
@click.argument("name")
@click.option(
    "--role", "-r",
    type=click.Choice([r.value for r in ExecutorRole]),
    required=True,
    help="Executor role",
)
@click.option("--id", "executor_id", help="Executor ID (usually the person's user ID)")
@click.option("--email", "-e", help="Contact email")
@click.option("--capacity", type=click.IntRange(min=1), help="Max active requests (role default)")
@click.option("--type", "-t", "design_types", multiple=True, help="Allowed design types (role default)")
@click.pass_context
def executor_add(
    ctx: click.Context,
    name: str,
    role: str,
    executor_id: str | None,
    email: str | None,
    capacity: int | None,
    design_types: tuple[str, ...],
) -> None:
    """Register a new executor."""
    from designdesk.db import ExecutorRepository, get_database
    from designdesk.domain import Executor
    from designdesk.queue import QueueManager

    async def do_add() -> None:
        db = await get_database(ctx.obj["db_path"])
        repo = ExecutorRepository(db)
        data = {
            "name": name,
            "email": email,
            "role": role,
            "capacity": capacity,
            "allowed_design_types": list(design_types) or None,
        }
        if executor_id:
            data["id"] = executor_id
        created = await repo.create(Executor(**data))
        console.print(
            f"[green]Added executor: {created.name} ({created.id}) "
            f"capacity {created.capacity}[/green]"
        )

        manager = QueueManager(db)
        if manager.settings.auto_assign:
            assigned = await manager.assign_pending()
            if assigned:
                console.print(f"[green]Assigned {assigned} pending request(s)[/green]")

    run_async(do_add)


@executor.command("list")
@click.option("--role", "-r", type=click.Choice([r.value for r in ExecutorRole]), help="Filter by role")
@click.pass_context
def executor_list(ctx: click.Context, role: str | None) -> None:
    """List executors with their current load."""
    from designdesk.db import ExecutorRepository, RequestRepository, get_database
    from designdesk.domain.executor import load_map

    async def do_list() -> None:
        db = await get_database(ctx.obj["db_path"])
        executors = await ExecutorRepository(db).list(role=ExecutorRole(role) if role else None)

        if not executors:
            console.print("[yellow]No executors found[/yellow]")
            return

        loads = load_map(await RequestRepository(db).list_active())

        table = Table(title="Executors")
        table.add_column("ID", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Role")
        table.add_column("Tier")
        table.add_column("Load")
        table.add_column("Available")

        for e in executors:
            load = loads.get(e.id, 0)
            load_color = "red" if load >= e.capacity else "green"
            if e.available:
                availability = "[green]yes[/green]"
            else:
                reason = e.unavailable_reason.value if e.unavailable_reason else "-"
                availability = f"[red]no ({reason})[/red]"

            table.add_row(
                e.id,
                e.name,
                e.role.value,
                str(e.priority),
                f"[{load_color}]{load}/{e.capacity}[/{load_color}]",
                availability,
            )

        console.print(table)

    run_async(do_list)


@executor.command("availability")
@click.argument("executor_id")
@click.option("--available/--unavailable", default=True, help="Mark available or unavailable")
@click.option("--reason", type=click.Choice([r.value for r in UnavailableReason]), help="Why unavailable")
@click.option("--until", type=click.DateTime(), help="Unavailable until (date)")
@click.pass_context
def executor_availability(
    ctx: click.Context,
    executor_id: str,
    available: bool,
    reason: str | None,
    until: datetime | None,
) -> None:
    """Take an executor out of (or back into) the assignment pool."""
    from designdesk.db import ExecutorRepository, get_database
    from designdesk.queue import QueueManager

    async def do_update() -> None:
        db = await get_database(ctx.obj["db_path"])
        repo = ExecutorRepository(db)
        executor = await repo.get(executor_id)
        if not executor:
            raise ExecutorNotFoundError(f"Executor {executor_id} not found")

        executor.available = available
        executor.unavailable_reason = None if available else UnavailableReason(reason or "otra")
        executor.unavailable_until = None if available else until
        await repo.update(executor)

        state = "available" if available else "unavailable"
        console.print(f"[green]Executor {executor_id} is now {state}[/green]")

        manager = QueueManager(db)
        if available and manager.settings.auto_assign:
            assigned = await manager.assign_pending()
            if assigned:
                console.print(f"[green]Assigned {assigned} pending request(s)[/green]")

    run_async(do_update)


@cli.group()
def request() -> None:
    """Manage design requests."""
    pass


@request.command("create")
@click.argument("title")
@click.option("--requester", required=True, help="Requester user ID")
@click.option("--type", "-t", "design_type", required=True, help="Design type (e.g. redes, video)")
@click.option(
    "--urgency", "-u",
    type=click.Choice([u.value for u in Urgency]),
    default=Urgency.NORMAL.value,
    help="Urgency",
)
@click.option("--area", "-a", help="Requesting department")
@click.option("--role", "-r", "preferred_role", help="Preferred executor role")
@click.option("--description", "-d", help="Request description")
@click.option("--delivery", type=click.DateTime(), help="Delivery date")
@click.pass_context
def request_create(
    ctx: click.Context,
    title: str,
    requester: str,
    design_type: str,
    urgency: str,
    area: str | None,
    preferred_role: str | None,
    description: str | None,
    delivery: datetime | None,
) -> None:
    """Submit a request and try to assign it."""
    from designdesk.db import get_database
    from designdesk.domain import DesignRequest
    from designdesk.queue import QueueManager

    async def do_create() -> None:
        db = await get_database(ctx.obj["db_path"])
        manager = QueueManager(db)
        req = DesignRequest(
            requester_id=requester,
            title=title,
            description=description,
            area=area,
            design_type=design_type,
            urgency=Urgency(urgency),
            preferred_executor_role=preferred_role,
            delivery_date=delivery,
        )
        result = await manager.create_request(req)

        console.print(f"[green]Created request {req.request_number} ({req.id})[/green]")
        if result.assigned:
            console.print(f"Assigned to [cyan]{result.executor.name}[/cyan] ({result.executor.id})")
        else:
            reason = result.reason.value if result.reason else "unknown"
            console.print(
                f"[yellow]Queued at position {req.queue_position} (no executor: {reason})[/yellow]"
            )

    run_async(do_create)


@request.command("list")
@click.option("--status", "-s", type=click.Choice([s.value for s in RequestStatus]), help="Filter by status")
@click.option("--requester", help="Filter by requester")
@click.option("--assignee", help="Filter by assigned executor")
@click.option("--limit", default=50, help="Maximum rows")
@click.pass_context
def request_list(
    ctx: click.Context,
    status: str | None,
    requester: str | None,
    assignee: str | None,
    limit: int,
) -> None:
    """List requests, newest first."""
    from designdesk.db import RequestRepository, get_database

    async def do_list() -> None:
        db = await get_database(ctx.obj["db_path"])
        requests = await RequestRepository(db).list(
            status=RequestStatus(status) if status else None,
            requester_id=requester,
            assigned_to=assignee,
            limit=limit,
        )

        if not requests:
            console.print("[yellow]No requests found[/yellow]")
            return

        table = Table(title="Requests")
        table.add_column("Number", style="dim")
        table.add_column("ID", style="dim")
        table.add_column("Title", style="cyan")
        table.add_column("Type")
        table.add_column("Urgency")
        table.add_column("Status")
        table.add_column("Assignee")

        for r in requests:
            table.add_row(
                r.request_number,
                r.id,
                r.title[:40],
                r.design_type,
                _urgency_cell(r.urgency.value),
                _status_cell(r.status.value),
                r.assigned_to or "-",
            )

        console.print(table)

    run_async(do_list)


@request.command("status")
@click.argument("request_id")
@click.argument("new_status", type=click.Choice([s.value for s in RequestStatus]))
@click.pass_context
def request_status(ctx: click.Context, request_id: str, new_status: str) -> None:
    """Move a request to a new status."""
    from designdesk.db import get_database
    from designdesk.queue import QueueManager

    async def do_update() -> None:
        db = await get_database(ctx.obj["db_path"])
        updated = await QueueManager(db).update_status(request_id, RequestStatus(new_status))
        console.print(f"[green]Request {updated.id} is now {updated.status.value}[/green]")

    run_async(do_update)


@request.command("assign")
@click.argument("request_id")
@click.argument("executor_id")
@click.pass_context
def request_assign(ctx: click.Context, request_id: str, executor_id: str) -> None:
    """Assign a request to a specific executor."""
    from designdesk.db import get_database
    from designdesk.queue import QueueManager

    async def do_assign() -> None:
        db = await get_database(ctx.obj["db_path"])
        updated = await QueueManager(db).assign_manually(request_id, executor_id)
        console.print(f"[green]Request {updated.id} assigned to {updated.assigned_to}[/green]")

    run_async(do_assign)


@cli.group()
def queue() -> None:
    """Inspect the request queue."""
    pass


@queue.command("show")
@click.option("--department", "-d", help="Filter by department")
@click.option("--executor-type", "-e", help="Filter by executor type")
@click.option("--stage", "-s", type=click.Choice(["pending", "assigned"]), help="Filter by stage")
@click.option("--page", default=1, help="Page number")
@click.option("--limit", type=int, help="Rows per page")
@click.pass_context
def queue_show(
    ctx: click.Context,
    department: str | None,
    executor_type: str | None,
    stage: str | None,
    page: int,
    limit: int | None,
) -> None:
    """Show the queue grouped by scope."""
    from designdesk.db import get_database
    from designdesk.queue import QueueManager
    from designdesk.queue.hours import format_time_12h

    async def do_show() -> None:
        db = await get_database(ctx.obj["db_path"])
        result = await QueueManager(db).get_scoped_queue(
            department=department,
            executor_type=executor_type,
            stage=stage,
            page=page,
            limit=limit,
        )

        if not result.queue:
            console.print("[yellow]Queue is empty[/yellow]")
            return

        p = result.pagination
        table = Table(title=f"Queue (page {p.page}/{p.pages}, {p.total} requests)")
        table.add_column("Stage")
        table.add_column("Department", style="cyan")
        table.add_column("Executor Type")
        table.add_column("Pos", justify="right")
        table.add_column("ID", style="dim")
        table.add_column("Title")
        table.add_column("Urgency")
        table.add_column("Since")

        for item in result.queue:
            info = item.queue_info
            since = info.queue_timestamp
            table.add_row(
                info.stage.value,
                info.scope.department,
                info.scope.executor_type.value,
                f"{info.position}/{info.total}",
                item.request.id,
                item.request.title[:30],
                _urgency_cell(info.urgency.value),
                f"{since:%Y-%m-%d} {format_time_12h(since)}" if since else "-",
            )

        console.print(table)

    run_async(do_show)


@queue.command("position")
@click.argument("request_id")
@click.pass_context
def queue_position(ctx: click.Context, request_id: str) -> None:
    """Show where a request stands in its queue."""
    from designdesk.db import get_database
    from designdesk.queue import QueueManager

    async def do_position() -> None:
        db = await get_database(ctx.obj["db_path"])
        entry = await QueueManager(db).get_position(request_id)
        if entry is None:
            console.print(f"[yellow]Request {request_id} is no longer in an active queue[/yellow]")
            return

        console.print(
            f"Request [cyan]{request_id}[/cyan] is [bold]{entry.position}[/bold] of {entry.total} "
            f"in {entry.stage.value} / {entry.scope.department} / {entry.scope.executor_type.value} "
            f"({entry.ahead} ahead)"
        )

    run_async(do_position)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
