"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from designdesk import __version__
from designdesk.api.routes import executors, queue, requests
from designdesk.config import get_settings
from designdesk.db.connection import close_database, get_database
from designdesk.events import event_bus
from designdesk.queue import QueueManager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    logger.info("Starting Designdesk API...")
    settings = get_settings()
    db = await get_database(settings.db_path)
    app.state.db = db
    app.state.events = event_bus
    logger.info("Database connected")

    manager = QueueManager(db, event_bus, settings)
    sweep_task = asyncio.create_task(manager.start())

    yield

    # Shutdown
    logger.info("Shutting down Designdesk API...")
    await manager.stop()
    sweep_task.cancel()
    try:
        await sweep_task
    except asyncio.CancelledError:
        pass
    await close_database()
    logger.info("Database disconnected")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Designdesk",
        description="Design request intake, assignment and queueing",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(requests.router, prefix="/api/requests", tags=["requests"])
    app.include_router(executors.router, prefix="/api/executors", tags=["executors"])
    app.include_router(queue.router, prefix="/api/queue", tags=["queue"])

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    return app


# Create the app instance
app = create_app()
