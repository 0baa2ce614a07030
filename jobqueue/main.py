"""Job queue service - FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from jobqueue.config import Settings, settings
from jobqueue.api.v1.router import v1_router
from jobqueue.api.v1.health import router as health_root_router
from jobqueue.jobs.builtin_handlers import register_builtin_handlers
from jobqueue.jobs.dispatcher import JobDispatcher
from jobqueue.jobs.in_process_queue import InProcessQueue

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def build_queue(config: Settings) -> InProcessQueue:
    """Create the queue described by config and register start-up handlers."""
    queue = InProcessQueue.from_settings(config)
    if config.register_builtin_handlers:
        register_builtin_handlers(queue.registry)
    return queue


def create_app(
    dispatcher: Optional[JobDispatcher] = None,
    config: Optional[Settings] = None,
    admin_token: Optional[str] = None,
) -> FastAPI:
    """Build the app. A dispatcher passed in is used as-is and never
    started or stopped by the app; otherwise one is built from config
    during lifespan."""
    config = config or settings
    owned = dispatcher is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if owned:
            configure_logging(config.log_level)
            app.state.dispatcher = build_queue(config)
            logger.info(
                "Starting job queue service (storage=%s, concurrency=%d)",
                config.storage_type, config.max_concurrency,
            )
            if config.autostart:
                await app.state.dispatcher.start()

        yield

        if owned:
            logger.info("Shutting down job queue service")
            await app.state.dispatcher.stop()

    app = FastAPI(
        title="Job Queue Service",
        description="Priority job scheduling with concurrency limits and timeouts",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.dispatcher = dispatcher
    app.state.admin_token = admin_token if admin_token is not None else config.admin_token

    app.include_router(health_root_router, tags=["health"])  # GET /health at root
    app.include_router(v1_router)  # All /api/v1/* endpoints
    return app


app = create_app()


def run() -> None:
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
