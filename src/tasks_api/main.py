"""FastAPI application factory for the Tasks API."""

import logging
import socket
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine

from tasks_api import __version__
from tasks_api.config import Settings, get_settings
from tasks_api.database import close_db, create_engine, init_db
from tasks_api.errors import register_error_handlers
from tasks_api.middleware import AccessLogMiddleware
from tasks_api.repository import TaskRepository
from tasks_api.routes import health_router, tasks_router
from tasks_api.shipper import RemoteLogShipper
from tasks_api.telemetry import instrument_fastapi, setup_telemetry


logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    engine: AsyncEngine | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use. Defaults to the cached environment settings.
        engine: Pre-built async engine. When omitted one is created from the
            settings and disposed on shutdown.
        http_client: Client for the remote log shipper. When omitted the
            shipper creates and closes its own.

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or get_settings()
    _configure_logging(settings)

    owns_engine = engine is None
    engine = engine if engine is not None else create_engine(settings)

    # Initialize OTel SDK BEFORE app creation
    if settings.telemetry_enabled:
        setup_telemetry(settings, engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        if settings.create_schema:
            await init_db(engine)
            logger.info("Database schema ready")

        app.state.repository = TaskRepository(engine)
        app.state.shipper = RemoteLogShipper(settings.remote_log_url, client=http_client)

        yield

        await app.state.shipper.aclose()
        if owns_engine:
            await close_db(engine)
        logger.info("Database connections closed")

    app = FastAPI(
        title=settings.app_name,
        description="CRUD API for tasks",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    if settings.telemetry_enabled:
        instrument_fastapi(app)

    app.include_router(health_router)
    app.include_router(tasks_router)
    register_error_handlers(app)

    return app


def _configure_logging(settings: Settings) -> None:
    """Configure logging for the application."""
    logging.basicConfig(level=settings.log_level.upper())
    logging.getLogger("tasks_api").setLevel(settings.log_level.upper())

    # Framework loggers are noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def announce_startup(app: FastAPI, port: int) -> None:
    """Emit the readiness records: one local log line and one remote record."""
    logger.info("API listening on port %d", port)
    app.state.shipper.info(f"API started on port {port}")


class TasksServer(uvicorn.Server):
    """uvicorn server that announces readiness once the socket is bound.

    The app lifespan runs before uvicorn binds, so the announcement hooks the
    end of ``startup`` instead; a failed bind exits before reaching it.
    """

    def __init__(self, config: uvicorn.Config, app: FastAPI) -> None:
        super().__init__(config)
        self._app = app

    async def startup(self, sockets: list[socket.socket] | None = None) -> None:
        await super().startup(sockets=sockets)
        if self.started and not self.should_exit:
            announce_startup(self._app, self.config.port)


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    settings = get_settings()
    app = create_app(settings)
    config = uvicorn.Config(app, host=settings.host, port=settings.port)
    TasksServer(config, app).run()
