"""FastAPI application factory and service lifecycle."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rental_bot import __version__
from rental_bot.config import Config
from rental_bot.logging_config import configure_logging, get_logger
from rental_bot.middleware import ContextMiddleware, RequestLoggingMiddleware
from rental_bot.models import ErrorResponse
from rental_bot.models.config import AppConfig
from rental_bot.repositories.record_store import PersistenceError
from rental_bot.services.clock import Clock, SystemClock, VirtualClock
from rental_bot.services.container import ServiceContainer, build_services

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the services with the server and stop them with it.

    Startup creates the storage directories, loads all collections and starts
    the scheduler. Shutdown stops the scheduler, flushes and takes a backup.
    """
    services: ServiceContainer = app.state.services
    logger.info("bot_core_starting", version=__version__)

    counts = services.start()
    logger.info("bot_core_started", status="ready", **counts)
    try:
        yield
    finally:
        logger.info("bot_core_shutting_down")
        try:
            services.stop()
        except PersistenceError as e:
            logger.error("shutdown_backup_failed", error=str(e))
        logger.info("bot_core_stopped")


def _clock_from_env() -> Clock:
    if os.getenv("VIRTUAL_TIME", "false").lower() == "true":
        return VirtualClock()
    return SystemClock()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


async def unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log with traceback, answer with a generic 500."""
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="internal_server_error", message="An unexpected error occurred").model_dump(),
    )


def _add_service_routes(app: FastAPI, services: ServiceContainer) -> None:
    @app.get("/")
    async def root() -> dict[str, str]:
        return {"service": "rental-bot", "status": "running", "version": __version__}

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Transport, scheduler and storage state with record counts."""
        return {
            "status": "healthy",
            "transport": "connected" if services.messenger.is_connected else "disconnected",
            "scheduler": "running" if services.scheduler.is_running else "stopped",
            "storage": str(services.store.data_dir),
            "records": services.cache.get_statistics(),
        }


def create_app(config: Optional[AppConfig] = None, services: Optional[ServiceContainer] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Used by uvicorn as a factory. Tests pass prebuilt services instead.

    Args:
        config: configuration; loaded from settings.yaml (CONFIG_PATH) if omitted
        services: prebuilt services; built from config if omitted

    Returns:
        Configured FastAPI application instance

    Raises:
        ConfigurationError: If no config is given and settings.yaml is missing or invalid
    """
    if services is None:
        services = build_services(config or Config().settings, clock=_clock_from_env())
    config = services.config

    configure_logging(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        json_format=os.getenv("LOG_FORMAT", "json").lower() == "json",
        log_dir=config.logging.log_dir,
    )

    app = FastAPI(
        title="Rental Bot Core",
        description="Rental, trial and moderation state for a group-chat bot",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    # Allow all origins for local tooling
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RequestLoggingMiddleware,
        include_request_details=_env_flag("LOG_REQUEST_DETAILS", "true"),
    )
    app.add_middleware(ContextMiddleware)

    from rental_bot.api.control import router as control_router

    app.include_router(control_router)
    _add_service_routes(app, services)
    app.add_exception_handler(Exception, unhandled_exception)

    logger.info("app_created", routes=len(app.routes), virtual_time=services.time_controller is not None)
    return app
