"""FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from shiftcal.auth.router import router as auth_router
from shiftcal.calendar.router import router as calendar_router
from shiftcal.config import Settings, get_settings
from shiftcal.database import close_db, init_db
from shiftcal.db.migrate import migrate_database
from shiftcal.email.service import EmailService
from shiftcal.errors import ConfigurationError
from shiftcal.google.client import GoogleCalendarClient
from shiftcal.google.router import router as google_router
from shiftcal.health.router import router as health_router
from shiftcal.labels.router import router as labels_router
from shiftcal.middleware import setup_middleware
from shiftcal.middleware.rate_limit import RateLimiter
from shiftcal.sharing.router import router as sharing_router
from shiftcal.workers.housekeeping import Housekeeper

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings: Settings = app.state.settings
    await migrate_database(settings.database_url)
    await init_db(settings.database_url, echo=settings.echo_sql, busy_timeout_ms=settings.sqlite_busy_timeout_ms)

    housekeeper = Housekeeper(app.state.rate_limiter, settings.housekeeping_interval_seconds)
    app.state.housekeeper = housekeeper
    housekeeper.start()
    logger.info("app_started", environment=settings.environment, version=settings.app_version)

    yield

    await housekeeper.stop()
    await app.state.google_client.aclose()
    await close_db()


def create_app(
    settings: Settings | None = None,
    *,
    google_client: GoogleCalendarClient | None = None,
    email_service: EmailService | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Raises:
        ConfigurationError: If no session secret is configured.
    """
    settings = settings or get_settings()
    if not settings.session_secret:
        msg = "SHIFTCAL_SESSION_SECRET must be set"
        raise ConfigurationError(msg)

    app = FastAPI(
        title="ShiftCal API",
        description="Shift calendar with sharing and a Google Calendar overlay",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.rate_limiter = RateLimiter(
        max_attempts=settings.rate_limit_max_attempts,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.state.google_client = google_client or GoogleCalendarClient(settings)
    app.state.email_service = email_service or EmailService(settings=settings)

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(labels_router)
    app.include_router(calendar_router)
    app.include_router(sharing_router)
    app.include_router(google_router)

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "shiftcal.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
