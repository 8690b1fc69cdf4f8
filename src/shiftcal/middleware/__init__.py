"""Middleware registration."""

from fastapi import FastAPI

from shiftcal.config import Settings
from shiftcal.middleware.cors import setup_cors
from shiftcal.middleware.error_handler import setup_error_handlers
from shiftcal.middleware.logging import setup_logging
from shiftcal.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware in the correct order.

    FastAPI/Starlette executes middleware in reverse-add order (last added = outermost).
    CORS must be outermost so it wraps error responses from inner middleware.
    Rate limiting is not global: the auth routes declare it as a dependency.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
