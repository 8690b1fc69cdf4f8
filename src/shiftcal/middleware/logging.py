"""Structured logging configuration with structlog."""

import logging
from collections.abc import MutableMapping
from typing import Any

import structlog

from shiftcal.auth.otc import mask_email
from shiftcal.config import Settings

# Keys whose values are addresses of real people; always masked in output.
EMAIL_KEYS = frozenset({"email", "to", "target", "target_email", "owner_email", "viewer_email"})
# Keys that must never reach a log line at all.
SECRET_KEYS = frozenset(
    {"password", "password_hash", "access_token", "refresh_token", "token", "client_secret", "session_secret"}
)
REDACTED = "[redacted]"

# Third-party loggers that would log request URLs, tokens included.
_QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite")

EventDict = MutableMapping[str, Any]


def mask_email_fields(_logger: Any, _method: str, event_dict: EventDict) -> EventDict:
    """Mask the local part of every address-valued field."""
    for key in EMAIL_KEYS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str) and "@" in value:
            event_dict[key] = mask_email(value)
    return event_dict


def redact_secrets(_logger: Any, _method: str, event_dict: EventDict) -> EventDict:
    for key in SECRET_KEYS.intersection(event_dict):
        event_dict[key] = REDACTED
    return event_dict


class AppContext:
    """Stamp every event with the service name and deployment environment."""

    def __init__(self, settings: Settings) -> None:
        self.environment = settings.environment
        self.version = settings.app_version

    def __call__(self, _logger: Any, _method: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", "shiftcal")
        event_dict.setdefault("environment", self.environment)
        event_dict.setdefault("version", self.version)
        return event_dict


def setup_logging(settings: Settings) -> None:
    """Configure structlog for JSON or console output."""
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            AppContext(settings),
            redact_secrets,
            mask_email_fields,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
