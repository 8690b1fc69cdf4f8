"""
HS256 session token management.

A session token is self-contained: it carries the user id and email and is
valid for ``session_ttl_days``. There is no server-side session table, so a
token stays valid until it expires even after logout clears the cookie.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from shiftcal.config import Settings, get_settings
from shiftcal.errors import ConfigurationError


@dataclass(frozen=True)
class SessionClaims:
    """Identity carried by a session token."""

    user_id: int
    email: str


def _secret(settings: Settings) -> str:
    if not settings.session_secret:
        msg = "SHIFTCAL_SESSION_SECRET is required"
        raise ConfigurationError(msg)
    return settings.session_secret


def create_session_token(
    user_id: int,
    email: str,
    *,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> str:
    """
    Create a signed session token.

    Args:
        user_id: The user's database ID.
        email: The user's email, as stored.
        settings: Settings override (defaults to the cached settings).
        now: Issue time override, for tests.

    Returns:
        Encoded JWT string.
    """
    settings = settings or get_settings()
    now = now or datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": now + timedelta(days=settings.session_ttl_days),
        "iss": settings.jwt_issuer,
        "type": "session",
    }
    return jwt.encode(payload, _secret(settings), algorithm=settings.jwt_algorithm)


def verify_session_token(token: str, *, settings: Settings | None = None) -> SessionClaims:
    """
    Verify and decode a session token.

    Raises:
        jwt.InvalidTokenError: If the token is malformed, tampered with,
            expired, or not a session token.
    """
    settings = settings or get_settings()
    payload: dict[str, Any] = jwt.decode(
        token,
        _secret(settings),
        algorithms=[settings.jwt_algorithm],
        issuer=settings.jwt_issuer,
        options={"require": ["exp", "sub"]},
    )

    if payload.get("type") != "session":
        msg = f"Expected token type 'session', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        msg = "Invalid subject claim"
        raise jwt.InvalidTokenError(msg) from None

    return SessionClaims(user_id=user_id, email=str(payload.get("email", "")))
