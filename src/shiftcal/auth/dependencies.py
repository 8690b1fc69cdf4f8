"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shiftcal.auth.jwt import verify_session_token
from shiftcal.auth.service import get_user_by_id
from shiftcal.config import Settings
from shiftcal.database import get_session
from shiftcal.db.models import User
from shiftcal.dependencies import get_app_settings
from shiftcal.errors import AuthError

logger = structlog.get_logger()


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
) -> User | None:
    """
    Derive the caller's identity from the session cookie.

    A missing, malformed, expired or tampered token is anonymous, not an
    error. So is a valid token whose user no longer exists.
    """
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        return None

    try:
        claims = verify_session_token(token, settings=settings)
    except jwt.InvalidTokenError as e:
        logger.debug("session_token_rejected", reason=str(e))
        return None

    return await get_user_by_id(db, claims.user_id)


async def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    """Same as get_optional_user but rejects anonymous callers with 401."""
    if user is None:
        raise AuthError
    return user
