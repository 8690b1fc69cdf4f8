"""Authentication router: all /api/auth/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shiftcal.auth.dependencies import get_optional_user
from shiftcal.auth.jwt import create_session_token
from shiftcal.auth.schemas import (
    AuthSuccessResponse,
    InitiateResponse,
    LoginRequest,
    MeResponse,
    RegisterInitiateRequest,
    RegisterVerifyRequest,
)
from shiftcal.auth.service import authenticate, register_initiate, register_verify
from shiftcal.config import Settings
from shiftcal.database import get_session
from shiftcal.db.models import User
from shiftcal.dependencies import get_app_settings, get_email_service
from shiftcal.detached import schedule
from shiftcal.email.service import EmailService
from shiftcal.middleware.rate_limit import rate_limit
from shiftcal.responses import SuccessResponse, generic_success

logger = structlog.get_logger()

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_ttl_days * 24 * 60 * 60,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def _clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@router.post(
    "/register/initiate",
    response_model=InitiateResponse,
    dependencies=[Depends(rate_limit("register"))],
)
async def initiate_registration(
    body: RegisterInitiateRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_session),
    email_service: EmailService = Depends(get_email_service),
    settings: Settings = Depends(get_app_settings),
) -> InitiateResponse:
    """Start registration: store a pending account and email a one-time code."""
    delivery = await register_initiate(db, body.email, body.password, email_service, settings)
    await db.commit()
    schedule(background_tasks, delivery)
    return InitiateResponse()


@router.post(
    "/register/verify",
    response_model=AuthSuccessResponse,
    dependencies=[Depends(rate_limit("register-verify"))],
)
async def verify_registration(
    body: RegisterVerifyRequest,
    response: Response,
    db: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
) -> AuthSuccessResponse:
    """Finish registration with the emailed code and sign the new user in."""
    user = await register_verify(db, body.email, body.code)
    # The account is committed only once its session token exists.
    token = create_session_token(user.id, user.email, settings=settings)
    await db.commit()
    _set_session_cookie(response, token, settings)
    return AuthSuccessResponse(email=user.email)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@router.post(
    "/login",
    response_model=AuthSuccessResponse,
    dependencies=[Depends(rate_limit("login"))],
)
async def login(
    body: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
) -> AuthSuccessResponse:
    """Login with email + password."""
    user = await authenticate(db, body.email, body.password)
    _set_session_cookie(response, create_session_token(user.id, user.email, settings=settings), settings)
    return AuthSuccessResponse(email=user.email)


@router.post("/logout", response_model=SuccessResponse)
async def logout(response: Response, settings: Settings = Depends(get_app_settings)) -> SuccessResponse:
    """Clear the session cookie. Always succeeds."""
    _clear_session_cookie(response, settings)
    return generic_success()


@router.get("/me", response_model=MeResponse, response_model_exclude_none=True)
async def me(user: User | None = Depends(get_optional_user)) -> MeResponse:
    if user is None:
        return MeResponse(authenticated=False)
    return MeResponse(authenticated=True, email=user.email)
