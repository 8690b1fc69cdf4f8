"""Sharing endpoints: /api/shares and /api/shared-calendars."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shiftcal.auth.dependencies import get_current_user
from shiftcal.config import Settings
from shiftcal.database import get_session
from shiftcal.db.models import User
from shiftcal.dependencies import get_app_settings, get_email_service
from shiftcal.detached import schedule
from shiftcal.email.service import EmailService
from shiftcal.labels.schemas import LabelResponse
from shiftcal.responses import SuccessResponse, generic_success
from shiftcal.sharing.schemas import (
    SharedCalendarResponse,
    SharedWithMeResponse,
    ShareRequest,
    ShareResponse,
)
from shiftcal.sharing.service import (
    get_shared_calendar,
    invite,
    list_shared_with_me,
    list_shares,
    revoke,
)

router = APIRouter(tags=["Sharing"])


# ---------------------------------------------------------------------------
# As owner
# ---------------------------------------------------------------------------


@router.post("/api/shares", response_model=SuccessResponse)
async def create_share(
    body: ShareRequest,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    email_service: EmailService = Depends(get_email_service),
    settings: Settings = Depends(get_app_settings),
) -> SuccessResponse:
    """
    Share the caller's calendar.

    The response is the same whether or not the email belongs to an account,
    so this cannot be used to probe for registered addresses.
    """
    notification = await invite(db, user, body.email, email_service, settings.app_base_url)
    await db.commit()
    schedule(background_tasks, notification)
    return generic_success()


@router.get("/api/shares", response_model=list[ShareResponse])
async def get_shares(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[ShareResponse]:
    return [ShareResponse(id=share_id, email=email) for share_id, email in await list_shares(db, user.id)]


@router.delete("/api/shares/{share_id}", response_model=SuccessResponse)
async def delete_share(
    share_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> SuccessResponse:
    await revoke(db, user.id, share_id)
    await db.commit()
    return generic_success()


# ---------------------------------------------------------------------------
# As viewer
# ---------------------------------------------------------------------------


@router.get("/api/shared-calendars", response_model=list[SharedWithMeResponse])
async def get_shared_calendars(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[SharedWithMeResponse]:
    return [SharedWithMeResponse(email=email) for email in await list_shared_with_me(db, user.id)]


@router.get("/api/shared-calendars/{owner_email}", response_model=SharedCalendarResponse)
async def read_shared_calendar(
    owner_email: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> SharedCalendarResponse:
    shared = await get_shared_calendar(db, user.id, owner_email)
    return SharedCalendarResponse(
        email=shared.owner_email,
        labels=[LabelResponse.model_validate(label) for label in shared.labels],
        shifts=shared.shifts,
    )
