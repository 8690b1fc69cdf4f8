"""Google Calendar overlay endpoints: /api/google/*."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from shiftcal.auth.dependencies import get_current_user
from shiftcal.database import get_session
from shiftcal.db.models import User
from shiftcal.config import Settings
from shiftcal.dependencies import get_app_settings, get_google_client
from shiftcal.detached import schedule
from shiftcal.google.client import GoogleCalendarClient
from shiftcal.google.schemas import AuthUrlResponse, EventResponse, StatusResponse, VisibilityResponse
from shiftcal.google.service import (
    begin_auth,
    complete_auth,
    disconnect,
    fetch_events,
    get_status,
    toggle_visibility,
)
from shiftcal.responses import SuccessResponse, generic_success

router = APIRouter(prefix="/api/google", tags=["Google Calendar"])


@router.get("/auth", response_model=AuthUrlResponse)
async def auth_url(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    client: GoogleCalendarClient = Depends(get_google_client),
    settings: Settings = Depends(get_app_settings),
) -> AuthUrlResponse:
    """Return the Google consent URL for the caller."""
    url = await begin_auth(db, user.id, client, settings.oauth_state_ttl_seconds)
    await db.commit()
    return AuthUrlResponse(url=url)


@router.get("/callback", response_class=RedirectResponse, status_code=302)
async def callback(
    code: str | None = Query(None),
    state: str | None = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    client: GoogleCalendarClient = Depends(get_google_client),
) -> RedirectResponse:
    """Browser leg of the consent flow: store tokens, then back to the app."""
    await complete_auth(db, user.id, code, state, client)
    await db.commit()
    return RedirectResponse(url="/", status_code=302)


@router.get("/status", response_model=StatusResponse)
async def status(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> StatusResponse:
    current = await get_status(db, user.id)
    return StatusResponse(connected=current.connected, visible=current.visible)


@router.post("/toggle", response_model=VisibilityResponse)
async def toggle(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> VisibilityResponse:
    visible = await toggle_visibility(db, user.id)
    await db.commit()
    return VisibilityResponse(visible=visible)


@router.post("/disconnect", response_model=SuccessResponse)
async def disconnect_google(
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    client: GoogleCalendarClient = Depends(get_google_client),
) -> SuccessResponse:
    revocation = await disconnect(db, user.id, client)
    await db.commit()
    schedule(background_tasks, revocation)
    return generic_success()


@router.get("/events", response_model=list[EventResponse])
async def events(
    time_min: str | None = Query(None, alias="timeMin"),
    time_max: str | None = Query(None, alias="timeMax"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    client: GoogleCalendarClient = Depends(get_google_client),
    settings: Settings = Depends(get_app_settings),
) -> list[EventResponse]:
    """Overlay events for ``[timeMin, timeMax)``, at most 90 days wide by default."""
    found = await fetch_events(db, user.id, time_min, time_max, client, settings.google_events_max_span_days)
    return [EventResponse.model_validate(event) for event in found]
