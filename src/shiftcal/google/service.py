"""
Google Calendar overlay: connection lifecycle and event fetch.

Per user:

    Disconnected -> PendingCallback (state stored) -> Connected(visible|hidden) -> Disconnected

Tokens are stored per user in ``google_tokens``. The single-use CSRF
``state`` rows in ``oauth_states`` bind a consent round-trip to the user
who started it.
"""

from __future__ import annotations

import asyncio
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert

from shiftcal import clock
from shiftcal.db.models import GoogleToken, OAuthState
from shiftcal.detached import Detached
from shiftcal.errors import (
    InvalidDateRange,
    InvalidOrExpiredState,
    MissingCode,
    MissingState,
    NoRefreshTokenReceived,
    NotConnected,
    ProviderNotConfigured,
    TokenExchangeFailed,
    TokenExpiredReconnectRequired,
    UpstreamFetchFailed,
)
from shiftcal.google.client import CalendarEvent, CalendarInfo, GoogleAPIError, GoogleCalendarClient

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

MAX_EVENTS_SPAN_DAYS = 90


@dataclass(frozen=True)
class ConnectionStatus:
    connected: bool
    visible: bool


async def _get_token(db: AsyncSession, user_id: int) -> GoogleToken | None:
    result = await db.execute(select(GoogleToken).where(GoogleToken.user_id == user_id))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Connect
# ---------------------------------------------------------------------------


async def begin_auth(db: AsyncSession, user_id: int, client: GoogleCalendarClient, state_ttl_seconds: int) -> str:
    """
    Store a fresh state for ``user_id``, valid for ``state_ttl_seconds``, and return the consent URL.

    Raises:
        ProviderNotConfigured: Client id or redirect URI is missing.
    """
    if not client.configured:
        raise ProviderNotConfigured

    state = secrets.token_urlsafe(32)
    expires_at = clock.now_ms() + state_ttl_seconds * 1000
    db.add(OAuthState(state=state, user_id=user_id, expires_at=expires_at))
    await db.flush()
    logger.info("google_auth_started", user_id=user_id)
    return client.build_auth_url(state)


async def complete_auth(
    db: AsyncSession,
    user_id: int,
    code: str | None,
    state: str | None,
    client: GoogleCalendarClient,
) -> None:
    """
    Handle the consent callback and store the user's tokens.

    The state row is deleted as soon as it matches, so a second callback
    with the same state fails even if the token exchange below does not.
    """
    if not code:
        raise MissingCode
    if not state:
        raise MissingState

    result = await db.execute(select(OAuthState).where(OAuthState.state == state))
    stored = result.scalar_one_or_none()
    if stored is None or stored.user_id != user_id or clock.now_ms() > stored.expires_at:
        logger.warning("google_state_rejected", user_id=user_id)
        raise InvalidOrExpiredState

    await db.execute(delete(OAuthState).where(OAuthState.state == state))
    await db.commit()

    try:
        grant = await client.exchange_code(code)
    except GoogleAPIError as exc:
        logger.warning("google_token_exchange_failed", user_id=user_id, error=str(exc))
        raise TokenExchangeFailed from exc

    if not grant.refresh_token:
        raise NoRefreshTokenReceived

    expires_at = clock.now_ms() + grant.expires_in * 1000
    stmt = insert(GoogleToken).values(
        user_id=user_id,
        access_token=grant.access_token,
        refresh_token=grant.refresh_token,
        expires_at=expires_at,
        scope=grant.scope,
        visible=True,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[GoogleToken.user_id],
        set_={
            "access_token": stmt.excluded.access_token,
            "refresh_token": stmt.excluded.refresh_token,
            "expires_at": stmt.excluded.expires_at,
            "scope": stmt.excluded.scope,
        },
    )
    await db.execute(stmt)
    logger.info("google_connected", user_id=user_id)


# ---------------------------------------------------------------------------
# Connection state
# ---------------------------------------------------------------------------


async def get_status(db: AsyncSession, user_id: int) -> ConnectionStatus:
    token = await _get_token(db, user_id)
    if token is None:
        return ConnectionStatus(connected=False, visible=False)
    return ConnectionStatus(connected=True, visible=bool(token.visible))


async def toggle_visibility(db: AsyncSession, user_id: int) -> bool:
    """Flip the overlay on or off. Returns the new visibility."""
    token = await _get_token(db, user_id)
    if token is None:
        raise NotConnected
    token.visible = not token.visible
    await db.flush()
    return bool(token.visible)


async def disconnect(db: AsyncSession, user_id: int, client: GoogleCalendarClient) -> Detached | None:
    """
    Forget the user's tokens. Idempotent.

    Returns the upstream revocation as a detached effect when there was a
    token to revoke; the local delete never depends on it.
    """
    token = await _get_token(db, user_id)
    refresh_token = token.refresh_token if token is not None else None
    await db.execute(delete(GoogleToken).where(GoogleToken.user_id == user_id))
    if refresh_token is None:
        return None

    logger.info("google_disconnected", user_id=user_id)
    return Detached(name="revoke_google_token", func=client.revoke, args=(refresh_token,))


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def parse_iso8601(value: str) -> datetime:
    """Parse an ISO 8601 timestamp; ``Z`` is accepted and naive values are UTC."""
    normalized = value.strip()
    if normalized.endswith(("Z", "z")):
        normalized = f"{normalized[:-1]}+00:00"
    parsed = datetime.fromisoformat(normalized)
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def validate_range(
    time_min: str | None, time_max: str | None, max_span_days: int = MAX_EVENTS_SPAN_DAYS
) -> tuple[datetime, datetime]:
    if not time_min or not time_max:
        msg = "timeMin and timeMax are required"
        raise InvalidDateRange(msg)
    try:
        start = parse_iso8601(time_min)
        end = parse_iso8601(time_max)
    except ValueError:
        raise InvalidDateRange from None

    if end - start > timedelta(days=max_span_days):
        msg = f"Date range must not exceed {max_span_days} days"
        raise InvalidDateRange(msg)
    if end <= start:
        msg = "timeMax must be after timeMin"
        raise InvalidDateRange(msg)
    return start, end


async def _access_token(db: AsyncSession, token: GoogleToken, client: GoogleCalendarClient) -> str:
    """The stored access token, refreshed first if it has expired."""
    if clock.now_ms() < token.expires_at:
        return token.access_token

    user_id = token.user_id
    try:
        grant = await client.refresh(token.refresh_token)
    except GoogleAPIError as exc:
        logger.warning("google_token_refresh_failed", user_id=user_id, error=str(exc))
        await db.execute(delete(GoogleToken).where(GoogleToken.user_id == user_id))
        await db.commit()
        raise TokenExpiredReconnectRequired from exc

    token.access_token = grant.access_token
    token.expires_at = clock.now_ms() + grant.expires_in * 1000
    if grant.refresh_token:
        token.refresh_token = grant.refresh_token
    await db.commit()
    logger.info("google_token_refreshed", user_id=user_id)
    return grant.access_token


async def _calendar_events(
    client: GoogleCalendarClient,
    access_token: str,
    calendar: CalendarInfo,
    start: datetime,
    end: datetime,
) -> list[CalendarEvent]:
    try:
        return await client.list_events(access_token, calendar, start, end)
    except GoogleAPIError as exc:
        logger.warning("google_calendar_fetch_failed", calendar_id=calendar.id, error=str(exc))
        return []


async def fetch_events(
    db: AsyncSession,
    user_id: int,
    time_min: str | None,
    time_max: str | None,
    client: GoogleCalendarClient,
    max_span_days: int = MAX_EVENTS_SPAN_DAYS,
) -> list[CalendarEvent]:
    """
    Events from every calendar of the user's Google account in the window.

    A hidden overlay returns nothing without contacting Google. Calendars
    are fetched concurrently; one that fails contributes no events.

    Raises:
        NotConnected: No stored tokens.
        InvalidDateRange: Unparseable, inverted or too wide window.
        TokenExpiredReconnectRequired: Refresh failed; the tokens were dropped.
        UpstreamFetchFailed: The calendar list could not be fetched.
    """
    token = await _get_token(db, user_id)
    if token is None:
        raise NotConnected
    if not token.visible:
        return []

    start, end = validate_range(time_min, time_max, max_span_days)
    access_token = await _access_token(db, token, client)

    try:
        calendars = await client.list_calendars(access_token)
    except GoogleAPIError as exc:
        logger.warning("google_calendar_list_failed", user_id=user_id, error=str(exc))
        raise UpstreamFetchFailed from exc

    results = await asyncio.gather(
        *(_calendar_events(client, access_token, calendar, start, end) for calendar in calendars)
    )
    return [event for events in results for event in events]


# ---------------------------------------------------------------------------
# Housekeeping
# ---------------------------------------------------------------------------


async def sweep_expired_states(db: AsyncSession, now: int | None = None) -> int:
    """Delete every OAuth state past its expiry. Returns rows removed."""
    now = clock.now_ms() if now is None else now
    result = await db.execute(delete(OAuthState).where(OAuthState.expires_at < now))
    return result.rowcount or 0
