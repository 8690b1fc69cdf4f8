"""
Google OAuth 2.0 and Calendar API client.

Handles the authorization-code flow for the read-only calendar scope:
1. Build the consent URL (offline access, forced consent)
2. Exchange the callback code for access + refresh tokens
3. Refresh the access token when it expires
4. Revoke the refresh token on disconnect

and the two read calls the overlay needs: the calendar list and the
events of one calendar within a time window.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote, urlencode

import httpx
import structlog

from shiftcal.config import Settings

logger = structlog.get_logger()

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
GOOGLE_SCOPE = "https://www.googleapis.com/auth/calendar.readonly"

DEFAULT_EVENT_COLOR = "#f59e0b"
UNTITLED_EVENT = "(No title)"


class GoogleAPIError(Exception):
    """A Google endpoint could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class TokenGrant:
    """Tokens returned by the token endpoint."""

    access_token: str
    refresh_token: str | None
    expires_in: int  # seconds
    scope: str = ""


@dataclass(frozen=True)
class CalendarInfo:
    id: str
    summary: str
    background_color: str | None = None


@dataclass(frozen=True)
class CalendarEvent:
    """An event flattened for the overlay, tagged with its source calendar."""

    id: str
    summary: str
    start: str
    end: str
    is_all_day: bool
    calendar_name: str
    color: str


def google_rfc3339(value: datetime) -> str:
    normalized = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    return normalized.astimezone(UTC).isoformat().replace("+00:00", "Z")


def _safe_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error_payload = payload.get("error")
        if isinstance(error_payload, dict):
            message = error_payload.get("message")
            if isinstance(message, str) and message.strip():
                return " ".join(message.split())[:200]
        if isinstance(error_payload, str) and error_payload.strip():
            return " ".join(error_payload.split())[:200]

    raw_text = response.text.strip()
    if raw_text:
        return " ".join(raw_text.split())[:200]
    return "Request failed without an error payload"


def _coerce_expires_in(value: Any) -> int:
    if isinstance(value, bool):
        return 3600
    if isinstance(value, int | float):
        return int(value) if value > 0 else 3600
    return 3600


def _event_from_payload(item: dict[str, Any], calendar: CalendarInfo) -> CalendarEvent:
    start = item.get("start") or {}
    end = item.get("end") or {}
    return CalendarEvent(
        id=str(item.get("id", "")),
        summary=item.get("summary") or UNTITLED_EVENT,
        start=start.get("dateTime") or start.get("date") or "",
        end=end.get("dateTime") or end.get("date") or "",
        is_all_day=not start.get("dateTime"),
        calendar_name=calendar.summary,
        color=calendar.background_color or DEFAULT_EVENT_COLOR,
    )


class GoogleCalendarClient:
    """Thin async wrapper over Google's OAuth and Calendar v3 endpoints.

    Usage:
        client = GoogleCalendarClient(settings)
        url = client.build_auth_url(state)
        grant = await client.exchange_code(code)
        calendars = await client.list_calendars(grant.access_token)
        await client.aclose()
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        self.client_id = settings.google_client_id
        self.client_secret = settings.google_client_secret
        self.redirect_uri = settings.google_redirect_uri
        self.page_size = settings.google_events_page_size
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=settings.google_http_timeout_seconds)

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.redirect_uri)

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    def build_auth_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": GOOGLE_SCOPE,
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenGrant:
        """Trade an authorization code for tokens."""
        return await self._token_request(
            {
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            }
        )

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """Get a new access token. Google normally omits the refresh token here."""
        return await self._token_request(
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            }
        )

    async def revoke(self, token: str) -> None:
        try:
            response = await self._http.post(
                GOOGLE_REVOKE_URL,
                params={"token": token},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as exc:
            msg = f"Google token revocation request failed: {exc}"
            raise GoogleAPIError(msg) from exc
        if not response.is_success:
            msg = f"Google token revocation failed: {_safe_error_message(response)}"
            raise GoogleAPIError(msg, response.status_code)

    async def _token_request(self, data: dict[str, str]) -> TokenGrant:
        if not self.client_id or not self.client_secret:
            msg = "Google OAuth client credentials are not configured"
            raise GoogleAPIError(msg)

        try:
            response = await self._http.post(
                GOOGLE_TOKEN_URL,
                data=data,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            msg = f"Google OAuth token request failed: {exc}"
            raise GoogleAPIError(msg) from exc

        if not response.is_success:
            msg = f"Google OAuth token request failed: {_safe_error_message(response)}"
            raise GoogleAPIError(msg, response.status_code)

        payload = self._json(response)
        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            msg = "Google OAuth token response is missing an access_token"
            raise GoogleAPIError(msg, response.status_code)

        refresh_token = payload.get("refresh_token")
        return TokenGrant(
            access_token=access_token,
            refresh_token=refresh_token if isinstance(refresh_token, str) and refresh_token else None,
            expires_in=_coerce_expires_in(payload.get("expires_in")),
            scope=str(payload.get("scope") or ""),
        )

    # ------------------------------------------------------------------
    # Calendar API
    # ------------------------------------------------------------------

    async def list_calendars(self, access_token: str) -> list[CalendarInfo]:
        payload = await self._get(access_token, "/users/me/calendarList")
        calendars: list[CalendarInfo] = []
        for item in payload.get("items") or []:
            if not isinstance(item, dict) or "id" not in item:
                continue
            calendars.append(
                CalendarInfo(
                    id=str(item["id"]),
                    summary=str(item.get("summary") or item["id"]),
                    background_color=item.get("backgroundColor"),
                )
            )
        return calendars

    async def list_events(
        self,
        access_token: str,
        calendar: CalendarInfo,
        time_min: datetime,
        time_max: datetime,
    ) -> list[CalendarEvent]:
        """First page of expanded single events in ``[time_min, time_max)``, by start time."""
        params = {
            "timeMin": google_rfc3339(time_min),
            "timeMax": google_rfc3339(time_max),
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": str(self.page_size),
        }
        payload = await self._get(access_token, f"/calendars/{quote(calendar.id, safe='')}/events", params=params)
        return [
            _event_from_payload(item, calendar)
            for item in payload.get("items") or []
            if isinstance(item, dict)
        ]

    async def _get(self, access_token: str, path: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        try:
            response = await self._http.get(
                f"{GOOGLE_CALENDAR_API}{path}",
                params=params,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as exc:
            msg = f"Google Calendar request failed: {exc}"
            raise GoogleAPIError(msg) from exc

        if not response.is_success:
            msg = f"Google Calendar API request failed ({response.status_code}): {_safe_error_message(response)}"
            raise GoogleAPIError(msg, response.status_code)
        return self._json(response)

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            msg = "Google returned invalid JSON"
            raise GoogleAPIError(msg, response.status_code) from exc
        if not isinstance(payload, dict):
            msg = "Google returned an unexpected JSON payload shape"
            raise GoogleAPIError(msg, response.status_code)
        return payload
