"""Shared test fixtures."""

from __future__ import annotations

import itertools
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from shiftcal.auth.otc import get_otc
from shiftcal.config import Settings, get_settings
from shiftcal.database import close_db, get_session_factory, init_db
from shiftcal.db.migrate import migrate_database
from shiftcal.email.service import EmailService, InMemoryProvider
from shiftcal.google.client import GoogleCalendarClient
from shiftcal.main import create_app

TEST_PASSWORD = "password123"

_ip_counter = itertools.count(1)


def next_client_ip() -> str:
    """A fresh client address so helper traffic never shares a rate-limit bucket."""
    n = next(_ip_counter)
    return f"10.{(n >> 16) & 255}.{(n >> 8) & 255}.{n & 255}"


# ---------------------------------------------------------------------------
# Fake Google
# ---------------------------------------------------------------------------


class FakeGoogle:
    """In-process stand-in for Google's OAuth and Calendar endpoints."""

    def __init__(self) -> None:
        self.calendars: list[dict[str, Any]] = [
            {"id": "primary", "summary": "Personal", "backgroundColor": "#0b8043"},
            {"id": "work", "summary": "Work"},
        ]
        self.events: dict[str, list[dict[str, Any]]] = {
            "primary": [
                {
                    "id": "evt-1",
                    "summary": "Dentist",
                    "start": {"dateTime": "2025-06-10T09:00:00Z"},
                    "end": {"dateTime": "2025-06-10T10:00:00Z"},
                },
            ],
            "work": [
                {"id": "evt-2", "start": {"date": "2025-06-12"}, "end": {"date": "2025-06-13"}},
            ],
        }
        self.failing_calendars: set[str] = set()
        self.calendar_list_status = 200
        self.token_status = 200
        self.include_refresh_token = True
        self.refresh_status = 200
        self.revoke_status = 200
        self.requests: list[httpx.Request] = []

    def requests_to(self, path_suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(path_suffix)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.url.host == "oauth2.googleapis.com" and path == "/token":
            form = parse_qs(request.content.decode())
            if form["grant_type"][0] == "refresh_token":
                if self.refresh_status != 200:
                    return httpx.Response(self.refresh_status, json={"error": "invalid_grant"})
                return httpx.Response(200, json={"access_token": "access-refreshed", "expires_in": 3600})
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_grant"})
            payload: dict[str, Any] = {
                "access_token": "access-1",
                "expires_in": 3600,
                "scope": "https://www.googleapis.com/auth/calendar.readonly",
                "token_type": "Bearer",
            }
            if self.include_refresh_token:
                payload["refresh_token"] = "refresh-1"
            return httpx.Response(200, json=payload)

        if request.url.host == "oauth2.googleapis.com" and path == "/revoke":
            return httpx.Response(self.revoke_status)

        if path == "/calendar/v3/users/me/calendarList":
            if self.calendar_list_status != 200:
                return httpx.Response(self.calendar_list_status, json={"error": {"message": "backend error"}})
            return httpx.Response(200, json={"items": self.calendars})

        if path.startswith("/calendar/v3/calendars/") and path.endswith("/events"):
            calendar_id = path.split("/")[4]
            if calendar_id in self.failing_calendars:
                return httpx.Response(500, json={"error": {"message": "boom"}})
            return httpx.Response(200, json={"items": self.events.get(calendar_id, [])})

        return httpx.Response(404)


# ---------------------------------------------------------------------------
# App / client
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    """Settings pointing at a throwaway SQLite file."""
    monkeypatch.setenv("SHIFTCAL_SESSION_SECRET", "test-secret-that-is-long-enough-for-hs256")
    monkeypatch.setenv("SHIFTCAL_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'shiftcal.db'}")
    monkeypatch.setenv("SHIFTCAL_ENVIRONMENT", "test")
    monkeypatch.setenv("SHIFTCAL_LOG_FORMAT", "console")
    monkeypatch.setenv("SHIFTCAL_GOOGLE_CLIENT_ID", "client-id")
    monkeypatch.setenv("SHIFTCAL_GOOGLE_CLIENT_SECRET", "client-secret")
    monkeypatch.setenv("SHIFTCAL_GOOGLE_REDIRECT_URI", "http://test/api/google/callback")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def fake_google() -> FakeGoogle:
    return FakeGoogle()


@pytest.fixture
def email_provider() -> InMemoryProvider:
    return InMemoryProvider()


@pytest_asyncio.fixture
async def app(
    settings: Settings,
    fake_google: FakeGoogle,
    email_provider: InMemoryProvider,
) -> AsyncGenerator[FastAPI, None]:
    """App wired to a migrated database and fake collaborators (no lifespan)."""
    await migrate_database(settings.database_url)
    await init_db(settings.database_url)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_google.handler))
    application = create_app(
        settings,
        google_client=GoogleCalendarClient(settings, http_client),
        email_service=EmailService(email_provider, settings),
    )
    yield application

    await http_client.aclose()
    await close_db()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def make_client(app: FastAPI) -> AsyncGenerator[Callable[[], AsyncClient], None]:
    """Factory for extra clients, each with its own cookie jar."""
    clients: list[AsyncClient] = []

    def _make() -> AsyncClient:
        ac = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        clients.append(ac)
        return ac

    yield _make

    for ac in clients:
        await ac.aclose()


@pytest_asyncio.fixture
async def db_session(app: FastAPI) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for test assertions."""
    async with get_session_factory()() as session:
        yield session


# ---------------------------------------------------------------------------
# Flow helpers
# ---------------------------------------------------------------------------


async def pending_code(email: str) -> str:
    """Read the pending one-time code for ``email`` straight from the database."""
    async with get_session_factory()() as db:
        record = await get_otc(db, email)
    assert record is not None, f"no pending registration for {email}"
    return record.code


async def register(ac: AsyncClient, email: str, password: str = TEST_PASSWORD) -> httpx.Response:
    """Run initiate + verify; the session cookie lands in ``ac``'s jar."""
    headers = {"X-Forwarded-For": next_client_ip()}
    response = await ac.post(
        "/api/auth/register/initiate", json={"email": email, "password": password}, headers=headers
    )
    assert response.status_code == 200, response.text
    code = await pending_code(email)
    response = await ac.post("/api/auth/register/verify", json={"email": email, "code": code}, headers=headers)
    assert response.status_code == 200, response.text
    return response


@pytest.fixture
def register_user() -> Callable[..., Awaitable[httpx.Response]]:
    return register


async def connect_google(ac: AsyncClient) -> httpx.Response:
    """Walk the consent flow against the fake Google; returns the callback response."""
    response = await ac.get("/api/google/auth")
    assert response.status_code == 200, response.text
    state = parse_qs(urlparse(response.json()["url"]).query)["state"][0]
    return await ac.get("/api/google/callback", params={"code": "auth-code", "state": state})
