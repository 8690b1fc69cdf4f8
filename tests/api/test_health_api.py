"""Health endpoints, middleware behavior and app construction."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from shiftcal.config import Settings
from shiftcal.errors import ConfigurationError
from shiftcal.main import create_app


class TestHealth:
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    async def test_ready(self, client: AsyncClient):
        response = await client.get("/ready")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ready"
        assert body["checks"]["database"] == "ok"
        assert body["checks"]["migrations"] == "ok (3 applied)"

    async def test_version(self, client: AsyncClient):
        response = await client.get("/version")
        assert response.json() == {"version": "0.1.0", "environment": "test"}


class TestMiddleware:
    async def test_request_id_echoed(self, client: AsyncClient):
        response = await client.get("/health", headers={"X-Request-Id": "req-123"})
        assert response.headers["X-Request-Id"] == "req-123"

    async def test_request_id_generated(self, client: AsyncClient):
        first = await client.get("/health")
        second = await client.get("/health")
        assert first.headers["X-Request-Id"]
        assert first.headers["X-Request-Id"] != second.headers["X-Request-Id"]

    async def test_cors_preflight(self, client: AsyncClient):
        response = await client.options(
            "/api/auth/login",
            headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "POST"},
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
        assert response.headers["access-control-allow-credentials"] == "true"

    async def test_validation_error_shape(self, client: AsyncClient):
        response = await client.post("/api/auth/login", json={}, headers={"X-Forwarded-For": "192.0.2.10"})
        assert response.status_code == 400
        body = response.json()
        assert body["detail"] == "Validation error"
        assert body["code"] == "validation_error"
        assert {tuple(e["loc"]) for e in body["errors"]} == {("body", "email"), ("body", "password")}

    async def test_unknown_route(self, client: AsyncClient):
        response = await client.get("/api/nope")
        assert response.status_code == 404
        assert response.json() == {"detail": "Not Found"}

    async def test_unhandled_error_is_generic(self, app: FastAPI):
        @app.get("/boom")
        async def boom() -> None:
            msg = "secret internals"
            raise RuntimeError(msg)

        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/boom")

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}
        assert "secret" not in response.text


class TestCreateApp:
    def test_missing_secret_refuses_to_start(self):
        with pytest.raises(ConfigurationError):
            create_app(Settings(session_secret=""))

    def test_routes_registered(self, settings: Settings):
        application = create_app(settings)
        paths = {route.path for route in application.routes}
        assert {
            "/health",
            "/api/auth/register/initiate",
            "/api/auth/register/verify",
            "/api/auth/login",
            "/api/auth/logout",
            "/api/auth/me",
            "/api/labels",
            "/api/labels/{label_id}",
            "/api/calendar",
            "/api/shares",
            "/api/shares/{share_id}",
            "/api/shared-calendars",
            "/api/shared-calendars/{owner_email}",
            "/api/google/auth",
            "/api/google/callback",
            "/api/google/status",
            "/api/google/toggle",
            "/api/google/disconnect",
            "/api/google/events",
        } <= paths
