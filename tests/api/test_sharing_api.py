"""API tests for calendar sharing."""

from __future__ import annotations

from collections.abc import Callable

import pytest_asyncio
from httpx import AsyncClient

from shiftcal.email.service import InMemoryProvider
from tests.conftest import register

OWNER = "owner@example.com"
VIEWER = "viewer@example.com"
STRANGER = "stranger@example.com"

NOT_FOUND = {"detail": "Not found", "code": "not_found"}


@pytest_asyncio.fixture
async def people(client: AsyncClient, make_client: Callable[[], AsyncClient]) -> dict[str, AsyncClient]:
    viewer = make_client()
    stranger = make_client()
    await register(client, OWNER)
    await register(viewer, VIEWER)
    await register(stranger, STRANGER)
    return {"owner": client, "viewer": viewer, "stranger": stranger}


def _invites(provider: InMemoryProvider, to: str) -> list:
    return [m for m in provider.sent if m.to == to and "shared their calendar" in m.subject]


class TestInvite:
    async def test_share_and_list(self, people):
        owner, viewer = people["owner"], people["viewer"]

        response = await owner.post("/api/shares", json={"email": VIEWER})
        assert response.status_code == 200
        assert response.json() == {"success": True}

        shares = (await owner.get("/api/shares")).json()
        assert [s["email"] for s in shares] == [VIEWER]
        assert len(shares[0]["id"]) == 32

        assert (await viewer.get("/api/shared-calendars")).json() == [{"email": OWNER}]
        assert (await viewer.get("/api/shares")).json() == []

    async def test_unknown_and_known_targets_look_identical(self, people):
        owner = people["owner"]

        known = await owner.post("/api/shares", json={"email": VIEWER})
        unknown = await owner.post("/api/shares", json={"email": "nobody@example.com"})

        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()
        assert [s["email"] for s in (await owner.get("/api/shares")).json()] == [VIEWER]

    async def test_repeat_invite_is_a_no_op(self, people, email_provider: InMemoryProvider):
        owner = people["owner"]

        await owner.post("/api/shares", json={"email": VIEWER})
        response = await owner.post("/api/shares", json={"email": VIEWER})

        assert response.json() == {"success": True}
        assert len((await owner.get("/api/shares")).json()) == 1
        assert len(_invites(email_provider, VIEWER)) == 1

    async def test_invite_email(self, people, email_provider: InMemoryProvider):
        await people["owner"].post("/api/shares", json={"email": VIEWER})
        await people["owner"].post("/api/shares", json={"email": "nobody@example.com"})

        (invite,) = _invites(email_provider, VIEWER)
        assert OWNER in invite.subject
        assert _invites(email_provider, "nobody@example.com") == []

    async def test_cannot_share_with_self(self, people):
        response = await people["owner"].post("/api/shares", json={"email": OWNER})
        assert response.status_code == 400
        assert response.json()["code"] == "cannot_share_with_self"

    async def test_invalid_email(self, people):
        response = await people["owner"].post("/api/shares", json={"email": "nope"})
        assert response.status_code == 400

    async def test_requires_session(self, client: AsyncClient):
        assert (await client.post("/api/shares", json={"email": VIEWER})).status_code == 401
        assert (await client.get("/api/shares")).status_code == 401
        assert (await client.get("/api/shared-calendars")).status_code == 401


class TestSharedCalendar:
    async def test_viewer_reads_labels_and_shifts(self, people):
        owner, viewer = people["owner"], people["viewer"]
        labels = (await owner.get("/api/labels")).json()
        await owner.put("/api/calendar", json={"2025-06-01": labels[0]["id"]})
        await owner.post("/api/shares", json={"email": VIEWER})

        response = await viewer.get(f"/api/shared-calendars/{OWNER}")
        assert response.status_code == 200
        assert response.json() == {
            "email": OWNER,
            "labels": labels,
            "shifts": {"2025-06-01": labels[0]["id"]},
        }

    async def test_not_shared_and_unknown_owner_look_identical(self, people):
        stranger = people["stranger"]

        not_shared = await stranger.get(f"/api/shared-calendars/{OWNER}")
        unknown = await stranger.get("/api/shared-calendars/ghost@example.com")

        assert not_shared.status_code == unknown.status_code == 404
        assert not_shared.json() == unknown.json() == NOT_FOUND

    async def test_share_is_one_directional(self, people):
        owner = people["owner"]
        await owner.post("/api/shares", json={"email": VIEWER})

        response = await owner.get(f"/api/shared-calendars/{VIEWER}")
        assert response.status_code == 404


class TestRevoke:
    async def test_revoke_removes_access(self, people):
        owner, viewer = people["owner"], people["viewer"]
        await owner.post("/api/shares", json={"email": VIEWER})
        (share,) = (await owner.get("/api/shares")).json()

        response = await owner.delete(f"/api/shares/{share['id']}")
        assert response.status_code == 200
        assert response.json() == {"success": True}

        assert (await owner.get("/api/shares")).json() == []
        assert (await viewer.get("/api/shared-calendars")).json() == []
        assert (await viewer.get(f"/api/shared-calendars/{OWNER}")).json() == NOT_FOUND

    async def test_only_owner_can_revoke(self, people):
        owner, viewer = people["owner"], people["viewer"]
        await owner.post("/api/shares", json={"email": VIEWER})
        (share,) = (await owner.get("/api/shares")).json()

        response = await viewer.delete(f"/api/shares/{share['id']}")
        assert response.status_code == 404
        assert response.json() == NOT_FOUND
        assert len((await owner.get("/api/shares")).json()) == 1

    async def test_unknown_share(self, people):
        response = await people["owner"].delete("/api/shares/does-not-exist")
        assert response.status_code == 404
        assert response.json() == NOT_FOUND

    async def test_reshare_after_revoke(self, people, email_provider: InMemoryProvider):
        owner = people["owner"]
        await owner.post("/api/shares", json={"email": VIEWER})
        (share,) = (await owner.get("/api/shares")).json()
        await owner.delete(f"/api/shares/{share['id']}")

        await owner.post("/api/shares", json={"email": VIEWER})
        (again,) = (await owner.get("/api/shares")).json()
        assert again["id"] != share["id"]
        assert len(_invites(email_provider, VIEWER)) == 2
