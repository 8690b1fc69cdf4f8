"""Tests for the periodic sweeper."""

from __future__ import annotations

import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shiftcal import clock
from shiftcal.db.models import OAuthState, PendingRegistration, User
from shiftcal.middleware.rate_limit import RateLimiter
from shiftcal.workers.housekeeping import Housekeeper, SweepResult


class _Clock:
    def __init__(self) -> None:
        self.now = 1_000_000

    def __call__(self) -> int:
        return self.now


class TestHousekeeper:
    async def test_sweeps_expired_rows_and_buckets(self, app, db_session: AsyncSession):
        now = clock.now_ms()
        user = User(email="sweep@example.com", password_hash="x")
        db_session.add(user)
        await db_session.flush()
        db_session.add_all(
            [
                PendingRegistration(email="stale@example.com", code="111111", password_hash="h", expires_at=now - 1),
                PendingRegistration(email="fresh@example.com", code="222222", password_hash="h", expires_at=now + 60_000),
                OAuthState(state="stale", user_id=user.id, expires_at=now - 1),
                OAuthState(state="fresh", user_id=user.id, expires_at=now + 60_000),
            ]
        )
        await db_session.commit()

        limiter_clock = _Clock()
        limiter = RateLimiter(window_seconds=1, now=limiter_clock)
        limiter.check("login:1.1.1.1")
        limiter_clock.now += 1_001

        result = await Housekeeper(limiter).run_once()

        assert result == SweepResult(rate_limit_buckets=1, otcs=1, oauth_states=1)
        assert len(limiter) == 0
        emails = (await db_session.execute(select(PendingRegistration.email))).scalars().all()
        assert emails == ["fresh@example.com"]
        states = (await db_session.execute(select(OAuthState.state))).scalars().all()
        assert states == ["fresh"]

    async def test_nothing_to_sweep(self, app):
        assert await Housekeeper(RateLimiter()).run_once() == SweepResult()

    async def test_start_and_stop(self, app):
        housekeeper = Housekeeper(RateLimiter(), interval_seconds=0.01)
        housekeeper.start()
        assert housekeeper.running
        await asyncio.sleep(0.05)
        assert housekeeper.running

        await housekeeper.stop()
        assert not housekeeper.running

    async def test_stop_without_start(self, app):
        await Housekeeper(RateLimiter()).stop()
