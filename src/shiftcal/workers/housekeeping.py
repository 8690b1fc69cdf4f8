"""Periodic sweeps of expired short-lived state.

Runs inside the API process as one asyncio task owned by the app lifespan.
Expired rows are treated as expired wherever they are read, so a missed
sweep only costs storage.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from shiftcal import clock
from shiftcal.auth.otc import sweep_expired_otcs
from shiftcal.database import get_session_factory
from shiftcal.google.service import sweep_expired_states
from shiftcal.middleware.rate_limit import RateLimiter

logger = structlog.get_logger()


@dataclass(frozen=True)
class SweepResult:
    rate_limit_buckets: int = 0
    otcs: int = 0
    oauth_states: int = 0


class Housekeeper:
    """Sweeps rate-limit buckets, pending registrations and OAuth states."""

    def __init__(self, rate_limiter: RateLimiter, interval_seconds: float = 60) -> None:
        self.rate_limiter = rate_limiter
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name="housekeeper")
        logger.info("housekeeper_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        self._running = False
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("housekeeper_stopped")

    async def _loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once()

    async def run_once(self) -> SweepResult:
        """Run all three sweeps once. A failing sweep does not stop the others."""
        now = clock.now_ms()
        buckets = otcs = states = 0

        try:
            buckets = self.rate_limiter.sweep()
        except Exception:
            logger.exception("sweep_failed", target="rate_limit")

        try:
            async with get_session_factory()() as db:
                otcs = await sweep_expired_otcs(db, now)
                await db.commit()
        except Exception:
            logger.exception("sweep_failed", target="otc")

        try:
            async with get_session_factory()() as db:
                states = await sweep_expired_states(db, now)
                await db.commit()
        except Exception:
            logger.exception("sweep_failed", target="oauth_states")

        result = SweepResult(rate_limit_buckets=buckets, otcs=otcs, oauth_states=states)
        if buckets or otcs or states:
            logger.info("housekeeping_swept", buckets=buckets, otcs=otcs, oauth_states=states)
        return result
