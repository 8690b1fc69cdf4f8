"""In-memory per-IP attempt throttling for the auth endpoints.

Buckets are keyed ``"<endpoint class>:<client ip>"`` so registration,
verification and login are throttled independently. State lives in the
process; a multi-instance deployment would need a shared store.
"""

from __future__ import annotations

import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog
from starlette.requests import Request

from shiftcal import clock
from shiftcal.errors import RateLimitedError

logger = structlog.get_logger()

UNKNOWN_CLIENT = "unknown"


@dataclass
class _Bucket:
    count: int
    reset_time: int


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: int | None = None


class RateLimiter:
    """Fixed-window attempt counter with an injectable clock."""

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: int = 900,
        now: Callable[[], int] | None = None,
    ) -> None:
        self.max_attempts = max_attempts
        self.window_ms = window_seconds * 1000
        self._now = now or clock.now_ms
        self._buckets: dict[str, _Bucket] = {}

    def __len__(self) -> int:
        return len(self._buckets)

    def check(self, key: str) -> RateLimitDecision:
        """Count an attempt against ``key`` and decide whether it may proceed."""
        now = self._now()
        bucket = self._buckets.get(key)

        if bucket is None or now > bucket.reset_time:
            self._buckets[key] = _Bucket(count=1, reset_time=now + self.window_ms)
            return RateLimitDecision(allowed=True)

        if bucket.count >= self.max_attempts:
            retry_after = max(1, math.ceil((bucket.reset_time - now) / 1000))
            return RateLimitDecision(allowed=False, retry_after_seconds=retry_after)

        bucket.count += 1
        return RateLimitDecision(allowed=True)

    def sweep(self) -> int:
        """Evict buckets whose window has passed. Returns the number evicted."""
        now = self._now()
        expired = [key for key, bucket in self._buckets.items() if now > bucket.reset_time]
        for key in expired:
            del self._buckets[key]
        return len(expired)

    def reset(self) -> None:
        self._buckets.clear()


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, else X-Real-IP, else a shared 'unknown' bucket."""
    forwarded = request.headers.get("x-forwarded-for", "").split(",", 1)[0].strip()
    if forwarded:
        return forwarded
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    return UNKNOWN_CLIENT


def rate_limit(endpoint_class: str) -> Callable[[Request], Awaitable[None]]:
    """Build a FastAPI dependency that throttles ``endpoint_class`` per client IP."""

    async def _dependency(request: Request) -> None:
        limiter: RateLimiter = request.app.state.rate_limiter
        key = f"{endpoint_class}:{client_ip(request)}"
        decision = limiter.check(key)
        if not decision.allowed:
            retry_after = decision.retry_after_seconds or 1
            logger.warning("rate_limited", bucket=key, retry_after=retry_after)
            raise RateLimitedError(retry_after)

    return _dependency
