"""
One-time codes for email-verified registration.

A pending registration row is the only evidence that an email is between
``initiate`` and ``verify``. It holds the code and the already-hashed
password, so the plaintext password is never persisted.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert

from shiftcal import clock
from shiftcal.db.models import PendingRegistration

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

OTC_MIN = 100_000
OTC_MAX = 999_999


@dataclass(frozen=True)
class OTCRecord:
    code: str
    password_hash: str
    expires_at: int

    def is_expired(self, now: int) -> bool:
        return now > self.expires_at


def generate_one_time_code() -> str:
    """Return a uniformly random 6-digit code in [100000, 999999]."""
    return str(OTC_MIN + secrets.randbelow(OTC_MAX - OTC_MIN + 1))


def mask_email(email: str) -> str:
    """Mask the local part of an email for logs: ``nurse@x.com`` -> ``n***e@x.com``."""
    local, sep, domain = email.partition("@")
    if not local:
        return email
    if len(local) <= 2:
        return f"{local[0]}*{sep}{domain}"
    return f"{local[0]}{'*' * (len(local) - 2)}{local[-1]}{sep}{domain}"


async def store_otc(db: AsyncSession, email: str, code: str, password_hash: str, ttl_seconds: int) -> int:
    """
    Upsert the pending registration for ``email``, expiring ``ttl_seconds`` from now.

    Returns the new expiry (epoch milliseconds).
    """
    expires_at = clock.now_ms() + ttl_seconds * 1000
    stmt = insert(PendingRegistration).values(
        email=email,
        code=code,
        password_hash=password_hash,
        expires_at=expires_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[PendingRegistration.email],
        set_={
            "code": stmt.excluded.code,
            "password_hash": stmt.excluded.password_hash,
            "expires_at": stmt.excluded.expires_at,
        },
    )
    await db.execute(stmt)
    return expires_at


async def get_otc(db: AsyncSession, email: str) -> OTCRecord | None:
    """Fetch the pending registration for ``email``, if any."""
    result = await db.execute(select(PendingRegistration).where(PendingRegistration.email == email))
    row = result.scalar_one_or_none()
    if row is None:
        return None
    return OTCRecord(code=row.code, password_hash=row.password_hash, expires_at=row.expires_at)


async def delete_otc(db: AsyncSession, email: str) -> None:
    await db.execute(delete(PendingRegistration).where(PendingRegistration.email == email))


async def sweep_expired_otcs(db: AsyncSession, now: int | None = None) -> int:
    """Delete every pending registration past its expiry. Returns rows removed."""
    now = clock.now_ms() if now is None else now
    result = await db.execute(delete(PendingRegistration).where(PendingRegistration.expires_at < now))
    return result.rowcount or 0
