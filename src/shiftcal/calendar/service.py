"""
Shift map storage.

A user's shift map (``{"YYYY-MM-DD": label_id}``) is stored as one JSON
blob and always replaced whole. Label ids inside it are not checked
against the labels table.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert

from shiftcal.db.models import Calendar

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


def decode_shift_map(raw: str | None) -> dict[str, str]:
    """Parse a stored blob; anything unreadable is an empty map."""
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except ValueError:
        return {}
    if not isinstance(value, dict):
        return {}
    return {str(key): item for key, item in value.items() if isinstance(item, str)}


async def get_shift_map(db: AsyncSession, user_id: int) -> dict[str, str]:
    result = await db.execute(select(Calendar.shifts).where(Calendar.user_id == user_id))
    raw = result.scalar_one_or_none()
    shifts = decode_shift_map(raw)
    if raw and raw != "{}" and not shifts:
        logger.warning("shift_map_unreadable", user_id=user_id)
    return shifts


async def replace_shift_map(db: AsyncSession, user_id: int, shifts: dict[str, str]) -> dict[str, str]:
    """Overwrite the whole map in a single upsert. Returns what was stored."""
    payload = json.dumps(shifts, separators=(",", ":"))
    stmt = insert(Calendar).values(user_id=user_id, shifts=payload)
    stmt = stmt.on_conflict_do_update(
        index_elements=[Calendar.user_id],
        set_={"shifts": stmt.excluded.shifts},
    )
    await db.execute(stmt)
    return dict(shifts)


async def init_shift_map(db: AsyncSession, user_id: int) -> None:
    await replace_shift_map(db, user_id, {})
