"""Shift map endpoints: /api/calendar."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shiftcal.auth.dependencies import get_current_user
from shiftcal.calendar.schemas import ShiftMap
from shiftcal.calendar.service import get_shift_map, replace_shift_map
from shiftcal.database import get_session
from shiftcal.db.models import User

router = APIRouter(prefix="/api/calendar", tags=["Calendar"])


@router.get("", response_model=dict[str, str])
async def get_calendar(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    return await get_shift_map(db, user.id)


@router.put("", response_model=dict[str, str])
async def put_calendar(
    body: ShiftMap,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Replace the whole shift map. Dates missing from the body are dropped."""
    stored = await replace_shift_map(db, user.id, body.root)
    await db.commit()
    return stored
