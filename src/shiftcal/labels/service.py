"""
Label business logic.

Every query is scoped to the owning user: a label id that exists but
belongs to someone else behaves exactly like one that does not exist.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import delete, literal_column, select

from shiftcal.db.models import Label
from shiftcal.errors import LabelNotFound

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

# (short_code, name, color) seeded for every new account
DEFAULT_LABELS: tuple[tuple[str, str, str], ...] = (
    ("E", "Early Shift", "#22c55e"),
    ("L", "Late Shift", "#3b82f6"),
    ("N", "Night Shift", "#8b5cf6"),
)


def new_label_id() -> str:
    return uuid.uuid4().hex


async def list_labels(db: AsyncSession, user_id: int) -> list[Label]:
    """All labels owned by ``user_id``, in creation order."""
    result = await db.execute(select(Label).where(Label.user_id == user_id).order_by(literal_column("labels.rowid")))
    return list(result.scalars().all())


async def get_label(db: AsyncSession, user_id: int, label_id: str) -> Label:
    """
    Fetch one of the user's labels.

    Raises:
        LabelNotFound: If the id is unknown or owned by another user.
    """
    result = await db.execute(select(Label).where(Label.id == label_id, Label.user_id == user_id))
    label = result.scalar_one_or_none()
    if label is None:
        raise LabelNotFound
    return label


async def create_label(db: AsyncSession, user_id: int, short_code: str, name: str, color: str) -> Label:
    label = Label(id=new_label_id(), user_id=user_id, short_code=short_code, name=name, color=color)
    db.add(label)
    await db.flush()
    logger.info("label_created", user_id=user_id, label_id=label.id)
    return label


async def update_label(
    db: AsyncSession,
    user_id: int,
    label_id: str,
    *,
    short_code: str | None = None,
    name: str | None = None,
    color: str | None = None,
) -> Label:
    """Apply a partial update; ``None`` means "keep the current value"."""
    label = await get_label(db, user_id, label_id)
    if short_code is not None:
        label.short_code = short_code
    if name is not None:
        label.name = name
    if color is not None:
        label.color = color
    await db.flush()
    return label


async def delete_label(db: AsyncSession, user_id: int, label_id: str) -> None:
    """
    Delete one of the user's labels.

    Shift map entries that still point at the id are left alone; readers
    treat an unknown label id as unlabeled.
    """
    result = await db.execute(delete(Label).where(Label.id == label_id, Label.user_id == user_id))
    if not result.rowcount:
        raise LabelNotFound
    logger.info("label_deleted", user_id=user_id, label_id=label_id)


async def seed_default_labels(db: AsyncSession, user_id: int) -> list[Label]:
    labels = [
        Label(id=new_label_id(), user_id=user_id, short_code=code, name=name, color=color)
        for code, name, color in DEFAULT_LABELS
    ]
    db.add_all(labels)
    await db.flush()
    return labels
