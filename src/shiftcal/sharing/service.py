"""
Calendar sharing.

A share is a directed read-only grant from an owner to a viewer. Lookups
that could reveal whether an email is registered answer the same way for
"no such user" and "not shared": invites always succeed, reads always fail
with one not-found error.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import delete, select

from shiftcal.auth.otc import mask_email
from shiftcal.auth.service import get_user_by_email
from shiftcal.calendar.service import get_shift_map
from shiftcal.db.models import Label, Share, User
from shiftcal.detached import Detached
from shiftcal.errors import CannotShareWithSelf
from shiftcal.labels.service import list_labels
from shiftcal.responses import generic_not_found

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from shiftcal.email.service import EmailService

logger = structlog.get_logger()


@dataclass(frozen=True)
class SharedCalendar:
    owner_email: str
    labels: list[Label]
    shifts: dict[str, str]


async def _find_share(db: AsyncSession, owner_id: int, viewer_id: int) -> Share | None:
    result = await db.execute(
        select(Share).where(Share.owner_id == owner_id, Share.shared_with_id == viewer_id)
    )
    return result.scalars().first()


async def invite(
    db: AsyncSession,
    owner: User,
    target_email: str,
    email_service: EmailService,
    app_url: str,
) -> Detached | None:
    """
    Share ``owner``'s calendar with the account behind ``target_email``.

    Unknown emails and existing shares are silent no-ops. Only a newly
    created share yields a detached notification email.

    Raises:
        CannotShareWithSelf: If ``target_email`` is the owner's own email.
    """
    if target_email == owner.email:
        raise CannotShareWithSelf

    viewer = await get_user_by_email(db, target_email)
    if viewer is None:
        logger.info("share_target_unknown", owner_id=owner.id, target=mask_email(target_email))
        return None

    if await _find_share(db, owner.id, viewer.id) is not None:
        return None

    share = Share(id=uuid.uuid4().hex, owner_id=owner.id, shared_with_id=viewer.id)
    db.add(share)
    await db.flush()
    logger.info("share_created", owner_id=owner.id, viewer_id=viewer.id, share_id=share.id)

    return Detached(
        name="send_share_invite",
        func=email_service.send_template,
        kwargs={
            "to": viewer.email,
            "template_name": "share_invite",
            "context": {"owner_email": owner.email, "app_url": app_url},
        },
    )


async def list_shares(db: AsyncSession, owner_id: int) -> list[tuple[str, str]]:
    """``(share_id, viewer_email)`` for each viewer the owner has granted access."""
    result = await db.execute(
        select(Share.id, User.email)
        .join(User, User.id == Share.shared_with_id)
        .where(Share.owner_id == owner_id)
        .order_by(Share.created_at, User.email)
    )
    return [(share_id, email) for share_id, email in result.all()]


async def list_shared_with_me(db: AsyncSession, viewer_id: int) -> list[str]:
    """Emails of owners who have shared with ``viewer_id``."""
    result = await db.execute(
        select(User.email)
        .join(Share, Share.owner_id == User.id)
        .where(Share.shared_with_id == viewer_id)
        .order_by(Share.created_at, User.email)
    )
    return list(result.scalars().all())


async def revoke(db: AsyncSession, owner_id: int, share_id: str) -> None:
    """
    Delete one of the owner's shares.

    Raises:
        ResourceNotFound: Unknown id, or a share owned by someone else.
    """
    result = await db.execute(delete(Share).where(Share.id == share_id, Share.owner_id == owner_id))
    if not result.rowcount:
        raise generic_not_found()
    logger.info("share_revoked", owner_id=owner_id, share_id=share_id)


async def get_shared_calendar(db: AsyncSession, viewer_id: int, owner_email: str) -> SharedCalendar:
    """
    Read another user's labels and shift map.

    Raises:
        ResourceNotFound: No such owner, or the owner has not shared with the viewer.
    """
    owner = await get_user_by_email(db, owner_email)
    if owner is None or await _find_share(db, owner.id, viewer_id) is None:
        raise generic_not_found()

    labels = await list_labels(db, owner.id)
    shifts = await get_shift_map(db, owner.id)
    return SharedCalendar(owner_email=owner.email, labels=labels, shifts=shifts)
