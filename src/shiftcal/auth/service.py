"""
Authentication business logic.

Registration is a small state machine per email address:

    NoAccount --initiate--> Pending --verify--> Active

The pending registration row (see ``shiftcal.auth.otc``) is the only
persisted evidence of ``Pending``. Login acts on ``Active`` accounts only.
Functions here flush and routers commit on success. Failure paths that
must still delete the pending registration commit that deletion themselves.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from shiftcal import clock
from shiftcal.auth.otc import (
    delete_otc,
    generate_one_time_code,
    get_otc,
    mask_email,
    store_otc,
)
from shiftcal.auth.password import (
    PasswordStrengthError,
    hash_password_async,
    validate_password_strength,
    verify_password_async,
)
from shiftcal.calendar.service import init_shift_map
from shiftcal.db.models import User
from shiftcal.detached import Detached
from shiftcal.errors import (
    AlreadyRegistered,
    CodeExpired,
    InvalidCode,
    InvalidCredentials,
    NoPendingRegistration,
    ValidationError,
)
from shiftcal.labels.service import seed_default_labels

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from shiftcal.config import Settings
    from shiftcal.email.service import EmailService

logger = structlog.get_logger()

# Unknown-email logins verify against this hash so both failure paths cost the same.
_DUMMY_HASH: str | None = None


class RegistrationState(enum.Enum):
    NO_ACCOUNT = "no_account"
    PENDING = "pending"
    ACTIVE = "active"


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email, compared exactly as stored."""
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def registration_state(db: AsyncSession, email: str) -> RegistrationState:
    if await get_user_by_email(db, email) is not None:
        return RegistrationState.ACTIVE
    if await get_otc(db, email) is not None:
        return RegistrationState.PENDING
    return RegistrationState.NO_ACCOUNT


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


async def register_initiate(
    db: AsyncSession,
    email: str,
    password: str,
    email_service: EmailService,
    settings: Settings,
) -> Detached:
    """
    Store a pending registration and return the code delivery as a detached effect.

    A second initiate for the same email replaces the earlier code.

    Raises:
        AlreadyRegistered: If an account with this email exists.
        ValidationError: If the password is too short or too long.
    """
    if await registration_state(db, email) is RegistrationState.ACTIVE:
        raise AlreadyRegistered

    try:
        validate_password_strength(password, settings.password_min_length)
    except PasswordStrengthError as e:
        raise ValidationError(str(e)) from e

    password_hash = await hash_password_async(password)
    code = generate_one_time_code()
    await store_otc(db, email, code, password_hash, settings.otc_ttl_seconds)
    logger.info("otc_issued", email=mask_email(email))

    return Detached(
        name="send_verification_code",
        func=email_service.send_template,
        kwargs={"to": email, "template_name": "verification_code", "context": {"code": code}},
    )


async def register_verify(db: AsyncSession, email: str, code: str) -> User:
    """
    Turn a pending registration into an active account.

    A wrong code leaves the pending registration in place; an expired one is
    removed so the user has to start over.

    Raises:
        NoPendingRegistration: No code was issued for this email.
        CodeExpired: The code's lifetime has passed.
        InvalidCode: The code does not match.
        AlreadyRegistered: Another verify created the account first.
    """
    record = await get_otc(db, email)
    if record is None:
        raise NoPendingRegistration

    if record.is_expired(clock.now_ms()):
        await delete_otc(db, email)
        await db.commit()
        raise CodeExpired

    if record.code != code:
        logger.info("otc_rejected", email=mask_email(email))
        raise InvalidCode

    if await get_user_by_email(db, email) is not None:
        await delete_otc(db, email)
        await db.commit()
        raise AlreadyRegistered

    user = User(email=email, password_hash=record.password_hash)
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        # A concurrent verify inserted the same email between the check and the insert.
        await db.rollback()
        await delete_otc(db, email)
        await db.commit()
        raise AlreadyRegistered from None

    await seed_default_labels(db, user.id)
    await init_shift_map(db, user.id)
    await delete_otc(db, email)

    logger.info("user_registered", user_id=user.id, email=mask_email(email))
    return user


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


async def authenticate(db: AsyncSession, email: str, password: str) -> User:
    """
    Check credentials for an active account.

    Raises:
        InvalidCredentials: Unknown email or wrong password (indistinguishable).
    """
    user = await get_user_by_email(db, email)
    if user is None:
        await verify_password_async(password, await _dummy_hash())
        raise InvalidCredentials

    if not await verify_password_async(password, user.password_hash):
        logger.info("login_failed", user_id=user.id)
        raise InvalidCredentials

    logger.info("user_logged_in", user_id=user.id)
    return user


async def _dummy_hash() -> str:
    global _DUMMY_HASH  # noqa: PLW0603
    if _DUMMY_HASH is None:
        _DUMMY_HASH = await hash_password_async("not-a-real-password")
    return _DUMMY_HASH
