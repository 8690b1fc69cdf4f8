"""Request/response schemas for calendar sharing."""

from __future__ import annotations

from pydantic import BaseModel

from shiftcal.auth.schemas import EmailAddress
from shiftcal.labels.schemas import LabelResponse


class ShareRequest(BaseModel):
    """Grant read-only access to the account registered under ``email``."""

    email: EmailAddress


class ShareResponse(BaseModel):
    """A viewer the caller has shared with."""

    id: str
    email: str


class SharedWithMeResponse(BaseModel):
    """An owner who has shared with the caller."""

    email: str


class SharedCalendarResponse(BaseModel):
    email: str
    labels: list[LabelResponse]
    shifts: dict[str, str]
