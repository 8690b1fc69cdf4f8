"""Shared response shapes.

Operations that must not reveal whether an account exists (invites, share
lookups) return exactly these, so every such path looks the same.
"""

from __future__ import annotations

from pydantic import BaseModel

from shiftcal.errors import ResourceNotFound


class SuccessResponse(BaseModel):
    success: bool = True


def generic_success() -> SuccessResponse:
    return SuccessResponse()


def generic_not_found() -> ResourceNotFound:
    """The single not-found error for existence-sensitive lookups."""
    return ResourceNotFound()
