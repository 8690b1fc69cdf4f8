"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, Field

from shiftcal.auth.password import MAX_PASSWORD_LENGTH

# Shape check only; the address is stored exactly as submitted.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

EmailAddress = Annotated[str, Field(min_length=3, max_length=254, pattern=EMAIL_PATTERN)]


class RegisterInitiateRequest(BaseModel):
    """Start a registration: the code is sent to ``email``. Password length is checked by the service."""

    email: EmailAddress
    password: str


class RegisterVerifyRequest(BaseModel):
    """Finish a registration with the emailed one-time code."""

    email: EmailAddress
    code: str = Field(..., pattern=r"^\d{6}$")


class LoginRequest(BaseModel):
    """Login with email + password."""

    email: EmailAddress
    password: str = Field(..., min_length=1, max_length=MAX_PASSWORD_LENGTH)


class InitiateResponse(BaseModel):
    success: bool = True
    message: str = "Verification code sent"


class AuthSuccessResponse(BaseModel):
    success: bool = True
    email: str


class MeResponse(BaseModel):
    authenticated: bool
    email: str | None = None
