"""Error taxonomy shared by services and routers.

Services raise these; the handlers in ``shiftcal.middleware.error_handler``
turn them into JSON responses. Each concrete failure carries a stable
machine-readable ``code`` next to its human-readable message.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for every expected, user-facing failure."""

    status_code: int = 500
    code: str = "internal_error"
    message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Taxonomy
# ---------------------------------------------------------------------------


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    message = "Invalid request"


class AuthError(AppError):
    status_code = 401
    code = "unauthorized"
    message = "Unauthorized"


class AuthorizationError(AppError):
    status_code = 403
    code = "forbidden"
    message = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"
    message = "Not found"


class RateLimitedError(AppError):
    status_code = 429
    code = "rate_limited"
    message = "Too many attempts. Please try again later."

    def __init__(self, retry_after: int) -> None:
        super().__init__()
        self.retry_after = retry_after


class ConfigurationError(AppError):
    status_code = 500
    code = "configuration_error"
    message = "Server is misconfigured"


class UpstreamError(AppError):
    status_code = 502
    code = "upstream_error"
    message = "Upstream provider request failed"


# ---------------------------------------------------------------------------
# Registration / login
# ---------------------------------------------------------------------------


class AlreadyRegistered(ValidationError):
    code = "already_registered"
    message = "Email already registered"


class NoPendingRegistration(ValidationError):
    code = "no_pending_registration"
    message = "No pending registration found. Please start over."


class CodeExpired(ValidationError):
    code = "code_expired"
    message = "Verification code expired. Please start over."


class InvalidCode(ValidationError):
    code = "invalid_code"
    message = "Invalid verification code"


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    message = "Invalid email or password"


# ---------------------------------------------------------------------------
# Labels / sharing
# ---------------------------------------------------------------------------


class LabelNotFound(NotFoundError):
    code = "label_not_found"
    message = "Label not found"


class ResourceNotFound(NotFoundError):
    """The one not-found shape used wherever existence must not leak."""

    code = "not_found"
    message = "Not found"


class CannotShareWithSelf(ValidationError):
    code = "cannot_share_with_self"
    message = "You cannot share your calendar with yourself"


# ---------------------------------------------------------------------------
# Google Calendar overlay
# ---------------------------------------------------------------------------


class ProviderNotConfigured(ConfigurationError):
    code = "provider_not_configured"
    message = "Google OAuth not configured"


class MissingCode(ValidationError):
    code = "missing_code"
    message = "Missing authorization code"


class MissingState(ValidationError):
    code = "missing_state"
    message = "Missing state parameter"


class InvalidOrExpiredState(AuthorizationError):
    code = "invalid_or_expired_state"
    message = "Invalid or expired OAuth state. Please try again."


class TokenExchangeFailed(ValidationError):
    code = "token_exchange_failed"
    message = "Failed to exchange authorization code"


class NoRefreshTokenReceived(ValidationError):
    code = "no_refresh_token"
    message = "No refresh token received. Please try disconnecting and reconnecting."


class NotConnected(ValidationError):
    code = "not_connected"
    message = "Google Calendar not connected"


class InvalidDateRange(ValidationError):
    code = "invalid_date_range"
    message = "timeMin and timeMax must be valid ISO 8601 dates"


class TokenExpiredReconnectRequired(AuthError):
    code = "reconnect_required"
    message = "Google token expired. Please reconnect."


class UpstreamFetchFailed(UpstreamError):
    code = "upstream_fetch_failed"
    message = "Failed to fetch calendar events"
