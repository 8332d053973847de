"""
Application errors and their wire representation.

Handlers raise ``AppError`` subclasses; the exception handlers in
``saasboard.core.middleware`` render them. Clients see a stable code and a
message, never a traceback.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes returned in ``error.code``. Values never change once published."""

    # General (1xxx)
    INTERNAL_ERROR = "E1000"
    VALIDATION_ERROR = "E1001"
    NOT_FOUND = "E1002"
    METHOD_NOT_ALLOWED = "E1003"
    REQUEST_TOO_LARGE = "E1004"
    RATE_LIMITED = "E1005"
    CONFLICT = "E1006"
    PERSISTENCE_ERROR = "E1007"

    # Identity (2xxx)
    UNAUTHORIZED = "E2000"
    INVALID_CREDENTIALS = "E2001"
    MISSING_CREDENTIAL = "E2002"
    MALFORMED_CREDENTIAL = "E2003"
    INVALID_OR_EXPIRED_CREDENTIAL = "E2004"
    MISSING_SUBJECT_CLAIM = "E2005"
    EMAIL_TAKEN = "E2006"

    FORBIDDEN = "E3000"

    # Upstream model (4xxx)
    UPSTREAM_UNAVAILABLE = "E4000"
    UPSTREAM_ERROR = "E4001"
    UPSTREAM_AUTH_FAILED = "E4005"


@dataclass(frozen=True)
class ErrorResponse:
    """Body of every error response: ``{"error": {code, message, request_id?, details?}}``."""

    code: ErrorCode
    message: str
    request_id: str | None = None
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.request_id:
            error["request_id"] = self.request_id
        if self.details:
            error["details"] = self.details
        return {"error": error}


class AppError(Exception):
    """Base class for errors that map to an HTTP status and an ``ErrorCode``."""

    status_code = 500

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details


class ValidationError(AppError):
    status_code = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(ErrorCode.VALIDATION_ERROR, message, details=details)


class NotFoundError(AppError):
    """
    Resource not found (404).

    Also raised when the resource exists but belongs to another user, so
    callers cannot probe for other users' ids.
    """

    status_code = 404

    def __init__(self, message: str = "Resource not found"):
        super().__init__(ErrorCode.NOT_FOUND, message)


class ConflictError(AppError):
    status_code = 409

    def __init__(self, message: str = "Conflict", details: dict[str, Any] | None = None):
        super().__init__(ErrorCode.CONFLICT, message, details=details)


class RateLimitedError(AppError):
    """Too many requests (429). ``details.window_seconds`` becomes Retry-After."""

    status_code = 429

    def __init__(
        self,
        message: str = "Rate limit exceeded. Please try again later.",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(ErrorCode.RATE_LIMITED, message, details=details)


class PersistenceError(AppError):
    """A database write failed and was rolled back."""

    def __init__(
        self, message: str = "Failed to save data", details: dict[str, Any] | None = None
    ):
        super().__init__(ErrorCode.PERSISTENCE_ERROR, message, details=details)


class AuthError(AppError):
    """Request is not authenticated (401). Subclasses pin the specific reason."""

    status_code = 401

    def __init__(
        self,
        code: ErrorCode = ErrorCode.UNAUTHORIZED,
        message: str = "Authentication required",
    ):
        super().__init__(code, message)


class MissingCredentialError(AuthError):
    def __init__(self, message: str = "Authorization header required"):
        super().__init__(ErrorCode.MISSING_CREDENTIAL, message)


class MalformedCredentialError(AuthError):
    def __init__(self, message: str = "Invalid authorization format"):
        super().__init__(ErrorCode.MALFORMED_CREDENTIAL, message)


class InvalidOrExpiredCredentialError(AuthError):
    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(ErrorCode.INVALID_OR_EXPIRED_CREDENTIAL, message)


class MissingSubjectClaimError(AuthError):
    def __init__(self, message: str = "Invalid user ID in token"):
        super().__init__(ErrorCode.MISSING_SUBJECT_CLAIM, message)


class InvalidCredentialsError(AuthError):
    """Login failed. Unknown email and wrong password look the same."""

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(ErrorCode.INVALID_CREDENTIALS, message)


class EmailTakenError(AppError):
    status_code = 409

    def __init__(self, message: str = "Email already registered"):
        super().__init__(ErrorCode.EMAIL_TAKEN, message)


class UpstreamError(AppError):
    """The model API call failed (502 unless a subclass says otherwise)."""

    status_code = 502
    default_code = ErrorCode.UPSTREAM_ERROR

    def __init__(
        self,
        message: str = "Upstream model error",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(self.default_code, message, details=details)


class UpstreamUnavailableError(UpstreamError):
    """Model API unreachable, timed out or overloaded (503)."""

    status_code = 503
    default_code = ErrorCode.UPSTREAM_UNAVAILABLE

    def __init__(
        self,
        message: str = "Upstream model unavailable",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)


class UpstreamAuthError(UpstreamError):
    """Model API rejected our key. Still 502: the client did nothing wrong."""

    default_code = ErrorCode.UPSTREAM_AUTH_FAILED

    def __init__(
        self,
        message: str = "Upstream authentication failed",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
