"""Core module with errors, logging, middleware, and rate limiting."""

from saasboard.core.errors import (
    AppError,
    AuthError,
    ConflictError,
    EmailTakenError,
    ErrorCode,
    ErrorResponse,
    InvalidCredentialsError,
    InvalidOrExpiredCredentialError,
    MalformedCredentialError,
    MissingCredentialError,
    MissingSubjectClaimError,
    NotFoundError,
    PersistenceError,
    RateLimitedError,
    UpstreamAuthError,
    UpstreamError,
    UpstreamUnavailableError,
    ValidationError,
)
from saasboard.core.logging import (
    get_logger,
    request_id_ctx,
    setup_logging,
    stream_id_ctx,
    user_id_ctx,
)
from saasboard.core.middleware import (
    RequestContextMiddleware,
    RequestSizeLimitMiddleware,
    setup_exception_handlers,
)
from saasboard.core.rate_limiter import (
    FixedWindowRateLimiter,
    RateLimiterRegistry,
    get_client_ip,
    rate_limit,
)

__all__ = [
    # Errors
    "AppError",
    "AuthError",
    "ConflictError",
    "EmailTakenError",
    "ErrorCode",
    "ErrorResponse",
    "InvalidCredentialsError",
    "InvalidOrExpiredCredentialError",
    "MalformedCredentialError",
    "MissingCredentialError",
    "MissingSubjectClaimError",
    "NotFoundError",
    "PersistenceError",
    "RateLimitedError",
    "UpstreamAuthError",
    "UpstreamError",
    "UpstreamUnavailableError",
    "ValidationError",
    # Logging
    "get_logger",
    "setup_logging",
    "request_id_ctx",
    "stream_id_ctx",
    "user_id_ctx",
    # Middleware
    "RequestContextMiddleware",
    "RequestSizeLimitMiddleware",
    "setup_exception_handlers",
    # Rate limiting
    "FixedWindowRateLimiter",
    "RateLimiterRegistry",
    "get_client_ip",
    "rate_limit",
]
