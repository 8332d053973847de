"""
FastAPI dependencies for authentication.

The identity guard verifies the bearer token once per request and attaches
the subject (user id) to ``request.state``; nothing downstream re-validates it.
"""

from typing import Annotated

from fastapi import Depends, Request

from saasboard.auth.tokens import SUBJECT_CLAIM, decode_access_token
from saasboard.config import Settings
from saasboard.core import (
    AuthError,
    MalformedCredentialError,
    MissingCredentialError,
    MissingSubjectClaimError,
    get_logger,
    user_id_ctx,
)

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "


def authenticate(authorization: str | None, settings: Settings | None = None) -> str:
    """
    Resolve an ``Authorization`` header value to a subject id.

    Raises:
        MissingCredentialError: No header.
        MalformedCredentialError: Not of the form ``Bearer <token>``.
        InvalidOrExpiredCredentialError: Signature or expiry check failed.
        MissingSubjectClaimError: Token is valid but has no usable user id.
    """
    if not authorization:
        raise MissingCredentialError()

    if not authorization.startswith(BEARER_PREFIX):
        raise MalformedCredentialError()
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise MalformedCredentialError()

    claims = decode_access_token(token, settings)

    subject_id = claims.get(SUBJECT_CLAIM)
    if not isinstance(subject_id, str) or not subject_id:
        raise MissingSubjectClaimError()
    return subject_id


async def require_subject(request: Request) -> str:
    """
    Require a valid bearer token - raises if not authenticated.

    Returns:
        The authenticated user id.
    """
    try:
        subject_id = authenticate(request.headers.get("authorization"))
    except AuthError as exc:
        logger.info(
            "Authentication failed",
            data={"reason": exc.code.value, "path": request.url.path},
        )
        raise

    request.state.subject_id = subject_id
    user_id_ctx.set(subject_id)
    return subject_id


# Type alias for cleaner dependency injection
RequireSubject = Annotated[str, Depends(require_subject)]
