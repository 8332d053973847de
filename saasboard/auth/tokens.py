"""
Signed, expiring bearer tokens (HS256 JWT).

The token carries the user id in a ``user_id`` claim alongside ``iat`` and
``exp``. Nothing else about the user is trusted from the token.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from saasboard.config import Settings, get_settings
from saasboard.core.errors import InvalidOrExpiredCredentialError

SUBJECT_CLAIM = "user_id"


def create_access_token(subject_id: str, settings: Settings | None = None) -> str:
    """Sign a token for the given user id."""
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    claims = {
        SUBJECT_CLAIM: subject_id,
        "iat": now,
        "exp": now + timedelta(seconds=settings.access_token_ttl_seconds),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings | None = None) -> dict[str, Any]:
    """
    Verify signature and expiry and return the claim set.

    Raises:
        InvalidOrExpiredCredentialError: bad signature, wrong algorithm,
            expired, or not a JWT at all.
    """
    settings = settings or get_settings()
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp"]},
        )
    except jwt.PyJWTError as exc:
        raise InvalidOrExpiredCredentialError() from exc
