"""Authentication module for SaaSBoard."""

from saasboard.auth.dependencies import RequireSubject, authenticate, require_subject
from saasboard.auth.password import hash_password, verify_password
from saasboard.auth.tokens import create_access_token, decode_access_token

__all__ = [
    # Password
    "hash_password",
    "verify_password",
    # Tokens
    "create_access_token",
    "decode_access_token",
    # Dependencies
    "authenticate",
    "require_subject",
    "RequireSubject",
]
