"""Argon2id password digests.

Digests are self-describing (algorithm, parameters and salt are encoded in
the string), so stored hashes stay verifiable if the parameters change.
"""

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

# 3 passes over 64 MiB with 4 lanes; 32-byte digest, 16-byte salt
_hasher = PasswordHasher(
    time_cost=3,
    memory_cost=64 * 1024,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)


def hash_password(password: str) -> str:
    """Return the Argon2id digest of ``password``."""
    return _hasher.hash(password)


def verify_password(password: str, digest: str) -> bool:
    """
    Check ``password`` against a stored digest.

    A malformed digest counts as a mismatch rather than an error.
    """
    try:
        return _hasher.verify(digest, password)
    except (VerificationError, InvalidHashError):
        return False
