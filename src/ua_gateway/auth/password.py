"""Password hashing utilities using bcrypt.

Uses the ``bcrypt`` library directly (>=4.0). Each call to hash_password
draws a fresh salt, so hashing the same input twice yields different strings.
"""

import bcrypt

from src.ua_common.errors import HashingError


def hash_password(plain: str) -> str:
    """Hash a plain-text password with bcrypt. Returns a utf-8 hash string.

    Raises:
        HashingError: bcrypt rejected the input (e.g. longer than 72 bytes).
    """
    try:
        hashed_bytes: bytes = bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt())
    except ValueError as exc:
        raise HashingError() from exc
    return hashed_bytes.decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Verify a plain-text password against a bcrypt hash.

    A malformed or empty hash is a mismatch, not an error.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False
