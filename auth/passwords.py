"""
auth/passwords.py -- bcrypt password hashing and verification.

bcrypt is used directly (no passlib wrapper). Each call to hash_password()
draws a fresh salt via bcrypt.gensalt(), and the salt is embedded in the
returned hash string, so two users with the same password get different hashes.

bcrypt only reads the first 72 bytes of its input and current releases reject
longer input outright. check_password_length() lets callers turn that into a
validation error before hashing.
"""

from __future__ import annotations

from functools import lru_cache

import bcrypt

from auth.errors import ValidationError

BCRYPT_MAX_BYTES = 72


def check_password_length(plain: str) -> None:
    """Raise ValidationError if the password cannot be hashed by bcrypt."""
    if len(plain.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValidationError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes.")


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Over-long input or a malformed stored hash -- never a match.
        return False


@lru_cache
def dummy_hash(rounds: int) -> str:
    """Hash used to equalize timing when the looked-up user does not exist.

    Cached per cost factor so the comparison costs the same as a real one.
    """
    return hash_password("gatekeeper_timing_dummy", rounds=rounds)
