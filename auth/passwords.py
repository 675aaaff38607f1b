"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than a passlib wrapper: passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which current
bcrypt releases reject with an explicit error. The limit is on UTF-8 bytes,
not characters: hash_password() checks it first and raises
InvalidPasswordError, so an over-long password is a tagged failure rather
than a ValueError from bcrypt.

The cost factor is passed in by the caller (Settings.bcrypt_rounds, minimum
10). Tests use the minimum to keep the suite fast.
"""

from __future__ import annotations

import secrets
from functools import lru_cache

import bcrypt

from auth.errors import InvalidPasswordError

DEFAULT_ROUNDS = 12
# bcrypt input limit, in bytes.
MAX_PASSWORD_BYTES = 72


def password_too_long(plain: str) -> bool:
    return len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Raises InvalidPasswordError if the password exceeds MAX_PASSWORD_BYTES.
    """
    if password_too_long(plain):
        raise InvalidPasswordError()
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. A corrupt hash or an over-long
    password counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def placeholder_password_hash(rounds: int = DEFAULT_ROUNDS) -> str:
    """Hash a random secret that is thrown away immediately.

    Accounts created from an external identity have no local password, but the
    store requires a hash. 32 random bytes (43 url-safe chars, under bcrypt's
    72-byte limit) make the account unreachable through password login.
    """
    return hash_password(secrets.token_urlsafe(32), rounds=rounds)


# Timing equalization dummy hash [C1].
@lru_cache(maxsize=None)
def dummy_hash(rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a hash to check against when the email is unknown.

    Cached per cost factor, so an unknown-email login costs the same bcrypt
    work as a wrong-password login and response time does not reveal whether
    the email is registered.
    """
    return hash_password("identitycore_timing_dummy", rounds=rounds)
