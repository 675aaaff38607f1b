"""
auth/credentials.py -- Email/password verification (constant-time) [C1].

Always runs bcrypt whether or not the email exists. This prevents an attacker
from enumerating registered emails by measuring response time:
  - Unknown email:  bcrypt runs against dummy_hash() (same cost as a real check)
  - Wrong password: bcrypt runs against the stored hash (same cost)
Both outcomes, and a disabled account, raise the same InvalidCredentialsError.
"""

from __future__ import annotations

import logging

from auth.errors import InvalidCredentialsError, MissingFieldsError
from auth.models import Account, normalize_email
from auth.passwords import DEFAULT_ROUNDS, dummy_hash, verify_password
from auth.store import AccountRepository

logger = logging.getLogger("identitycore.auth")


def verify_credentials(
    store: AccountRepository,
    email: str | None,
    password: str | None,
    rounds: int = DEFAULT_ROUNDS,
) -> Account:
    """Authenticate an email/password pair and return the public Account.

    Raises MissingFieldsError (before any store access) when either value is
    empty, InvalidCredentialsError on any mismatch. Store failures propagate
    as StoreUnavailableError.
    """
    if not email or not email.strip() or not password:
        raise MissingFieldsError()

    record = store.find_by_email(normalize_email(email))
    if record is None:
        # Equalize timing -- do NOT return early before running bcrypt [C1]
        verify_password(password, dummy_hash(rounds))
        raise InvalidCredentialsError()
    if not verify_password(password, record.password_hash):
        logger.info("Password login rejected for account %s", record.id)
        raise InvalidCredentialsError()
    if not record.is_active:
        logger.info("Password login rejected for disabled account %s", record.id)
        raise InvalidCredentialsError()
    return record.public()
