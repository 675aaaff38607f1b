"""
auth/service.py -- IdentityService, the boundary of the identity core.

Core functions (credentials, resolver, tokens, store) raise AuthError
subclasses. IdentityService catches them here and returns an AuthResult --
a tagged value carrying either the result or an ErrorCode plus a user-safe
message. Nothing from the AuthError tree crosses this boundary, so the HTTP
layer only ever inspects result.ok / result.error and maps the code with
status_for().

One IdentityService is built per process in the api/main.py lifespan and
stored on app.state.identity. It holds the store, the TokenService and the
bcrypt cost; all of them are safe to share between concurrent requests.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from auth.credentials import verify_credentials
from auth.errors import AuthError, ErrorCode, MissingFieldsError, NotFoundError
from auth.models import Account, AccountDraft, ExternalProfile, Principal, ResolvedIdentity
from auth.passwords import DEFAULT_ROUNDS, hash_password
from auth.resolver import resolve_external_identity
from auth.store import AccountStore
from auth.tokens import TokenService

logger = logging.getLogger("identitycore.auth")

T = TypeVar("T")


@dataclass(frozen=True)
class AuthResult(Generic[T]):
    """Either value (ok) or error + message (failure). Never both."""

    value: T | None = None
    error: ErrorCode | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> AuthResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, exc: AuthError) -> AuthResult[T]:
        return cls(error=exc.code, message=exc.message)


def _capture(operation: str, fn: Callable[[], T]) -> AuthResult[T]:
    try:
        return AuthResult.success(fn())
    except AuthError as exc:
        logger.debug("%s failed: %s", operation, exc.code.value)
        return AuthResult.failure(exc)


class IdentityService:
    """Credential checks, registration, token issuance/verification and identity linking."""

    def __init__(self, store: AccountStore, tokens: TokenService, bcrypt_rounds: int = DEFAULT_ROUNDS) -> None:
        self.store = store
        self.tokens = tokens
        self.bcrypt_rounds = bcrypt_rounds

    # ------------------------------------------------------------------
    # Password login / registration
    # ------------------------------------------------------------------

    def verify_credentials(self, email: str | None, password: str | None) -> AuthResult[Account]:
        """Check an email/password pair. Failures: MISSING_FIELDS, INVALID_CREDENTIALS."""
        return _capture(
            "verify_credentials",
            lambda: verify_credentials(self.store, email, password, rounds=self.bcrypt_rounds),
        )

    def register(
        self,
        display_name: str | None,
        email: str | None,
        password: str | None,
        age: int | None = None,
    ) -> AuthResult[Account]:
        """Create a password account. Failures: MISSING_FIELDS, INVALID_PASSWORD, CONFLICT, STORE_UNAVAILABLE."""

        def _register() -> Account:
            if not display_name or not display_name.strip() or not email or not email.strip() or not password:
                raise MissingFieldsError("Display name, email and password are required.")
            draft = AccountDraft(
                display_name=display_name,
                email=email,
                password_hash=hash_password(password, rounds=self.bcrypt_rounds),
                age=age,
            )
            account = self.store.create(draft).public()
            logger.info("Registered account %s", account.id)
            return account

        return _capture("register", _register)

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def issue_token(self, account: Account) -> str:
        """Mint a bearer token for an authenticated account. Pure; cannot fail."""
        return self.tokens.issue(account)

    def verify_token(self, header_value: str | None) -> AuthResult[Principal]:
        """The protection gate. Failures: MALFORMED_AUTH_HEADER, TOKEN_EXPIRED, TOKEN_INVALID, INTERNAL_ERROR."""
        return _capture("verify_token", lambda: self.tokens.verify_header(header_value))

    # ------------------------------------------------------------------
    # External identity
    # ------------------------------------------------------------------

    def resolve_external_identity(self, profile: ExternalProfile) -> AuthResult[ResolvedIdentity]:
        """Match, link or create. Failures: UNVERIFIED_EMAIL, ACCOUNT_DISABLED, CONFLICT, STORE_UNAVAILABLE."""
        return _capture(
            "resolve_external_identity",
            lambda: resolve_external_identity(self.store, profile, rounds=self.bcrypt_rounds),
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_account(self, account_id: int) -> AuthResult[Account]:
        """Fetch the public view of one account. Failures: NOT_FOUND, STORE_UNAVAILABLE."""

        def _get() -> Account:
            record = self.store.get_by_id(account_id)
            if record is None:
                raise NotFoundError()
            return record.public()

        return _capture("get_account", _get)
