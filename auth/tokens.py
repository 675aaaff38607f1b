"""
auth/tokens.py -- Bearer token issuance and verification (the protection gate).

Security design decisions:
  JWT: python-jose with HS256. Tokens carry sub, user_id, email, display_name,
       iat and exp. Nothing is stored server-side; expiry is the only way a
       token stops working.

  Injection: the signing secret, lifetime and clock are constructor arguments
       of TokenService. Nothing in here reads settings or the environment, so
       tests can run the gate against any secret and any point in time. The
       application builds one TokenService during startup (api/main.py
       lifespan) and an empty secret raises ConfigurationError there, so the
       process never starts issuing unsigned tokens.

  Verification order:
       1. header shape         -> MalformedAuthHeaderError
       2. token structure      -> TokenInvalidError
       3. exp vs injected clock -> TokenExpiredError
       4. signature            -> TokenInvalidError
       5. required claims      -> TokenInvalidError
       Expiry is judged on the claim set before the signature, so an expired
       token reports "expired" whatever its signature. The token is rejected
       either way; only the reason differs. python-jose's own exp check is
       disabled because it reads the wall clock, not ours.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.errors import (
    ConfigurationError,
    InternalError,
    MalformedAuthHeaderError,
    TokenExpiredError,
    TokenInvalidError,
)
from auth.models import Account, Principal

logger = logging.getLogger("identitycore.auth")

ALGORITHM = "HS256"
DEFAULT_TTL = timedelta(hours=24)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def extract_bearer_token(header_value: str | None) -> str:
    """Return the token from an 'Authorization: Bearer <token>' value.

    The scheme is matched case-insensitively. Anything other than exactly a
    scheme and one non-empty token raises MalformedAuthHeaderError.
    """
    if not header_value:
        raise MalformedAuthHeaderError()
    parts = header_value.strip().split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise MalformedAuthHeaderError()
    return parts[1]


class TokenService:
    """Issues and verifies signed, time-bounded bearer tokens.

    Immutable after construction and safe to share across concurrent requests.
    """

    def __init__(self, secret_key: str, ttl: timedelta = DEFAULT_TTL, clock: Clock = utc_now) -> None:
        if not secret_key:
            raise ConfigurationError("A token signing secret is required.")
        if ttl <= timedelta(0):
            raise ConfigurationError("Token lifetime must be positive.")
        self._secret_key = secret_key
        self._ttl = ttl
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return int(self._ttl.total_seconds())

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue(self, account: Account) -> str:
        """Encode a signed JWT for an authenticated account.

        Deterministic for the same account, secret and clock reading: the
        claims are whole seconds and HS256 has no random component.
        """
        issued_at = int(self._clock().timestamp())
        payload = {
            "sub": str(account.id),
            "user_id": account.id,
            "email": account.email,
            "display_name": account.display_name,
            "iat": issued_at,
            "exp": issued_at + self.ttl_seconds,
        }
        return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify_header(self, header_value: str | None) -> Principal:
        """Run the protection gate on a raw Authorization header value."""
        return self.verify(extract_bearer_token(header_value))

    def verify(self, token: str) -> Principal:
        """Verify a bare token and return the Principal it carries.

        Raises TokenExpiredError, TokenInvalidError, or InternalError. Never
        touches the store.
        """
        try:
            unverified = jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise TokenInvalidError() from exc

        expires_at = unverified.get("exp")
        if not isinstance(expires_at, int) or isinstance(expires_at, bool):
            raise TokenInvalidError()

        try:
            now = int(self._clock().timestamp())
        except Exception as exc:
            logger.exception("Clock failure while verifying token")
            raise InternalError() from exc
        if now >= expires_at:
            raise TokenExpiredError()

        try:
            claims = jwt.decode(
                token,
                self._secret_key,
                algorithms=[ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise TokenInvalidError() from exc

        return _claims_to_principal(claims)


def _claims_to_principal(claims: dict) -> Principal:
    user_id = claims.get("user_id")
    email = claims.get("email")
    display_name = claims.get("display_name")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise TokenInvalidError()
    if not isinstance(email, str) or not email:
        raise TokenInvalidError()
    if not isinstance(display_name, str):
        raise TokenInvalidError()
    if claims.get("sub") != str(user_id):
        raise TokenInvalidError()
    return Principal(user_id=user_id, email=email, display_name=display_name)
