"""
auth/errors.py -- Error taxonomy for the identity core.

Every failure the core can report has a stable machine-readable ErrorCode.
Core functions raise the AuthError subclass for that code; IdentityService
(auth/service.py) catches AuthError at the boundary and hands the caller a
tagged AuthResult instead. The HTTP layer maps the code to a status with
status_for() -- the core itself never knows about HTTP.

Messages are written for end users and never reveal whether an email is
registered, which field was wrong, or any stored credential material.

ConfigurationError is deliberately outside the AuthError tree: it signals a
broken deployment (e.g. no signing secret) and must stop startup rather than
become a per-request verdict.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    MISSING_FIELDS = "missing_fields"
    INVALID_PASSWORD = "invalid_password"
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_DISABLED = "account_disabled"
    MALFORMED_AUTH_HEADER = "malformed_auth_header"
    TOKEN_INVALID = "token_invalid"
    TOKEN_EXPIRED = "token_expired"
    UNVERIFIED_EMAIL = "unverified_email"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    STORE_UNAVAILABLE = "store_unavailable"
    INTERNAL_ERROR = "internal_error"


_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.MISSING_FIELDS: 400,
    ErrorCode.INVALID_PASSWORD: 400,
    ErrorCode.INVALID_CREDENTIALS: 401,
    ErrorCode.ACCOUNT_DISABLED: 403,
    ErrorCode.MALFORMED_AUTH_HEADER: 401,
    ErrorCode.TOKEN_INVALID: 401,
    ErrorCode.TOKEN_EXPIRED: 401,
    ErrorCode.UNVERIFIED_EMAIL: 401,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.STORE_UNAVAILABLE: 503,
    ErrorCode.INTERNAL_ERROR: 500,
}


def status_for(code: ErrorCode) -> int:
    """Return the HTTP status class a collaborator should use for an error code."""
    return _HTTP_STATUS.get(code, 500)


def auth_headers(code: ErrorCode) -> dict[str, str] | None:
    """Headers every response for this code must carry. 401s name the Bearer scheme."""
    if status_for(code) == 401:
        return {"WWW-Authenticate": "Bearer"}
    return None


class ConfigurationError(Exception):
    """Raised at construction time when the deployment is unusable (e.g. no signing secret)."""


class AuthError(Exception):
    """Base class for every failure the identity core reports."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class MissingFieldsError(AuthError):
    code = ErrorCode.MISSING_FIELDS
    default_message = "Email and password are required."


class InvalidCredentialsError(AuthError):
    # Same message for unknown email, wrong password, and disabled account.
    code = ErrorCode.INVALID_CREDENTIALS
    default_message = "Invalid email or password."


class InvalidPasswordError(AuthError):
    code = ErrorCode.INVALID_PASSWORD
    default_message = "Password must be at most 72 bytes long."


class AccountDisabledError(AuthError):
    code = ErrorCode.ACCOUNT_DISABLED
    default_message = "This account has been disabled."


class MalformedAuthHeaderError(AuthError):
    code = ErrorCode.MALFORMED_AUTH_HEADER
    default_message = "Authorization header must be 'Bearer <token>'."


class TokenInvalidError(AuthError):
    code = ErrorCode.TOKEN_INVALID
    default_message = "Token is invalid."


class TokenExpiredError(AuthError):
    code = ErrorCode.TOKEN_EXPIRED
    default_message = "Token has expired. Please log in again."


class UnverifiedEmailError(AuthError):
    code = ErrorCode.UNVERIFIED_EMAIL
    default_message = "The identity provider has not verified this email address."


class NotFoundError(AuthError):
    code = ErrorCode.NOT_FOUND
    default_message = "Account not found."


class ConflictError(AuthError):
    code = ErrorCode.CONFLICT
    default_message = "An account with that identity already exists."


class StoreUnavailableError(AuthError):
    code = ErrorCode.STORE_UNAVAILABLE
    default_message = "The account store is unavailable. Please retry."


class InternalError(AuthError):
    code = ErrorCode.INTERNAL_ERROR
