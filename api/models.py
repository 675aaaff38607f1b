"""
API request and response models for the identity service REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request fields default to "" instead of being required: an absent email or
password must reach the identity core and come back as missing_fields (400)
with a message that does not say which field was missing, rather than as a
per-field 422 from Pydantic.

Passwords are capped at 72 UTF-8 bytes, bcrypt's input limit. A multibyte
password can reach that with far fewer than 72 characters.
"""

from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from auth.models import Account
from auth.passwords import MAX_PASSWORD_BYTES, password_too_long

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 72


def _check_password_length(value: Optional[str]) -> Optional[str]:
    if value and len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if value and password_too_long(value):
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
    return value


_Password = Annotated[str, Field(max_length=MAX_PASSWORD_LENGTH), AfterValidator(_check_password_length)]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: str = Field(default="", max_length=320)
    password: str = Field(default="", max_length=MAX_PASSWORD_LENGTH)


class AccountCreate(BaseModel):
    """Request body for POST /api/v1/auth/register and POST /api/v1/users."""

    display_name: str = Field(default="", max_length=255)
    email: str = Field(default="", max_length=320)
    password: _Password = ""
    age: Optional[int] = Field(default=None, ge=0, le=150)


class AccountUpdate(BaseModel):
    """Request body for PUT /api/v1/users/{id}. Omitted fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    display_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, min_length=3, max_length=320)
    age: Optional[int] = Field(default=None, ge=0, le=150)
    is_active: Optional[bool] = None
    password: Optional[_Password] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AccountResponse(BaseModel):
    """Public view of an account. There is no password field to leak."""

    model_config = ConfigDict(frozen=True)

    id: int
    display_name: str
    email: str
    age: Optional[int] = None
    is_active: bool
    external_id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            display_name=account.display_name,
            email=account.email,
            age=account.age,
            is_active=account.is_active,
            external_id=account.external_id,
            created_at=account.created_at or "",
            updated_at=account.updated_at or "",
        )


class TokenResponse(BaseModel):
    """Response for successful login and registration."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    account: AccountResponse


class AccountListResponse(BaseModel):
    """Response for GET /api/v1/users -- newest accounts first."""

    model_config = ConfigDict(frozen=True)

    total: int
    accounts: list[AccountResponse]


class AccountDeletedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    account: AccountResponse


class OAuthProviderInfo(BaseModel):
    """One configured external identity provider."""

    model_config = ConfigDict(frozen=True)

    name: str
    label: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
