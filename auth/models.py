"""
auth/models.py -- Domain dataclasses for identity entities.

Pattern: Data class (pure data container, almost no logic). Stores and the
core functions do the work; these classes own the domain shape.

Two views of an account exist on purpose:
  AccountRecord -- what the store holds, including password_hash. Only the
      store and the credential/resolver layer ever see it.
  Account       -- the public view returned to every caller. It has no
      password_hash field at all, so the hash cannot leak by accident.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


def normalize_email(email: str) -> str:
    """Trim and lower-case an email so lookups and the UNIQUE index agree."""
    return email.strip().lower()


@dataclass(frozen=True)
class Principal:
    """The verified identity attached to a request after authentication.

    Built from a token's claims (or straight from an Account at login). Never
    persisted.
    """

    user_id: int
    email: str
    display_name: str


@dataclass(frozen=True)
class Account:
    """Public fields of a stored account. Safe to serialize to clients."""

    id: int
    display_name: str
    email: str
    external_id: str | None = None
    age: int | None = None
    is_active: bool = True
    created_at: str | None = None
    updated_at: str | None = None

    def to_principal(self) -> Principal:
        return Principal(user_id=self.id, email=self.email, display_name=self.display_name)


@dataclass
class AccountRecord:
    """A stored account row, password_hash included.

    password_hash is always present. Accounts created from an external
    identity carry the hash of a random throwaway secret nobody knows.
    """

    id: int
    display_name: str
    email: str
    password_hash: str
    external_id: str | None = None  # provider's stable user ID
    age: int | None = None
    is_active: bool = True
    created_at: str | None = None
    updated_at: str | None = None

    def public(self) -> Account:
        """Return the Account view of this record (drops password_hash)."""
        return Account(
            id=self.id,
            display_name=self.display_name,
            email=self.email,
            external_id=self.external_id,
            age=self.age,
            is_active=self.is_active,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


@dataclass
class AccountDraft:
    """Fields for AccountStore.create(). The store assigns id and timestamps."""

    display_name: str
    email: str
    password_hash: str
    external_id: str | None = None
    age: int | None = None
    is_active: bool = True


@dataclass(frozen=True)
class ExternalProfile:
    """An identity asserted by a third-party provider after code exchange.

    email_verified must come from the provider's own claim (OIDC
    email_verified). The resolver refuses to link or create with an
    unverified email.
    """

    external_id: str
    email: str
    display_name: str
    email_verified: bool = False


class Resolution(str, Enum):
    """How the resolver satisfied an external identity."""

    MATCHED = "matched"
    LINKED = "linked"
    CREATED = "created"


@dataclass(frozen=True)
class ResolvedIdentity:
    account: Account
    resolution: Resolution
