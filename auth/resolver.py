"""
auth/resolver.py -- Reconcile an external identity with local accounts.

Given a provider profile (stable external ID, email, display name), decide
whether to reuse, link, or create a local account:

  1. MATCHED -- an account already carries this external_id. Returned as-is;
     its stored email is not overwritten even if the provider's changed.
  2. LINKED  -- no external_id match, but an account has this email. The
     external_id is written onto that account (same id). A password-only
     account thereby also accepts provider login.
  3. CREATED -- neither matched. A new active account is created with a
     placeholder password hash.

The external_id lookup always wins, so a linked account is never re-linked
or duplicated.

A disabled account found by email is never linked: the resolver raises
AccountDisabledError before writing anything.

Linking by email hands the local account to whoever controls that email at
the provider. It is only safe when the provider verified the address, so
LINKED and CREATED both require profile.email_verified; otherwise the
resolver raises UnverifiedEmailError and writes nothing.

Structure: decide() is a pure function over the two lookup results and
returns the intended action; resolve_external_identity() does the lookups,
calls decide(), and performs the single store write the decision asks for.

Failures: lookups and writes surface StoreUnavailableError unchanged; a
UNIQUE violation (e.g. a concurrent login for the same identity) surfaces as
ConflictError. Neither is an authentication verdict.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from auth.errors import AccountDisabledError, ConflictError, UnverifiedEmailError
from auth.models import (
    Account,
    AccountDraft,
    AccountRecord,
    ExternalProfile,
    Resolution,
    ResolvedIdentity,
    normalize_email,
)
from auth.passwords import DEFAULT_ROUNDS, placeholder_password_hash
from auth.store import AccountRepository

logger = logging.getLogger("identitycore.auth.resolver")


@dataclass(frozen=True)
class Decision:
    """The resolver's intended action. account is None only for CREATED."""

    action: Resolution
    account: AccountRecord | None = None


def decide(by_external_id: AccountRecord | None, by_email: AccountRecord | None) -> Decision:
    """Pick MATCHED, LINKED or CREATED from the two lookup results."""
    if by_external_id is not None:
        return Decision(Resolution.MATCHED, by_external_id)
    if by_email is not None:
        return Decision(Resolution.LINKED, by_email)
    return Decision(Resolution.CREATED)


def resolve_external_identity(
    store: AccountRepository,
    profile: ExternalProfile,
    rounds: int = DEFAULT_ROUNDS,
) -> ResolvedIdentity:
    """Find, link, or create the local account for an external identity."""
    by_external_id = store.find_by_external_id(profile.external_id)
    by_email = None
    if by_external_id is None:
        by_email = store.find_by_email(normalize_email(profile.email))

    decision = decide(by_external_id, by_email)

    if decision.action is Resolution.MATCHED:
        return ResolvedIdentity(decision.account.public(), Resolution.MATCHED)

    if not profile.email_verified:
        logger.warning("Refusing %s resolution for unverified provider email", decision.action.value)
        raise UnverifiedEmailError()

    if decision.action is Resolution.LINKED:
        return ResolvedIdentity(_link(store, decision.account, profile), Resolution.LINKED)
    return ResolvedIdentity(_create(store, profile, rounds), Resolution.CREATED)


def _link(store: AccountRepository, record: AccountRecord, profile: ExternalProfile) -> Account:
    if not record.is_active:
        logger.info("Refusing to link external identity to disabled account %s", record.id)
        raise AccountDisabledError()
    if record.external_id is not None and record.external_id != profile.external_id:
        # Already bound to a different provider identity.
        logger.warning("Account %s is linked to another external identity", record.id)
        raise ConflictError()
    linked = store.update(record.id, external_id=profile.external_id)
    logger.info("Linked external identity to account %s", linked.id)
    return linked.public()


def _create(store: AccountRepository, profile: ExternalProfile, rounds: int) -> Account:
    draft = AccountDraft(
        display_name=profile.display_name.strip() or normalize_email(profile.email),
        email=normalize_email(profile.email),
        password_hash=placeholder_password_hash(rounds),
        external_id=profile.external_id,
        is_active=True,
    )
    created = store.create(draft)
    logger.info("Created account %s from external identity", created.id)
    return created.public()
