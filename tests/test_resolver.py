"""
tests/test_resolver.py -- Unit tests for external identity resolution.

decide() is pure and tested on hand-built records. resolve_external_identity()
is tested against a real in-memory AccountStore for the match / link / create
paths and against MagicMock stores for failure propagation.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from auth.errors import AccountDisabledError, ConflictError, ErrorCode, StoreUnavailableError, UnverifiedEmailError
from auth.models import AccountRecord, ExternalProfile, Resolution
from auth.passwords import verify_password
from auth.resolver import decide, resolve_external_identity
from auth.store import AccountStore
from conftest import TEST_ROUNDS, create_account


def _profile(external_id: str = "google:ext-1", email: str = "b@x.com", verified: bool = True) -> ExternalProfile:
    return ExternalProfile(external_id=external_id, email=email, display_name="B", email_verified=verified)


def _record(id: int = 1, external_id: str | None = None) -> AccountRecord:
    return AccountRecord(id=id, display_name="R", email=f"r{id}@x.com", password_hash="h", external_id=external_id)


class TestDecide:
    def test_external_id_match_wins_over_email_match(self) -> None:
        by_ext, by_email = _record(1, "google:ext-1"), _record(2)
        decision = decide(by_ext, by_email)
        assert decision.action is Resolution.MATCHED
        assert decision.account is by_ext

    def test_email_match_links(self) -> None:
        by_email = _record(2)
        decision = decide(None, by_email)
        assert decision.action is Resolution.LINKED
        assert decision.account is by_email

    def test_no_match_creates(self) -> None:
        decision = decide(None, None)
        assert decision.action is Resolution.CREATED
        assert decision.account is None


class TestResolveExternalIdentity:
    def test_matched_returns_existing_account_unchanged(self, store: AccountStore) -> None:
        existing = create_account(store, email="old@x.com", external_id="google:ext-1")
        resolved = resolve_external_identity(store, _profile(email="new@x.com"), rounds=TEST_ROUNDS)
        assert resolved.resolution is Resolution.MATCHED
        assert resolved.account.id == existing.id
        # The provider's (changed) email does not overwrite the stored one.
        assert store.get_by_id(existing.id).email == "old@x.com"

    def test_links_password_account_by_email(self, store: AccountStore) -> None:
        existing = create_account(store, email="b@x.com", password="pw-123456")
        resolved = resolve_external_identity(store, _profile(email="B@X.com"), rounds=TEST_ROUNDS)

        assert resolved.resolution is Resolution.LINKED
        assert resolved.account.id == existing.id
        assert resolved.account.external_id == "google:ext-1"
        # Password login keeps working after linking.
        stored = store.get_by_id(existing.id)
        assert verify_password("pw-123456", stored.password_hash)

    def test_creates_new_active_account(self, store: AccountStore) -> None:
        resolved = resolve_external_identity(store, _profile(email="c@x.com"), rounds=TEST_ROUNDS)

        assert resolved.resolution is Resolution.CREATED
        assert resolved.account.email == "c@x.com"
        assert resolved.account.external_id == "google:ext-1"
        assert resolved.account.is_active is True
        stored = store.get_by_id(resolved.account.id)
        assert stored.password_hash.startswith("$2")

    def test_second_resolution_matches_without_duplicates(self, store: AccountStore) -> None:
        first = resolve_external_identity(store, _profile(), rounds=TEST_ROUNDS)
        second = resolve_external_identity(store, _profile(), rounds=TEST_ROUNDS)
        assert first.resolution is Resolution.CREATED
        assert second.resolution is Resolution.MATCHED
        assert second.account.id == first.account.id
        assert len(store.list_accounts()) == 1

    def test_linked_account_is_matched_next_time(self, store: AccountStore) -> None:
        create_account(store, email="b@x.com")
        resolve_external_identity(store, _profile(), rounds=TEST_ROUNDS)
        again = resolve_external_identity(store, _profile(), rounds=TEST_ROUNDS)
        assert again.resolution is Resolution.MATCHED

    def test_unverified_email_cannot_link(self, store: AccountStore) -> None:
        existing = create_account(store, email="b@x.com")
        with pytest.raises(UnverifiedEmailError) as exc_info:
            resolve_external_identity(store, _profile(verified=False), rounds=TEST_ROUNDS)
        assert exc_info.value.code is ErrorCode.UNVERIFIED_EMAIL
        assert store.get_by_id(existing.id).external_id is None

    def test_unverified_email_cannot_create(self, store: AccountStore) -> None:
        with pytest.raises(UnverifiedEmailError):
            resolve_external_identity(store, _profile(verified=False), rounds=TEST_ROUNDS)
        assert store.list_accounts() == []

    def test_unverified_email_can_still_match(self, store: AccountStore) -> None:
        existing = create_account(store, email="b@x.com", external_id="google:ext-1")
        resolved = resolve_external_identity(store, _profile(verified=False), rounds=TEST_ROUNDS)
        assert resolved.account.id == existing.id

    def test_disabled_account_is_not_linked(self, store: AccountStore) -> None:
        existing = create_account(store, email="b@x.com", is_active=False)
        with pytest.raises(AccountDisabledError) as exc_info:
            resolve_external_identity(store, _profile(), rounds=TEST_ROUNDS)
        assert exc_info.value.code is ErrorCode.ACCOUNT_DISABLED
        assert store.get_by_id(existing.id).external_id is None

    def test_account_linked_elsewhere_is_a_conflict(self, store: AccountStore) -> None:
        existing = create_account(store, email="b@x.com", external_id="oidc:someone-else")
        with pytest.raises(ConflictError):
            resolve_external_identity(store, _profile(), rounds=TEST_ROUNDS)
        assert store.get_by_id(existing.id).external_id == "oidc:someone-else"

    def test_lookup_failure_propagates(self) -> None:
        store = MagicMock()
        store.find_by_external_id.side_effect = StoreUnavailableError()
        with pytest.raises(StoreUnavailableError):
            resolve_external_identity(store, _profile(), rounds=TEST_ROUNDS)
        store.create.assert_not_called()

    def test_lost_create_race_surfaces_conflict(self) -> None:
        store = MagicMock()
        store.find_by_external_id.return_value = None
        store.find_by_email.return_value = None
        store.create.side_effect = ConflictError()
        with pytest.raises(ConflictError):
            resolve_external_identity(store, _profile(), rounds=TEST_ROUNDS)

    def test_email_lookup_skipped_on_external_match(self) -> None:
        store = MagicMock()
        store.find_by_external_id.return_value = _record(5, "google:ext-1")
        resolved = resolve_external_identity(store, _profile(), rounds=TEST_ROUNDS)
        assert resolved.account.id == 5
        store.find_by_email.assert_not_called()
        store.update.assert_not_called()
        store.create.assert_not_called()

    def test_link_write_failure_propagates(self) -> None:
        store = MagicMock()
        store.find_by_external_id.return_value = None
        store.find_by_email.return_value = _record(3)
        store.update.side_effect = StoreUnavailableError()
        with pytest.raises(StoreUnavailableError):
            resolve_external_identity(store, _profile(), rounds=TEST_ROUNDS)
        store.update.assert_called_once_with(3, external_id="google:ext-1")

    def test_create_write_failure_propagates(self) -> None:
        store = MagicMock()
        store.find_by_external_id.return_value = None
        store.find_by_email.return_value = None
        store.create.side_effect = StoreUnavailableError()
        with pytest.raises(StoreUnavailableError) as exc_info:
            resolve_external_identity(store, _profile(), rounds=TEST_ROUNDS)
        assert exc_info.value.code is ErrorCode.STORE_UNAVAILABLE
        store.create.assert_called_once()


class TestUnreachableDatabase:
    """A real AccountStore whose engine can no longer connect."""

    @pytest.fixture
    def broken_store(self, store: AccountStore, monkeypatch) -> AccountStore:
        engine = MagicMock()
        engine.connect.side_effect = OperationalError("SELECT 1", {}, Exception("unable to open database file"))
        monkeypatch.setattr(store, "engine", engine)
        return store

    def test_lookup_raises_store_unavailable(self, broken_store: AccountStore) -> None:
        with pytest.raises(StoreUnavailableError):
            broken_store.find_by_email("a@x.com")

    def test_create_raises_store_unavailable(self, broken_store: AccountStore) -> None:
        with pytest.raises(StoreUnavailableError):
            create_account(broken_store)

    def test_update_raises_store_unavailable(self, broken_store: AccountStore) -> None:
        with pytest.raises(StoreUnavailableError):
            broken_store.update(1, external_id="google:ext-1")

    def test_resolver_surfaces_store_unavailable(self, broken_store: AccountStore) -> None:
        with pytest.raises(StoreUnavailableError):
            resolve_external_identity(broken_store, _profile(), rounds=TEST_ROUNDS)

    def test_ping_reports_failure(self, broken_store: AccountStore) -> None:
        assert broken_store.ping() is False
