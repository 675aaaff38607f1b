"""
tests/conftest.py -- Shared test fixtures for the identity service.

This module provides:
  - store: a fresh in-memory AccountStore per test (unit tests)
  - create_account(): inserts a password account directly into a store
  - clock_at() / tokens: TokenService with an injected, frozen clock
  - _patch_lifespan(): wires a test IdentityService into app.state
  - api_context: TestClient + the IdentityService and OAuth mock behind it
  - api_client: TestClient + a bearer token for an existing account

Design: Named shared-memory SQLite URIs (not plain :memory:) are used for the
API client because TestClient runs route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. The named URI format shares one in-memory instance across all
connections in the same process.

The DEBUG env var must be set before any api import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import AccountDraft, AccountRecord
from auth.passwords import hash_password
from auth.service import IdentityService
from auth.store import AccountStore
from auth.tokens import TokenService

TEST_SECRET = "test-signing-secret-0123456789abcdef"
OTHER_SECRET = "another-signing-secret-fedcba9876543210"
# Minimum accepted cost; keeps the suite fast.
TEST_ROUNDS = 10
T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

# Login throttling is exercised by slowapi itself; tests log in many times.
limiter.enabled = False


def clock_at(moment: datetime) -> Callable[[], datetime]:
    return lambda: moment


def create_account(
    store: AccountStore,
    email: str = "a@x.com",
    password: str = "correct-horse",
    display_name: str = "A",
    external_id: str | None = None,
    is_active: bool = True,
) -> AccountRecord:
    return store.create(
        AccountDraft(
            display_name=display_name,
            email=email,
            password_hash=hash_password(password, rounds=TEST_ROUNDS),
            external_id=external_id,
            is_active=is_active,
        )
    )


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[AccountStore, None, None]:
    s = AccountStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(TEST_SECRET, clock=clock_at(T0))


@pytest.fixture
def identity(store: AccountStore) -> IdentityService:
    return IdentityService(store, TokenService(TEST_SECRET), bcrypt_rounds=TEST_ROUNDS)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(identity: IdentityService, oauth):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-built IdentityService and an OAuth registry stand-in into
    app.state so routes see an isolated test DB and make no network calls.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.identity = identity
        app.state.oauth = oauth
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_context() -> Generator[tuple[TestClient, IdentityService, MagicMock], None, None]:
    """Yield (client, identity, oauth_mock) backed by a named shared-memory store."""
    module_db = f"test_identity_{uuid.uuid4().hex}"
    store = AccountStore(f"sqlite:///file:{module_db}?mode=memory&cache=shared&uri=true")
    identity = IdentityService(store, TokenService(TEST_SECRET, ttl=timedelta(hours=24)), bcrypt_rounds=TEST_ROUNDS)
    oauth = MagicMock()

    app.router.lifespan_context = _patch_lifespan(identity, oauth)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client, identity, oauth

    store.close()


@pytest.fixture(scope="module")
def api_client(api_context) -> tuple[TestClient, str, int]:
    """Yield (client, token, account_id) for an existing, logged-in account.

    The account has email "owner@example.com" and password "ownerpass123".
    """
    client, identity, _oauth = api_context
    record = create_account(identity.store, email="owner@example.com", password="ownerpass123", display_name="Owner")
    token = identity.issue_token(record.public())
    return client, token, record.id
