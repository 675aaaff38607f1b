"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper.
AccountStore is the repository; _row_to_record is the mapper. Route and core
code never touches SQL directly.

Failure signalling (what the identity core relies on):
  ConflictError         -- a UNIQUE constraint fired (email or external_id).
  NotFoundError         -- update/delete addressed an id that does not exist.
  StoreUnavailableError -- any other database failure (connection, locking...).
Raw SQLAlchemy exceptions never escape this module.

Uniqueness lives in the schema, not in code: email is UNIQUE NOT NULL and
external_id is UNIQUE but nullable. SQLite (like Postgres) treats NULLs as
distinct in UNIQUE constraints, which is exactly "unique when present" --
any number of password-only accounts may have no external_id.

Security:
  All queries use bound parameters. No f-strings in SQL.
  password_hash only leaves this module inside AccountRecord; callers hand
  out AccountRecord.public() instead.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import ConflictError, NotFoundError, StoreUnavailableError
from auth.models import AccountDraft, AccountRecord, normalize_email

logger = logging.getLogger("identitycore.auth.store")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'identitycore_accounts.db'}"

# Columns update() accepts. Anything else is a programming error.
_UPDATABLE_FIELDS = frozenset({"display_name", "email", "password_hash", "external_id", "age", "is_active"})


class AccountRepository(Protocol):
    """What the identity core needs from a store. AccountStore implements it."""

    def find_by_email(self, email: str) -> AccountRecord | None: ...

    def find_by_external_id(self, external_id: str) -> AccountRecord | None: ...

    def create(self, draft: AccountDraft) -> AccountRecord: ...

    def update(self, account_id: int, **fields) -> AccountRecord: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("display_name", String(255), nullable=False),
    Column("email", String(320), nullable=False, unique=True),  # normalized
    Column("password_hash", Text, nullable=False),
    Column("external_id", String(255), unique=True),  # NULL until linked
    Column("age", Integer),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    """Map SQLAlchemy failures onto the store's error contract."""
    try:
        yield
    except IntegrityError as exc:
        logger.info("Uniqueness violation during %s", action)
        raise ConflictError() from exc
    except SQLAlchemyError as exc:
        logger.exception("Account store failure during %s", action)
        raise StoreUnavailableError() from exc


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for account records.

    Usage:
        store = AccountStore("sqlite:///:memory:")
        record = store.create(AccountDraft(display_name="A", email="a@x.com", password_hash=h))
        store.find_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> AccountRecord | None:
        """Look up an account by normalized email. Returns None if not found."""
        with _translate_errors("find_by_email"), self.engine.connect() as conn:
            row = conn.execute(select(_accounts).where(_accounts.c.email == normalize_email(email))).fetchone()
        return _row_to_record(row) if row is not None else None

    def find_by_external_id(self, external_id: str) -> AccountRecord | None:
        """Look up the account linked to an external provider ID."""
        with _translate_errors("find_by_external_id"), self.engine.connect() as conn:
            row = conn.execute(select(_accounts).where(_accounts.c.external_id == external_id)).fetchone()
        return _row_to_record(row) if row is not None else None

    def get_by_id(self, account_id: int) -> AccountRecord | None:
        """Look up an account by primary key. Returns None if not found."""
        with _translate_errors("get_by_id"), self.engine.connect() as conn:
            row = conn.execute(select(_accounts).where(_accounts.c.id == account_id)).fetchone()
        return _row_to_record(row) if row is not None else None

    def list_accounts(self) -> list[AccountRecord]:
        """Return all accounts, newest first."""
        with _translate_errors("list_accounts"), self.engine.connect() as conn:
            rows = conn.execute(
                select(_accounts).order_by(_accounts.c.created_at.desc(), _accounts.c.id.desc())
            ).fetchall()
        return [_row_to_record(r) for r in rows]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, draft: AccountDraft) -> AccountRecord:
        """Insert a new account and return the stored record.

        Raises ConflictError if the email or external_id is already taken.
        Callers racing on the same identity rely on this rather than on a
        prior lookup.
        """
        now = _now_iso()
        with _translate_errors("create"), self.engine.connect() as conn:
            result = conn.execute(
                _accounts.insert().values(
                    display_name=draft.display_name.strip(),
                    email=normalize_email(draft.email),
                    password_hash=draft.password_hash,
                    external_id=draft.external_id,
                    age=draft.age,
                    is_active=1 if draft.is_active else 0,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            account_id = result.inserted_primary_key[0]
        return self._require(account_id)

    def update(self, account_id: int, **fields) -> AccountRecord:
        """Update mutable fields on an existing account and return the new record.

        Accepted fields: display_name, email, password_hash, external_id, age,
        is_active. Unknown keys raise ValueError rather than being ignored.

        Raises NotFoundError if account_id does not exist and ConflictError if
        the new email or external_id belongs to another account.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown account fields: {sorted(unknown)!r}")
        if "email" in fields:
            fields["email"] = normalize_email(fields["email"])
        if "display_name" in fields:
            fields["display_name"] = fields["display_name"].strip()
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0
        fields["updated_at"] = _now_iso()
        with _translate_errors("update"), self.engine.connect() as conn:
            result = conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(**fields))
            conn.commit()
        if result.rowcount == 0:
            raise NotFoundError()
        return self._require(account_id)

    def delete(self, account_id: int) -> AccountRecord:
        """Permanently delete an account and return the record as it was."""
        record = self._require(account_id)
        with _translate_errors("delete"), self.engine.connect() as conn:
            conn.execute(_accounts.delete().where(_accounts.c.id == account_id))
            conn.commit()
        return record

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
        except SQLAlchemyError:
            logger.warning("Account store ping failed", exc_info=True)
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()

    def _require(self, account_id: int) -> AccountRecord:
        record = self.get_by_id(account_id)
        if record is None:
            raise NotFoundError()
        return record


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_record(row) -> AccountRecord:
    return AccountRecord(
        id=row.id,
        display_name=row.display_name,
        email=row.email,
        password_hash=row.password_hash,
        external_id=row.external_id,
        age=row.age,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
