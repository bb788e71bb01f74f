"""
auth/store.py -- SQLAlchemy Core persistence layer for credentials.

Pattern: Repository + Data Mapper (same as library/store.py).
UserStore is the repository; _row_to_record is the mapper. The negotiator
and route handlers never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  api_key is UNIQUE and nullable. SQLite treats NULLs as distinct in UNIQUE
  constraints, so any number of users can be without a key.

Concurrency:
  issue_api_key() is a single conditional write (UPDATE ... WHERE api_key IS
  NULL). Two concurrent first-time requests may both generate a key; only one
  write lands, and both callers re-read and return the stored value.

Layer rule: no imports from api/, library/ or subsonic/.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Boolean, Column, Integer, MetaData, String, Table, Text, create_engine, event, select, text
from sqlalchemy.engine import Engine

from auth.models import CredentialRecord, Identity

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'sonicgate_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("password_plain", Text),  # legacy t/s digest only; NULL = scheme unavailable
    Column("is_admin", Boolean, nullable=False, server_default="0"),
    Column("api_key", String(64), unique=True),  # NULL until first getApiKey
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode; set per-connection because PRAGMAs are not inherited."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for CredentialRecord entities.

    Usage:
        store = UserStore("sqlite:///auth.db")
        store.create_user("alice", hash_password("secret"), legacy_password="secret")
        record = store.get_credentials("alice")
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
        self._ensure_columns()

    def _ensure_columns(self) -> None:
        """Add columns introduced after the first release to an existing users table.

        Column names are constants, so interpolation in ALTER TABLE is safe.
        SQLite cannot ADD a UNIQUE column; uniqueness of api_key on upgraded
        databases is covered by a separate unique index.
        """
        with self.engine.connect() as conn:
            existing = {row[1] for row in conn.execute(text("PRAGMA table_info(users)"))}
            for col, typ in (("password_plain", "TEXT"), ("api_key", "TEXT")):
                if col not in existing:
                    conn.execute(text(f"ALTER TABLE users ADD COLUMN {col} {typ}"))  # nosemgrep
            conn.execute(text("CREATE UNIQUE INDEX IF NOT EXISTS ix_users_api_key ON users (api_key)"))
            conn.commit()

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM users")).scalar()
        return (result or 0) > 0

    def create_user(
        self,
        username: str,
        password_hash: str,
        *,
        legacy_password: str | None = None,
        is_admin: bool = False,
    ) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the username already exists.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=username,
                    password_hash=password_hash,
                    password_plain=legacy_password or None,
                    is_admin=is_admin,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_credentials(self, username: str) -> CredentialRecord | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_record(row) if row is not None else None

    def get_by_id(self, user_id: int) -> CredentialRecord | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_record(row) if row is not None else None

    def get_identity_by_api_key(self, api_key: str) -> Identity | None:
        """Resolve an API key to its owner. O(1) via the UNIQUE index."""
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_users.c.id, _users.c.username, _users.c.is_admin).where(_users.c.api_key == api_key)
            ).fetchone()
        if row is None:
            return None
        return Identity(id=row.id, username=row.username, is_admin=bool(row.is_admin))

    def list_users(self) -> list[CredentialRecord]:
        """Return all users ordered by username."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.username)).fetchall()
        return [_row_to_record(r) for r in rows]

    def update_password(self, user_id: int, password_hash: str, legacy_password: str | None = None) -> bool:
        """Replace the password hash and legacy plaintext. Returns False if user_id was not found."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(password_hash=password_hash, password_plain=legacy_password or None)
            )
            conn.commit()
        return result.rowcount > 0

    def set_admin(self, user_id: int, is_admin: bool) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(is_admin=is_admin))
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # API keys
    # ------------------------------------------------------------------

    def set_api_key(self, user_id: int, api_key: str | None) -> bool:
        """Store (or, with None, revoke) the user's API key. Returns False if user_id was not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(api_key=api_key))
            conn.commit()
        return result.rowcount > 0

    def issue_api_key(self, user_id: int, generate: Callable[[], str]) -> str | None:
        """Return the user's API key, generating and storing one if absent.

        Returns None only when the user does not exist.
        """
        record = self.get_by_id(user_id)
        if record is None:
            return None
        if record.api_key:
            return record.api_key
        with self.engine.connect() as conn:
            conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & (_users.c.api_key.is_(None)))
                .values(api_key=generate())
            )
            conn.commit()
        stored = self.get_by_id(user_id)
        return stored.api_key if stored is not None else None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_record(row) -> CredentialRecord:
    return CredentialRecord(
        id=row.id,
        username=row.username,
        password_hash=row.password_hash,
        legacy_password=row.password_plain or None,
        is_admin=bool(row.is_admin),
        api_key=row.api_key or None,
        created_at=row.created_at,
    )
