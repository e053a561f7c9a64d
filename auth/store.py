"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user / _row_to_profile are the mappers.
Service and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  list_all() selects only the profile columns. password_hash and
  two_factor_secret are never read for a listing, so they cannot leak
  through it.

Uniqueness: the UNIQUE constraint on users.email is the last line of
defense. AuthService pre-checks before every write so callers get
EmailInUse; create() and update() still raise IntegrityError if a
concurrent request wins the race.

Concurrency: each write is one UPDATE/INSERT/DELETE in its own
transaction. Concurrent writes to the same row are last-write-wins; there
is no compare-and-swap.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select, text
from sqlalchemy.engine import Engine

from auth.models import User, UserProfile
from core.config import Settings

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),  # UUID4 string
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("two_factor_secret", Text),  # NULL = 2FA never started or disabled
    Column("two_factor_enabled", Integer, nullable=False, server_default="0"),
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


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records, keyed by id and by email.

    Usage:
        store = UserStore(settings)
        user = store.create("a@x.com", hasher.hash("secret123"))
        store.find_by_email("a@x.com")
        store.close()
    """

    def __init__(self, settings: Settings) -> None:
        db_url = settings.database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        """Return True if at least one user record exists."""
        with self.engine.connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM users")).scalar()
        return (result or 0) > 0

    def ping(self) -> bool:
        """Round-trip a trivial query. Used by the health endpoint."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_all(self) -> list[UserProfile]:
        """Return every account as a credential-free projection, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(
                    _users.c.id,
                    _users.c.email,
                    _users.c.two_factor_enabled,
                    _users.c.created_at,
                    _users.c.updated_at,
                ).order_by(_users.c.created_at, _users.c.email)
            ).fetchall()
        return [_row_to_profile(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, email: str, password_hash: str) -> User:
        """Insert a new user and return the stored record.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        now = _now_iso()
        user_id = str(uuid.uuid4())
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=email,
                    password_hash=password_hash,
                    two_factor_secret=None,
                    two_factor_enabled=0,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return User(
            id=user_id,
            email=email,
            password_hash=password_hash,
            created_at=now,
            updated_at=now,
        )

    def update(self, user_id: str, email: str | None = None, password_hash: str | None = None) -> User | None:
        """Change email and/or password hash in a single statement.

        Fields left as None are untouched. With nothing to change the current
        record is returned without a write. Returns None if user_id is unknown.

        Raises sqlalchemy.exc.IntegrityError if the new email is taken.
        """
        fields: dict = {}
        if email is not None:
            fields["email"] = email
        if password_hash is not None:
            fields["password_hash"] = password_hash
        if not fields:
            return self.find_by_id(user_id)
        return self._update_fields(user_id, fields)

    def update_two_factor(self, user_id: str, secret: str | None, enabled: bool) -> User | None:
        """Set both 2FA fields together. Returns None if user_id is unknown."""
        return self._update_fields(
            user_id,
            {"two_factor_secret": secret, "two_factor_enabled": 1 if enabled else 0},
        )

    def delete(self, user_id: str) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()

    def _update_fields(self, user_id: str, fields: dict) -> User | None:
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.find_by_id(user_id)


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        two_factor_secret=row.two_factor_secret,
        two_factor_enabled=bool(row.two_factor_enabled),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_profile(row) -> UserProfile:
    return UserProfile(
        id=row.id,
        email=row.email,
        two_factor_enabled=bool(row.two_factor_enabled),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
