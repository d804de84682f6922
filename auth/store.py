"""
auth/store.py -- SQLAlchemy Core persistence layer for user identities.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Session and route code never touches SQL directly.

The refresh token lives in a column of the users row rather than in its own
table: one identity has at most one live refresh token, and the column IS the
session store. The refresh-token methods are narrow field updates -- they
write refresh_token and updated_at and nothing else, so profile validation
never runs on the login/refresh/logout paths.

Concurrency:
  swap_refresh_token() is a single conditional UPDATE
  (WHERE id = :id AND refresh_token = :expected). The database applies it
  atomically, so when two refresh requests race with the same token exactly
  one of them changes a row. The loser sees rowcount 0.

Security:
  All queries use bound parameters. No f-strings in SQL.
  update_user() only accepts whitelisted profile columns; refresh_token and
  hashed_password can never be written through it.

DB path: auth/sessionvault_auth.db unless DATABASE_URL is set.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, or_, text
from sqlalchemy.engine import Engine

from auth.models import User

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'sessionvault_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),  # lower-cased
    Column("email", String(255), nullable=False, unique=True),  # lower-cased
    Column("full_name", String(255), nullable=False),
    Column("hashed_password", Text, nullable=False),
    Column("avatar", Text, nullable=False, server_default=""),
    Column("cover_image", Text, nullable=False, server_default=""),
    Column("refresh_token", Text),  # NULL = no live session
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers never block on a rotating writer.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _normalize(value: str) -> str:
    return value.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records and their refresh-token column.

    Usage:
        store = UserStore()
        user_id = store.create_user(User(username="alice", email="a@x.io", ...))
        store.set_refresh_token(user_id, token)
        store.close()
    """

    # Profile columns writable via update_user(). Anything else is rejected
    # before SQL is built.
    _PROFILE_FIELDS: frozenset = frozenset({"full_name", "email", "avatar", "cover_image"})

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        username and email are normalized to lower case. refresh_token is
        always NULL on creation -- a session starts only at login.

        Raises sqlalchemy.exc.IntegrityError if the username or email already
        exists. The register route turns that into a 409.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=_normalize(user.username),
                    email=_normalize(user.email),
                    full_name=user.full_name,
                    hashed_password=user.hashed_password,
                    avatar=user.avatar,
                    cover_image=user.cover_image,
                    refresh_token=None,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by username (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == _normalize(username))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == _normalize(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_username_or_email(self, username: str | None = None, email: str | None = None) -> User | None:
        """Return the user whose username OR email matches.

        Either argument may be None. When both are given and match different
        rows, the lowest id wins so the result is deterministic. Returns None
        when neither argument is given.
        """
        conditions = []
        if username:
            conditions.append(_users.c.username == _normalize(username))
        if email:
            conditions.append(_users.c.email == _normalize(email))
        if not conditions:
            return None
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(or_(*conditions)).order_by(_users.c.id).limit(1)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_user(self, user_id: int, **fields) -> User | None:
        """Update profile fields and return the fresh record.

        Accepted fields: full_name, email, avatar, cover_image. Unknown keys
        raise ValueError rather than being silently ignored. Returns None if
        user_id was not found.

        Raises sqlalchemy.exc.IntegrityError if the new email is taken.
        """
        unknown = set(fields) - self._PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable: {sorted(unknown)!r}")
        if "email" in fields:
            fields["email"] = _normalize(fields["email"])
        if fields:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.update().where(_users.c.id == user_id).values(updated_at=_now_iso(), **fields)
                )
                conn.commit()
            if result.rowcount == 0:
                return None
        return self.get_by_id(user_id)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    # ------------------------------------------------------------------
    # Refresh token (session store)
    # ------------------------------------------------------------------

    def set_refresh_token(self, user_id: int, token: str) -> bool:
        """Overwrite the stored refresh token unconditionally (login path).

        Returns True if a row was updated, False if user_id was not found.
        """
        return self._write_refresh_token(_users.c.id == user_id, token)

    def get_refresh_token(self, user_id: int) -> str | None:
        """Return the stored refresh token, or None if absent or no such user."""
        with self.engine.connect() as conn:
            return conn.execute(
                _users.select().with_only_columns(_users.c.refresh_token).where(_users.c.id == user_id)
            ).scalar()

    def clear_refresh_token(self, user_id: int) -> bool:
        """Set the stored refresh token to NULL (logout path).

        Returns True if the user row exists, whether or not a token was set.
        """
        return self._write_refresh_token(_users.c.id == user_id, None)

    def swap_refresh_token(self, user_id: int, expected: str, new: str) -> bool:
        """Replace the stored refresh token only if it still equals expected.

        One conditional UPDATE, so the check and the write cannot interleave
        with another writer. Returns True iff this call performed the swap.
        """
        return self._write_refresh_token((_users.c.id == user_id) & (_users.c.refresh_token == expected), new)

    def _write_refresh_token(self, where, token: str | None) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(where).values(refresh_token=token, updated_at=_now_iso()))
            conn.commit()
        return result.rowcount == 1

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        full_name=row.full_name,
        hashed_password=row.hashed_password,
        avatar=row.avatar or "",
        cover_image=row.cover_image or "",
        refresh_token=row.refresh_token,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
