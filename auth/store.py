"""
auth/store.py -- Persistence layer for user records.

Pattern: Repository + Data Mapper.
UserRepository is the contract every backend satisfies; services and guards
depend on it and never on a concrete backend.

Backends:
  InMemoryUserStore -- ordered list of records, process lifetime only. This is
      the default (DATABASE_URL empty). Every read and write takes a single
      threading.Lock because FastAPI runs sync dependencies and threadpool
      work concurrently. insert() and update() check email uniqueness under
      the same lock, so two concurrent registrations for one email cannot
      both succeed.

  SqlUserStore -- SQLAlchemy Core table. UNIQUE(email) in the schema plays
      the role of the lock; IntegrityError is translated to
      DuplicateEmailError so callers see one exception type for both
      backends.

Both backends hand out copies of their records. Mutating a returned User has
no effect on the store; go through update().

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import User

logger = logging.getLogger("useraccounts.store")

# Fields update() accepts. id and created_at are immutable; is_admin is fixed
# at registration.
_MUTABLE_FIELDS = frozenset({"email", "hashed_password", "age", "updated_at"})


class DuplicateEmailError(Exception):
    """Raised when an insert or update would give two records the same email."""

    def __init__(self, email: str) -> None:
        super().__init__(f"email already registered: {email}")
        self.email = email


class UserRepository(Protocol):
    def find_by_email(self, email: str) -> User | None: ...

    def find_by_id(self, user_id: str) -> User | None: ...

    def list_all(self) -> list[User]: ...

    def insert(self, user: User) -> User: ...

    def update(self, user_id: str, **fields: Any) -> User | None: ...

    def delete(self, user_id: str) -> bool: ...

    def ping(self) -> bool: ...

    def close(self) -> None: ...


def _check_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - _MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"cannot update fields: {sorted(unknown)}")


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class InMemoryUserStore:
    """Ordered, lock-protected list of users.

    Usage:
        store = InMemoryUserStore()
        store.insert(User(id=str(uuid4()), email="a@x.com", hashed_password=hash_password("pw")))
        user = store.find_by_email("a@x.com")
    """

    def __init__(self) -> None:
        self._users: list[User] = []
        self._lock = threading.Lock()

    def _index_of(self, user_id: str) -> int:
        for i, user in enumerate(self._users):
            if user.id == user_id:
                return i
        return -1

    def find_by_email(self, email: str) -> User | None:
        with self._lock:
            for user in self._users:
                if user.email == email:
                    return replace(user)
        return None

    def find_by_id(self, user_id: str) -> User | None:
        with self._lock:
            idx = self._index_of(user_id)
            return replace(self._users[idx]) if idx != -1 else None

    def list_all(self) -> list[User]:
        """Return every record in insertion order."""
        with self._lock:
            return [replace(u) for u in self._users]

    def insert(self, user: User) -> User:
        """Append a record. Raises DuplicateEmailError if the email is taken."""
        with self._lock:
            if any(u.email == user.email for u in self._users):
                raise DuplicateEmailError(user.email)
            if self._index_of(user.id) != -1:
                raise ValueError(f"duplicate user id: {user.id}")
            self._users.append(replace(user))
        return replace(user)

    def update(self, user_id: str, **fields: Any) -> User | None:
        """Merge fields into the record in place. Returns the new record, or None if absent."""
        _check_fields(fields)
        with self._lock:
            idx = self._index_of(user_id)
            if idx == -1:
                return None
            email = fields.get("email")
            if email is not None and any(u.email == email and u.id != user_id for u in self._users):
                raise DuplicateEmailError(email)
            self._users[idx] = replace(self._users[idx], **fields)
            return replace(self._users[idx])

    def delete(self, user_id: str) -> bool:
        """Remove a record. Returns True if deleted, False if not found."""
        with self._lock:
            idx = self._index_of(user_id)
            if idx == -1:
                return False
            del self._users[idx]
        return True

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        with self._lock:
            self._users.clear()


# ---------------------------------------------------------------------------
# SQLAlchemy backend
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    # seq keeps list_all() in insertion order; the public id is the UUID.
    Column("seq", Integer, primary_key=True, autoincrement=True),
    Column("id", String(36), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("age", Integer),
    Column("is_admin", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class SqlUserStore:
    """SQLAlchemy Core repository.

    Usage:
        store = SqlUserStore("sqlite:///users.db")
        ...
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive)."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_all(self) -> list[User]:
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.seq)).fetchall()
        return [_row_to_user(r) for r in rows]

    def insert(self, user: User) -> User:
        """Insert a record. Raises DuplicateEmailError if the email is taken."""
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _users.insert().values(
                        id=user.id,
                        email=user.email,
                        hashed_password=user.hashed_password,
                        age=user.age,
                        is_admin=1 if user.is_admin else 0,
                        created_at=_to_iso(user.created_at),
                        updated_at=_to_iso(user.updated_at),
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            if self.find_by_email(user.email) is not None:
                raise DuplicateEmailError(user.email) from exc
            raise
        return replace(user)

    def update(self, user_id: str, **fields: Any) -> User | None:
        """Update mutable columns. Returns the new record, or None if absent."""
        _check_fields(fields)
        values = dict(fields)
        if "updated_at" in values:
            values["updated_at"] = _to_iso(values["updated_at"])
        if values:
            try:
                with self.engine.connect() as conn:
                    result = conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
                    conn.commit()
            except IntegrityError as exc:
                raise DuplicateEmailError(fields["email"]) from exc
            if result.rowcount == 0:
                return None
        return self.find_by_id(user_id)

    def delete(self, user_id: str) -> bool:
        """Permanently delete a record. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception:
            logger.exception("User store ping failed")
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        age=row.age,
        is_admin=bool(row.is_admin),
        created_at=datetime.fromisoformat(row.created_at),
        updated_at=datetime.fromisoformat(row.updated_at),
    )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_store(db_url: str = "") -> UserRepository:
    """Return the backend selected by db_url (empty string = in-memory)."""
    if not db_url:
        logger.info("Using in-memory user store (records are lost on restart)")
        return InMemoryUserStore()
    logger.info("Using SQL user store")
    return SqlUserStore(db_url)
