"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; the api/ layer owns the JSON shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """A registered account.

    id is a UUID4 string assigned at registration and never changed afterwards.
    email is unique across all records and compared case-sensitively.
    is_admin is fixed at registration -- the update path refuses to touch it.
    hashed_password is a bcrypt hash and must never leave the service layer.
    """

    email: str
    hashed_password: str
    id: str = ""
    age: int | None = None
    is_admin: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Identity:
    """The authenticated principal decoded from a bearer token.

    age and is_admin are copies taken at login time. They may be stale; any
    privilege decision re-reads the stored record.
    """

    id: str
    age: int | None = None
    is_admin: bool = False
