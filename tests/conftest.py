"""
tests/conftest.py -- Shared test fixtures for the user accounts API tests.

This module provides:
  - store: a fresh InMemoryUserStore per test
  - _patch_lifespan(): wires a test store into app.state, bypassing real startup
  - client: function-scoped TestClient over the real app, backed by the test
    store; restores the real lifespan on teardown
  - make_user: inserts a user straight into the store and mints its JWT

The DEBUG env var must be set before any auth module import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
BCRYPT_ROUNDS is lowered to bcrypt's minimum so hashing does not dominate
test time.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

# CRITICAL: Set env before any auth/core import so get_settings() picks it up.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.store import InMemoryUserStore
from auth.tokens import create_access_token, hash_password

MakeUser = Callable[..., tuple[User, str]]


def _patch_lifespan(user_store):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        yield

    return test_lifespan


@pytest.fixture
def store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def client(store: InMemoryUserStore) -> Generator[TestClient, None, None]:
    """TestClient running the real routes against the per-test store.

    Function-scoped so every test starts from an empty store. The real
    lifespan is put back afterwards.
    """
    original = app.router.lifespan_context
    app.router.lifespan_context = _patch_lifespan(store)
    try:
        with TestClient(app, raise_server_exceptions=True) as c:
            yield c
    finally:
        app.router.lifespan_context = original


@pytest.fixture
def make_user(store: InMemoryUserStore) -> MakeUser:
    """Factory: make_user(email, password="secret123", age=None, is_admin=False) -> (user, token)."""

    def _make(email: str, password: str = "secret123", age: int | None = None, is_admin: bool = False):
        now = datetime.now(timezone.utc)
        user = store.insert(
            User(
                id=str(uuid.uuid4()),
                email=email,
                hashed_password=hash_password(password),
                age=age,
                is_admin=is_admin,
                created_at=now,
                updated_at=now,
            )
        )
        return user, create_access_token(user.id, user.age, user.is_admin)

    return _make
