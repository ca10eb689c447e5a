"""
Shared pytest fixtures: an isolated in-memory store per test and an API
client wired to it.
"""

import pytest
from fastapi.testclient import TestClient

from backend.auth_context import create_access_token, get_store, hash_password
from backend.authz import Principal
from backend.db import connect_sqlite, init_schema
from backend.main import app
from backend.store import EntityStore


@pytest.fixture
def store():
    """Fresh in-memory SQLite database with the full schema."""
    conn = connect_sqlite(":memory:")
    init_schema(conn)
    yield EntityStore(conn)
    conn.close()


@pytest.fixture
def make_user(store):
    """Factory creating users directly in the store."""
    counter = {"n": 0}

    def _make(name=None, role="member", password="password123"):
        counter["n"] += 1
        name = name or f"user{counter['n']}"
        return store.users.create({
            "name": name,
            "email": f"{name.lower()}@example.com",
            "password_hash": hash_password(password),
            "role": role,
        })

    return _make


@pytest.fixture
def as_principal():
    """Turn a stored user into the Principal the services expect."""
    def _principal(user) -> Principal:
        return Principal(user_id=user.id, role=user.role.value)
    return _principal


@pytest.fixture
def headers_for():
    """Bearer headers for a stored user."""
    def _headers(user) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user)}"}
    return _headers


@pytest.fixture
def client(store):
    """TestClient whose requests all share the test store."""
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()
