"""
tests/conftest.py -- Shared test fixtures for Avatar Engine integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for users + avatars
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient with an admin JWT for API integration tests
  - register_user: factory fixture that creates a regular user through the API

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment must be set before any api/auth/core import:
  DEBUG=true               -- get_settings() auto-generates SECRET_KEY
  RATE_LIMIT_ENABLED=false -- repeated logins across modules are not throttled
  ALLOWED_HOSTS            -- TestClient sends Host: testserver
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set env before any api/auth/core import so get_settings() sees it.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Role
from auth.store import UserStore
from auth.tokens import TokenConfig, TokenService
from avatars.service import ProgressionService
from avatars.store import AvatarStore
from core.config import get_settings

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "adminpass123"

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, AvatarStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (the module name is used).
    """
    db_url = f"sqlite:///file:test_avatarengine_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=db_url), AvatarStore(db_url=db_url)


def _token_service() -> TokenService:
    # get_settings() is cached, so this shares the secret the app verifies with.
    return TokenService(TokenConfig.from_settings(get_settings()))


def _patch_lifespan(user_store: UserStore, avatar_store: AvatarStore):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.user_store = user_store
        app.state.avatar_store = avatar_store
        app.state.token_service = _token_service()
        app.state.progression = ProgressionService(user_store, avatar_store)
        app.state.setup_required = not user_store.has_users()
        yield

    return test_lifespan


def _register_and_login(client: TestClient, email: str, password: str) -> tuple[str, int]:
    resp = client.post("/api/v1/users/register", json={"email": email, "password": password})
    assert resp.status_code == 201, f"Registration failed: {resp.status_code} {resp.text}"
    user_id = resp.json()["id"]
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, f"Login failed: {resp.status_code} {resp.text}"
    return resp.json()["access_token"], user_id


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use isolated in-memory stores.
    The admin user is created before the client starts.
    """
    user_store, avatar_store = _make_test_stores(request.module.__name__.rsplit(".", 1)[-1])

    admin = user_store.create(ADMIN_EMAIL, ADMIN_PASSWORD, display_name="Test Admin")
    user_store.update_role(admin.id, Role.ADMIN)
    token = _token_service().issue(admin.id, ADMIN_EMAIL, Role.ADMIN)

    app.router.lifespan_context = _patch_lifespan(user_store, avatar_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, admin.id

    avatar_store.close()
    user_store.close()


@pytest.fixture(scope="module")
def empty_client(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient whose user store has no accounts (first-run state)."""
    user_store, avatar_store = _make_test_stores(request.module.__name__.rsplit(".", 1)[-1] + "_empty")
    app.router.lifespan_context = _patch_lifespan(user_store, avatar_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    avatar_store.close()
    user_store.close()


@pytest.fixture(scope="module")
def register_user(api_client):
    """Return a callable that registers and logs in a regular user.

        token, user_id = register_user("ada@example.com")
    """
    client, _token, _uid = api_client

    def _register(email: str, password: str = "userpass123") -> tuple[str, int]:
        return _register_and_login(client, email, password)

    return _register
