"""
tests/conftest.py -- Shared test fixtures for ImageDrop auth tests.

This module provides:
  - settings: a dev-mode Settings object with a fixed signing key
  - store: an isolated in-memory UserStore per test
  - tokens / manager / gate: the components wired to that store
  - client: TestClient over the real FastAPI app with a patched lifespan

Design: the client fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. Each test gets a unique name so state never leaks between
tests.

The DEBUG env var is set before any app import so the real lifespan's
get_settings() never refuses to start inside the test process.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# Set DEBUG before any core/auth import.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app, init_state
from auth.gate import AuthorizationGate
from auth.lifecycle import UserLifecycleManager
from auth.store import UserStore
from auth.tokens import SessionTokenService
from core.config import Settings

TEST_SECRET = "test-secret-key-0123456789abcdef0123456789abcdef"


@pytest.fixture
def settings() -> Settings:
    return Settings(debug=True, secret_key=TEST_SECRET, token_expire_seconds=7200)


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def tokens(settings: Settings) -> SessionTokenService:
    return SessionTokenService(settings)


@pytest.fixture
def manager(store: UserStore, tokens: SessionTokenService, settings: Settings) -> UserLifecycleManager:
    return UserLifecycleManager(store, tokens, settings)


@pytest.fixture
def gate(store: UserStore, tokens: SessionTokenService) -> AuthorizationGate:
    return AuthorizationGate(store, tokens)


@pytest.fixture
def admin_and_user(manager: UserLifecycleManager):
    """An approved admin (first signup) and a pending user (second signup)."""
    admin = manager.signup("admin@example.com", "adminpass123").user
    user = manager.signup("user@example.com", "userpass123").user
    return admin, user


def _patch_lifespan(settings: Settings, user_store: UserStore):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store into app.state through the same init_state() the
    server uses.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        init_state(app, settings, user_store)
        yield

    return test_lifespan


@pytest.fixture
def client(settings: Settings) -> Generator[TestClient, None, None]:
    """TestClient over a fresh, empty user store.

    follow_redirects=False so tests can assert on responses directly.
    """
    name = uuid.uuid4().hex
    user_store = UserStore(f"sqlite:///file:test_auth_{name}?mode=memory&cache=shared&uri=true")
    app.router.lifespan_context = _patch_lifespan(settings, user_store)
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as c:
        yield c
    user_store.close()
