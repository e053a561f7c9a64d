"""
tests/conftest.py -- Shared test fixtures for Login App.

This module provides:
  - settings:      a Settings instance with a fixed key and cheap bcrypt cost
  - store:         an isolated in-memory UserStore
  - service:       an AuthService wired from settings + store
  - api_client:    TestClient against the real app with a patched lifespan

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. The unit fixtures stay on one thread, so plain
:memory: is enough there.

The DEBUG env var must be set before api.main is imported: the module reads
get_settings() for its CORS origins, and production mode refuses to start
without a SECRET_KEY.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app, build_auth_service
from auth.service import AuthService
from auth.store import UserStore
from auth.totp import TotpEngine
from core.config import Settings

TEST_SECRET_KEY = "test-signing-key-0123456789abcdef0123456789"


def make_settings(**overrides) -> Settings:
    """Settings for tests. bcrypt_rounds=4 is the cheapest cost bcrypt accepts."""
    values = {
        "secret_key": TEST_SECRET_KEY,
        "database_url": "sqlite:///:memory:",
        "bcrypt_rounds": 4,
    }
    values.update(overrides)
    return Settings(**values)


def wrong_code(engine: TotpEngine, secret: str) -> str:
    """Return a 6-digit code that is not valid anywhere in the +-2 step window."""
    now = datetime.now()
    valid = {engine.current_code(secret, now + timedelta(seconds=30 * step)) for step in range(-3, 4)}
    candidate = 0
    while f"{candidate:06d}" in valid:
        candidate += 1
    return f"{candidate:06d}"


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def store(settings: Settings) -> Generator[UserStore, None, None]:
    s = UserStore(settings)
    yield s
    s.close()


@pytest.fixture
def service(settings: Settings, store: UserStore) -> AuthService:
    return build_auth_service(settings, store)


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(settings: Settings, service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-built test service into app.state so TestClient routes see
    an isolated test DB rather than the default database file.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.auth_service = service
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, AuthService], None, None]:
    """Yield (client, service) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers but use an isolated in-memory store. The service
    is yielded too, so tests can read TOTP codes for secrets they enrolled.
    """
    module_settings = make_settings(
        database_url="sqlite:///file:test_auth_api?mode=memory&cache=shared&uri=true",
    )
    user_store = UserStore(module_settings)
    auth_service = build_auth_service(module_settings, user_store)

    app.router.lifespan_context = _patch_lifespan(module_settings, auth_service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, auth_service

    user_store.close()
