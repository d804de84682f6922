"""
tests/conftest.py -- Shared test fixtures for SessionVault.

This module provides:
  - store / issuer / sessions: unit-level objects over an in-memory SQLite DB
  - alice: a registered user with a known password
  - api_client: TestClient over the real app with a patched lifespan
  - client: api_client with an empty cookie jar, one per test

Design: API tests use a named shared-memory SQLite URI (not plain :memory:)
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread.

The DEBUG env var must be set before any auth/core import so get_settings()
auto-generates signing secrets in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate the token secrets in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, build_state
from auth.credentials import hash_password
from auth.models import User
from auth.sessions import SessionManager
from auth.store import UserStore
from auth.tokens import TokenConfig, TokenIssuer

# Hashed once per session -- bcrypt is deliberately slow.
ALICE_PASSWORD = "correct-horse-battery"
_ALICE_HASH = hash_password(ALICE_PASSWORD)

ACCESS_SECRET = "a" * 32 + "-access-secret"
REFRESH_SECRET = "r" * 32 + "-refresh-secret"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_config(**overrides) -> TokenConfig:
    values = {
        "access_secret": ACCESS_SECRET,
        "refresh_secret": REFRESH_SECRET,
        "access_ttl_seconds": 900,
        "refresh_ttl_seconds": 10 * 24 * 3600,
    }
    values.update(overrides)
    return TokenConfig(**values)


def make_alice(**overrides) -> User:
    values = {
        "username": "Alice",
        "email": "Alice@Example.com",
        "full_name": "Alice Liddell",
        "hashed_password": _ALICE_HASH,
        "avatar": "https://img.example.com/alice.png",
        "cover_image": "https://img.example.com/alice-cover.png",
    }
    values.update(overrides)
    return User(**values)


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def make_issuer(store: UserStore):
    """Factory for issuers over the shared store: make_issuer(clock=..., access_secret=...)."""

    def _make(clock=None, **overrides) -> TokenIssuer:
        if clock is None:
            return TokenIssuer(make_config(**overrides), store)
        return TokenIssuer(make_config(**overrides), store, clock=clock)

    return _make


@pytest.fixture
def issuer(make_issuer) -> TokenIssuer:
    return make_issuer()


@pytest.fixture
def sessions(store: UserStore, issuer: TokenIssuer) -> SessionManager:
    return SessionManager(store, issuer)


@pytest.fixture
def alice_password() -> str:
    return ALICE_PASSWORD


@pytest.fixture
def register_user(store: UserStore):
    """Factory: register_user(username=..., email=...) -> stored User."""

    def _register(**overrides) -> User:
        return store.get_by_id(store.create_user(make_alice(**overrides)))

    return _register


@pytest.fixture
def alice(store: UserStore) -> User:
    """A registered user: username 'alice', email 'alice@example.com'."""
    user_id = store.create_user(make_alice())
    return store.get_by_id(user_id)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore):
    """Return a lifespan that wires a pre-created test store into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        build_state(app, user_store)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app backed by an isolated shared-memory DB.

    base_url uses localhost so TrustedHostMiddleware lets requests through.
    Rate limiting is switched off; one module logs in far more than 10
    times a minute.
    """
    user_store = UserStore(f"sqlite:///file:test_auth_{request.module.__name__}?mode=memory&cache=shared&uri=true")
    app.router.lifespan_context = _patch_lifespan(user_store)
    limiter.enabled = False

    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield client

    limiter.enabled = True
    user_store.close()


@pytest.fixture
def client(api_client: TestClient) -> TestClient:
    """api_client with an empty cookie jar so every test states its own cookies."""
    api_client.cookies.clear()
    return api_client
