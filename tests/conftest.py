"""
tests/conftest.py -- Shared test fixtures for Gatekeeper.

This module provides:
  - FakeClock: a controllable clock injected into TokenIssuer and SessionManager
  - user_store / token_store: isolated in-memory stores sharing one database
  - issuer / session_manager: the core wired together around the fake clock
  - api_client: TestClient running the real app against test stores

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because the two stores each own an engine, and TestClient runs route handlers
in a thread pool. Plain :memory: DBs are per-connection and would present a
blank schema to every other connection. The named URI format
(file:name?mode=memory&cache=shared&uri=true) shares one in-memory instance
across all connections in the same process. Each test gets a fresh name.

The DEBUG env var must be set before any auth/api import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.session import SessionManager
from auth.store import UserStore
from auth.token_store import RefreshTokenStore
from auth.tokens import TokenConfig, TokenIssuer
from core.config import get_settings

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"

# Minimum allowed cost factor keeps the suite fast.
TEST_BCRYPT_ROUNDS = 10


class FakeClock:
    """Callable clock that starts at the real current time and moves on demand."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def _memory_db_url() -> str:
    return f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db_url() -> str:
    return _memory_db_url()


@pytest.fixture
def user_store(db_url: str) -> Generator[UserStore, None, None]:
    store = UserStore(db_url, bcrypt_rounds=TEST_BCRYPT_ROUNDS)
    yield store
    store.close()


@pytest.fixture
def token_store(db_url: str, user_store: UserStore) -> Generator[RefreshTokenStore, None, None]:
    # Depends on user_store so the users table exists first and the shared
    # in-memory database stays alive for the token store's lifetime.
    store = RefreshTokenStore(db_url)
    yield store
    store.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def issuer(clock: FakeClock) -> TokenIssuer:
    return TokenIssuer(TokenConfig(secret_key=TEST_SECRET), clock=clock)


@pytest.fixture
def session_manager(
    user_store: UserStore, token_store: RefreshTokenStore, issuer: TokenIssuer, clock: FakeClock
) -> SessionManager:
    return SessionManager(user_store, token_store, issuer, clock=clock)


@pytest.fixture
def alice_id(user_store: UserStore) -> int:
    """A registered user: alice / alice@x.com / pw123456."""
    return user_store.register("alice", "alice@x.com", "pw123456")


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, token_store: RefreshTokenStore, issuer: TokenIssuer):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.token_store = token_store
        app.state.token_issuer = issuer
        app.state.session_manager = SessionManager(user_store, token_store, issuer)
        yield

    return test_lifespan


@pytest.fixture
def api_client(
    user_store: UserStore, token_store: RefreshTokenStore, monkeypatch: pytest.MonkeyPatch
) -> Generator[tuple[TestClient, TokenIssuer], None, None]:
    """Yield (client, issuer) for API integration tests.

    The issuer uses the application's real settings and the real clock, so
    tokens it decodes are exactly the ones the routes hand out.
    """
    issuer = TokenIssuer(TokenConfig.from_settings(get_settings()))
    # monkeypatch puts the real lifespan back on the shared app at teardown.
    monkeypatch.setattr(app.router, "lifespan_context", _patch_lifespan(user_store, token_store, issuer))

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, issuer
