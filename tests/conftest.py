"""
tests/conftest.py -- Shared test fixtures for ProfileAuth.

This module provides:
  - FakeClock / clock:  a controllable time source for token expiry tests
  - user_store, denylist, tokens: isolated in-memory collaborators for unit tests
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient plus a registered user's token for API tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are used for the
API fixture because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.

Environment must be set before any application import:
  DEBUG=true           -- get_settings() generates a SECRET_KEY instead of raising
  BCRYPT_ROUNDS=4      -- the bcrypt minimum; keeps the suite fast
  *_RATE_LIMIT         -- high enough that the suite never trips slowapi
"""

from __future__ import annotations

import asyncio
import os
import secrets
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set env before any auth/core/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("REGISTER_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.denylist import RevokedTokenStore
from auth.passwords import prepare_dummy_hash
from auth.service import register_user
from auth.store import UserStore
from auth.tokens import TokenService

TEST_PASSWORD = "Abcdef1!"


class FakeClock:
    """Callable time source. Starts at a fixed epoch and only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Unit-test collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def denylist() -> Generator[RevokedTokenStore, None, None]:
    store = RevokedTokenStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def secret_key() -> str:
    return secrets.token_hex(32)


@pytest.fixture
def tokens(secret_key: str, denylist: RevokedTokenStore, clock: FakeClock) -> TokenService:
    return TokenService(secret_key=secret_key, expire_seconds=3600, denylist=denylist, clock=clock)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, denylist: RevokedTokenStore, tokens: TokenService):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.denylist = denylist
        app.state.token_service = tokens
        prepare_dummy_hash()
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, token, user_id) for API integration tests.

    Each test module gets its own named in-memory database. The user
    "owner@example.com" / TEST_PASSWORD is registered before the client
    starts and its token is returned for Authorization headers.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store = UserStore(db_url=f"sqlite:///file:test_auth_{suffix}?mode=memory&cache=shared&uri=true")
    denylist = RevokedTokenStore(":memory:")
    tokens = TokenService(secret_key=secrets.token_hex(32), expire_seconds=3600, denylist=denylist)

    result = register_user(
        user_store,
        tokens,
        "owner@example.com",
        TEST_PASSWORD,
        {"first_name": "Olive", "last_name": "Owner"},
    )

    app.router.lifespan_context = _patch_lifespan(user_store, denylist, tokens)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, result.token, result.user.id

    denylist.close()
    user_store.close()
