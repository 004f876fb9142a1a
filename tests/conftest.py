"""
tests/conftest.py -- Shared test fixtures for F1 Stats tests.

This module provides:
  - make_stores(): isolated in-memory DBs for accounts, sessions, and the catalog
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - app_env: module-scoped TestClient plus the stores behind it and two seeded
    accounts (an admin and a regular user)
  - client: the same TestClient with cookies cleared and rate limits reset,
    so every test starts anonymous
  - login(): signs the client in through POST /login

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any app import so get_settings()
auto-generates SESSION_SECRET in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SESSION_SECRET in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from asgi import app
from auth.models import Account
from auth.service import AuthService
from auth.sessions import SessionStore
from auth.store import AccountStore
from stats.store import StatsStore

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "adminpass123"
USER_EMAIL = "racer@example.com"
USER_PASSWORD = "racerpass123"


def memory_url(name: str) -> str:
    return f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true"


def make_stores(db_suffix: str) -> tuple[AccountStore, SessionStore, StatsStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB names so test modules
                   don't share state.
    """
    accounts = AccountStore(db_url=memory_url(f"test_accounts_{db_suffix}"))
    sessions = SessionStore(db_url=memory_url(f"test_sessions_{db_suffix}"))
    stats = StatsStore(db_url=memory_url(f"test_stats_{db_suffix}"))
    return accounts, sessions, stats


def _patch_lifespan(accounts: AccountStore, sessions: SessionStore, stats: StatsStore):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine so shutdown has a real
    asyncio.Task to cancel.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.account_store = accounts
        app.state.session_store = sessions
        app.state.stats_store = stats
        app.state.auth_service = AuthService(accounts, sessions)
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@dataclass
class AppEnv:
    client: TestClient
    service: AuthService
    accounts: AccountStore
    sessions: SessionStore
    stats: StatsStore
    admin: Account
    user: Account


@pytest.fixture(scope="module")
def app_env(request: pytest.FixtureRequest) -> Generator[AppEnv, None, None]:
    """Yield an AppEnv whose client talks to the real app over isolated stores.

    follow_redirects=False so tests can assert on redirect locations.
    """
    accounts, sessions, stats = make_stores(request.module.__name__.replace(".", "_"))
    service = AuthService(accounts, sessions)
    admin = service.save_account(
        Account(username="steward", email=ADMIN_EMAIL, role="admin"), new_password=ADMIN_PASSWORD
    )
    user = service.save_account(Account(username="racer", email=USER_EMAIL), new_password=USER_PASSWORD)

    app.router.lifespan_context = _patch_lifespan(accounts, sessions, stats)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield AppEnv(client, service, accounts, sessions, stats, admin, user)

    accounts.close()
    sessions.close()
    stats.close()


@pytest.fixture
def client(app_env: AppEnv) -> TestClient:
    """The module's TestClient, signed out and with fresh rate-limit counters."""
    app_env.client.cookies.clear()
    limiter.reset()
    return app_env.client


def login(client: TestClient, email: str, password: str) -> str:
    """Sign the client in via the JSON login endpoint and return the session token."""
    resp = client.post("/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    token = client.cookies.get("session_id")
    assert token
    return token


@pytest.fixture
def admin_client(client: TestClient) -> TestClient:
    login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    return client


@pytest.fixture
def user_client(client: TestClient) -> TestClient:
    login(client, USER_EMAIL, USER_PASSWORD)
    return client
