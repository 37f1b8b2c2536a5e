"""
tests/conftest.py -- Shared test fixtures for AuthGate.

This module provides:
  - store / service: a fresh in-memory UserStore (roles seeded) and an
    AuthService over it, for async unit tests of the core
  - _patch_lifespan(): wires a test store into app.state, bypassing real startup
  - api_client: TestClient with a seeded ADMIN user and its token

Design: every store uses its own `sqlite+aiosqlite:///:memory:` database, so
tests never share rows. The API store is created inside the patched lifespan
so it lives on the TestClient's event loop, the same loop that serves the
requests.

DEBUG and BCRYPT_ROUNDS must be set before any auth/core import:
get_settings() auto-generates SECRET_KEY in dev mode instead of raising, and
a cost of 4 keeps bcrypt fast enough for a test suite.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator, Awaitable, Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.passwords import hash_password
from auth.roles import DEFAULT_ROLES
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import create_access_token

MEMORY_DB_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "adminpass123"


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def store() -> AsyncIterator[UserStore]:
    """Yield an isolated in-memory store with USER, ADMIN and MODERATOR seeded."""
    s = UserStore(MEMORY_DB_URL)
    await s.init()
    await s.ensure_roles(DEFAULT_ROLES)
    yield s
    await s.close()


@pytest_asyncio.fixture
async def service(store: UserStore) -> AuthService:
    return AuthService(store)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(seed: Callable[[UserStore], Awaitable[None]]):
    """Return an async context manager that replaces the real lifespan.

    Builds the store on the TestClient's loop and runs seed(store) before the
    first request is served.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        s = UserStore(MEMORY_DB_URL)
        await s.init()
        await s.ensure_roles(DEFAULT_ROLES)
        app.state.user_store = s
        app.state.auth_service = AuthService(s)
        await seed(s)
        yield
        await s.close()

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    The admin holds ADMIN and USER. Its token is minted directly so tests do
    not depend on the login route working.
    """
    seeded: dict[str, User] = {}

    async def seed(s: UserStore) -> None:
        roles = await s.find_roles_by_names(["ADMIN", "USER"])
        seeded["admin"] = await s.create_user(
            User(email=ADMIN_EMAIL, hashed_password=hash_password(ADMIN_PASSWORD), name="Admin"),
            [r.id for r in roles],
        )

    app.router.lifespan_context = _patch_lifespan(seed)

    with TestClient(app, raise_server_exceptions=True) as client:
        admin = seeded["admin"]
        token = create_access_token(admin.id, admin.email, ["ADMIN", "USER"])
        yield client, token, admin.id
