"""
tests/conftest.py -- Shared test fixtures for PulseAuth unit and integration tests.

This module provides:
  - clock / hasher / keys / codec: the pure collaborators, with a FrozenClock
    so expiry is tested by advancing time instead of sleeping
  - engine / users / refresh_tokens / service: a SessionService over a
    file-backed SQLite DB in tmp_path (one per test)
  - user: a seeded USER account, u@x.com / Secret123!
  - api_client: TestClient over the real app with a patched lifespan

Design: unit tests use a file DB under tmp_path rather than :memory: because
the concurrency tests drive the stores from several threads. The API client
uses a named shared-memory SQLite URI (file:name?mode=memory&cache=shared)
because TestClient runs sync route handlers in a thread pool, and plain
:memory: would give each worker thread a blank schema.

Environment variables must be set before any api/core import so that
get_settings() sees them when it is first called (it is cached).
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: set before any api/core import. DEBUG lets get_settings()
# auto-generate signing secrets; the argon2 costs keep hashing fast; the
# generous login limit keeps rate limiting out of unrelated tests.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ARGON2_TIME_COST", "1")
os.environ.setdefault("ARGON2_MEMORY_COST", "1024")
os.environ.setdefault("ARGON2_PARALLELISM", "1")
os.environ.setdefault("SWEEP_INTERVAL_SECONDS", "0")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.container import AuthComponents, build_components
from auth.metrics import PrometheusLoginMetrics
from auth.models import User
from auth.passwords import PasswordHasher
from auth.roles import Role
from auth.session import SessionService
from auth.store import RefreshTokenStore, UserStore, create_store_engine
from auth.tokens import TokenCodec
from core.clock import FrozenClock
from core.config import Settings, SigningKeys

USER_EMAIL = "u@x.com"
USER_PASSWORD = "Secret123!"
ADMIN_EMAIL = "admin@x.com"
ADMIN_PASSWORD = "Admin123!"

ACCESS_SECRET = "access-secret-for-tests-0123456789abcdef"
REFRESH_SECRET = "refresh-secret-for-tests-0123456789abcdef"


# ---------------------------------------------------------------------------
# Pure collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    """Cheap argon2id profile; cost parameters do not affect correctness."""
    return PasswordHasher(time_cost=1, memory_cost=1024, parallelism=1)


@pytest.fixture
def keys() -> SigningKeys:
    return SigningKeys(access_secret=ACCESS_SECRET, refresh_secret=REFRESH_SECRET)


@pytest.fixture
def codec(keys: SigningKeys, clock: FrozenClock) -> TokenCodec:
    return TokenCodec(keys, clock=clock)


# ---------------------------------------------------------------------------
# Stores and service
# ---------------------------------------------------------------------------


@pytest.fixture
def engine(tmp_path):
    engine = create_store_engine(f"sqlite:///{tmp_path / 'auth.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def users(engine) -> UserStore:
    return UserStore(engine=engine)


@pytest.fixture
def refresh_tokens(engine) -> RefreshTokenStore:
    return RefreshTokenStore(engine=engine)


@pytest.fixture
def metrics() -> PrometheusLoginMetrics:
    return PrometheusLoginMetrics()


@pytest.fixture
def service(users, refresh_tokens, codec, hasher, metrics, clock) -> SessionService:
    return SessionService(users, refresh_tokens, codec, hasher, metrics, clock=clock)


@pytest.fixture
def user(users: UserStore, hasher: PasswordHasher) -> User:
    """A seeded USER account: u@x.com / Secret123!"""
    return users.create_user(User(email=USER_EMAIL, role=Role.USER, password_hash=hasher.hash(USER_PASSWORD))).unwrap()


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


@dataclass
class ApiContext:
    client: TestClient
    auth: AuthComponents
    user: User
    admin: User

    def login(self, email: str = USER_EMAIL, password: str = USER_PASSWORD):
        return self.client.post("/api/v1/auth/login", json={"email": email, "password": password})

    def bearer(self, email: str = USER_EMAIL, password: str = USER_PASSWORD) -> dict[str, str]:
        resp = self.login(email, password)
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def _patch_lifespan(components: AuthComponents):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-built test components into app.state so routes use the
    isolated test DB. No sweep task: tests call sweep_expired() directly.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.auth = components
        app.state.sweep_task = None
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext with a seeded USER and ADMIN for API integration tests.

    One TestClient (and one named in-memory DB) per test module.
    """
    db_name = request.module.__name__.rsplit(".", 1)[-1]
    settings = Settings(database_url=f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    components = build_components(settings)

    user = components.users.create_user(
        User(email=USER_EMAIL, role=Role.USER, password_hash=components.hasher.hash(USER_PASSWORD))
    ).unwrap()
    admin = components.users.create_user(
        User(email=ADMIN_EMAIL, role=Role.ADMIN, password_hash=components.hasher.hash(ADMIN_PASSWORD))
    ).unwrap()

    app.router.lifespan_context = _patch_lifespan(components)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(client=client, auth=components, user=user, admin=admin)

    components.close()
