"""
auth/container.py -- Wiring of the auth core from Settings.

This is the one place that turns configuration into collaborators. The
stores share a single Engine; codec and service share one Clock so token
expiry and record expiry agree.
"""

from __future__ import annotations

from dataclasses import dataclass

from auth.guard import AuthGuard
from auth.metrics import PrometheusLoginMetrics
from auth.passwords import PasswordHasher
from auth.session import SessionService
from auth.store import RefreshTokenStore, UserStore, create_store_engine
from auth.tokens import TokenCodec
from core.clock import Clock, SystemClock
from core.config import Settings


@dataclass
class AuthComponents:
    users: UserStore
    refresh_tokens: RefreshTokenStore
    hasher: PasswordHasher
    codec: TokenCodec
    metrics: PrometheusLoginMetrics
    sessions: SessionService
    guard: AuthGuard

    def close(self) -> None:
        # Both stores borrow the same engine; dispose it once here.
        self.users.engine.dispose()


def build_components(settings: Settings, clock: Clock | None = None) -> AuthComponents:
    clock = clock or SystemClock()
    engine = create_store_engine(settings.database_url)
    users = UserStore(engine=engine)
    refresh_tokens = RefreshTokenStore(engine=engine)
    hasher = PasswordHasher(
        time_cost=settings.argon2_time_cost,
        memory_cost=settings.argon2_memory_cost,
        parallelism=settings.argon2_parallelism,
    )
    codec = TokenCodec(settings.signing_keys(), clock=clock)
    metrics = PrometheusLoginMetrics()
    sessions = SessionService(users, refresh_tokens, codec, hasher, metrics, clock=clock)
    return AuthComponents(
        users=users,
        refresh_tokens=refresh_tokens,
        hasher=hasher,
        codec=codec,
        metrics=metrics,
        sessions=sessions,
        guard=AuthGuard(codec),
    )
