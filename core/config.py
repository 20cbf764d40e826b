"""
core/config.py -- PulseAuth settings, read once from the environment.

This is the only module that reads environment variables or .env.

Design patterns used:
  Cached singleton: get_settings() builds Settings on first call and returns
      the same instance afterwards. Only api/main.py and main.py call it;
      TokenCodec, PasswordHasher and SessionService get plain values.

  BaseSettings (pydantic-settings): each field is filled from the env var of
      the same name in upper case (refresh_secret_key <- REFRESH_SECRET_KEY),
      falling back to .env, then to the default below.

  @model_validator(mode="after"): Cross-field validation once all fields are
      resolved. Dev mode generates missing signing secrets with a warning;
      production mode refuses to start without them.

Security notes:
  [M6] Secrets shorter than 32 chars are rejected outright. HS256 signing
       relies on key entropy -- a short key weakens every token.

  [M7] In production mode (DEBUG not set or false), a missing secret is a
       hard startup failure.

  [K1] SECRET_KEY (access tokens) and REFRESH_SECRET_KEY (refresh tokens)
       must differ. Two signing contexts with one key would let a refresh
       token pass as an access token.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from dataclasses import dataclass
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("pulseauth.config")

_MIN_SECRET_LENGTH = 32


@dataclass(frozen=True)
class SigningKeys:
    """Immutable pair of HMAC secrets, one per token signing context."""

    access_secret: str
    refresh_secret: str

    def __post_init__(self) -> None:
        if len(self.access_secret) < _MIN_SECRET_LENGTH or len(self.refresh_secret) < _MIN_SECRET_LENGTH:
            raise ValueError(f"Signing secrets must be at least {_MIN_SECRET_LENGTH} characters.")
        if secrets.compare_digest(self.access_secret, self.refresh_secret):
            raise ValueError("Access and refresh signing secrets must differ.")

    def __repr__(self) -> str:
        return "SigningKeys(access_secret=***, refresh_secret=***)"


class Settings(BaseSettings):
    """Runtime configuration for the API and the admin CLI.

    Every field has a default, so tests construct Settings() with nothing but
    DEBUG=true. Outside debug mode validate_secrets() refuses to start
    without both signing secrets.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    refresh_secret_key: str = ""
    database_url: str = "sqlite:///pulseauth.db"

    # ------------------------------------------------------------------
    # Password hashing (argon2id cost profile)
    # ------------------------------------------------------------------

    argon2_time_cost: int = 3
    argon2_memory_cost: int = 65536  # KiB
    argon2_parallelism: int = 4

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost", "testserver"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    # Expired refresh token sweep interval. 0 disables the background task.
    sweep_interval_seconds: int = 3600

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Enforce the signing secret policy [M6][M7][K1].

        Dev mode (DEBUG=true): auto-generate missing secrets with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if either secret is missing.
        """
        for field in ("secret_key", "refresh_secret_key"):
            if getattr(self, field):
                continue
            if self.debug:
                setattr(self, field, secrets.token_hex(32))
                logger.warning(
                    "Using auto-generated %s. Sessions will not persist across restarts.", field.upper()
                )
            else:
                raise ValueError(
                    f"{field.upper()} is required in production mode. "
                    "Set it in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        # SigningKeys re-checks length and distinctness; fail at startup, not first request.
        self.signing_keys()
        return self

    def signing_keys(self) -> SigningKeys:
        return SigningKeys(access_secret=self.secret_key, refresh_secret=self.refresh_secret_key)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Tests that need other values construct Settings() directly instead of
    clearing this cache.
    """
    return Settings()
