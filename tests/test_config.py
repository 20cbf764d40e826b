"""
tests/test_config.py -- Unit tests for core/config.py.

Settings() is constructed directly (not via the cached get_settings()) with
monkeypatched environment variables so each test sees its own values.
"""

from __future__ import annotations

import pytest

from core.config import Settings, SigningKeys

GOOD_ACCESS = "a" * 32
GOOD_REFRESH = "b" * 32


@pytest.fixture
def production_env(monkeypatch):
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.delenv("SECRET_KEY", raising=False)
    monkeypatch.delenv("REFRESH_SECRET_KEY", raising=False)
    return monkeypatch


class TestSigningKeys:
    def test_repr_masks_secrets(self) -> None:
        keys = SigningKeys(access_secret=GOOD_ACCESS, refresh_secret=GOOD_REFRESH)
        assert GOOD_ACCESS not in repr(keys)
        assert GOOD_REFRESH not in repr(keys)

    def test_short_secret_rejected(self) -> None:
        with pytest.raises(ValueError):
            SigningKeys(access_secret="short", refresh_secret=GOOD_REFRESH)

    def test_identical_secrets_rejected(self) -> None:
        with pytest.raises(ValueError):
            SigningKeys(access_secret=GOOD_ACCESS, refresh_secret=GOOD_ACCESS)


class TestSettings:
    def test_debug_generates_distinct_secrets(self, monkeypatch) -> None:
        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.delenv("SECRET_KEY", raising=False)
        monkeypatch.delenv("REFRESH_SECRET_KEY", raising=False)
        settings = Settings(_env_file=None)
        keys = settings.signing_keys()
        assert len(keys.access_secret) >= 32
        assert keys.access_secret != keys.refresh_secret

    def test_production_requires_secrets(self, production_env) -> None:
        with pytest.raises(ValueError):
            Settings(_env_file=None)

    def test_production_with_secrets(self, production_env) -> None:
        production_env.setenv("SECRET_KEY", GOOD_ACCESS)
        production_env.setenv("REFRESH_SECRET_KEY", GOOD_REFRESH)
        settings = Settings(_env_file=None)
        assert settings.signing_keys() == SigningKeys(access_secret=GOOD_ACCESS, refresh_secret=GOOD_REFRESH)

    def test_production_rejects_shared_secret(self, production_env) -> None:
        production_env.setenv("SECRET_KEY", GOOD_ACCESS)
        production_env.setenv("REFRESH_SECRET_KEY", GOOD_ACCESS)
        with pytest.raises(ValueError):
            Settings(_env_file=None)

    def test_env_overrides(self, monkeypatch) -> None:
        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.setenv("LOGIN_RATE_LIMIT", "3/minute")
        monkeypatch.setenv("ARGON2_TIME_COST", "5")
        settings = Settings(_env_file=None)
        assert settings.login_rate_limit == "3/minute"
        assert settings.argon2_time_cost == 5
