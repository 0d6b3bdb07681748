"""
tests/test_config.py -- Tests for core/config.py.

Covers:
  - defaults build without any environment
  - RAMPART_-prefixed environment variables are read and coerced
  - the security-floor validator rejects weakening values
  - get_settings() caches until cache_clear()
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import YEAR_IN_SECS, Settings, get_settings


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Run each test from an empty directory so a developer's .env is not read."""
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestDefaults:
    def test_defaults(self) -> None:
        s = Settings()
        assert s.debug is False
        assert s.session_backend == "memory"
        assert s.session_ttl_seconds == YEAR_IN_SECS
        assert s.password_min_length == 8
        assert s.redis_key_prefix == "rampart:session:"


class TestEnvironment:
    def test_prefixed_env_vars(self, monkeypatch) -> None:
        monkeypatch.setenv("RAMPART_SESSION_BACKEND", "redis")
        monkeypatch.setenv("RAMPART_SESSION_TTL_SECONDS", "3600")
        monkeypatch.setenv("RAMPART_DEBUG", "true")
        s = Settings()
        assert s.session_backend == "redis"
        assert s.session_ttl_seconds == 3600
        assert s.debug is True

    def test_unprefixed_env_vars_ignored(self, monkeypatch) -> None:
        monkeypatch.setenv("SESSION_BACKEND", "redis")
        assert Settings().session_backend == "memory"

    def test_dotenv_file(self, tmp_path) -> None:
        (tmp_path / ".env").write_text("RAMPART_PASSWORD_MIN_LENGTH=12\n", encoding="utf-8")
        assert Settings().password_min_length == 12

    def test_unknown_backend_rejected(self, monkeypatch) -> None:
        monkeypatch.setenv("RAMPART_SESSION_BACKEND", "memcached")
        with pytest.raises(ValidationError):
            Settings()


class TestSecurityFloor:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"session_ttl_seconds": 0},
            {"session_ttl_seconds": -1},
            {"password_min_length": 7},
            {"argon2_time_cost": 0},
            {"argon2_parallelism": 0},
            {"argon2_memory_cost": 16, "argon2_parallelism": 4},
        ],
    )
    def test_weakening_values_rejected(self, overrides: dict) -> None:
        with pytest.raises(ValidationError):
            Settings(**overrides)

    def test_stricter_values_accepted(self) -> None:
        s = Settings(password_min_length=16, argon2_memory_cost=131072)
        assert s.password_min_length == 16


class TestGetSettings:
    def test_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_cache_clear_rereads_env(self, monkeypatch) -> None:
        assert get_settings().session_backend == "memory"
        monkeypatch.setenv("RAMPART_SESSION_BACKEND", "sql")
        assert get_settings().session_backend == "memory"
        get_settings.cache_clear()
        assert get_settings().session_backend == "sql"
