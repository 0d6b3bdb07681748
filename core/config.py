"""
core/config.py -- Centralized configuration via pydantic-settings.

All environment variable reads for Rampart happen here. No module should call
os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from RAMPART_-prefixed
      environment variables and an optional .env file. Field names map to env
      var names (e.g. session_backend -> RAMPART_SESSION_BACKEND). Type
      coercion and validation are built in.

  @model_validator(mode="after"): Cross-field checks that run once every
      field is resolved. A bad value is a hard startup failure, never a
      silently weakened policy.

Layer rule: core/ is the kernel. This module may not import from auth/ or
sessions/.
"""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("rampart.config")

YEAR_IN_SECS = 365 * 24 * 60 * 60


class Settings(BaseSettings):
    """Settings loaded from the environment and .env file.

    Every field has a default so Settings() can be built in tests without a
    real .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="RAMPART_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    # Debug mode exposes full detail for internal errors (see auth/errors.py).
    debug: bool = False
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # User repository
    # ------------------------------------------------------------------

    database_url: str = "sqlite:///rampart_auth.db"

    # ------------------------------------------------------------------
    # Session store
    # ------------------------------------------------------------------

    session_backend: Literal["memory", "redis", "sql"] = "memory"
    redis_url: str = "redis://localhost:6379/0"
    redis_key_prefix: str = "rampart:session:"
    session_db_path: str = "rampart_sessions.db"
    # Default lifetime of an auth key issued by login() without a ttl.
    session_ttl_seconds: int = YEAR_IN_SECS

    # ------------------------------------------------------------------
    # Password policy and hashing
    # ------------------------------------------------------------------

    password_min_length: int = 8
    # argon2-cffi defaults (RFC 9106 low-memory profile).
    argon2_time_cost: int = 3
    argon2_memory_cost: int = 65536  # KiB
    argon2_parallelism: int = 4

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_security_floor(self) -> "Settings":
        """Reject settings that would weaken the auth policy.

        session_ttl_seconds must be positive -- a zero TTL would issue keys
            that are already expired (and Redis rejects EX 0).
        password_min_length may be raised but never lowered below 8.
        argon2_memory_cost must be at least 8 KiB per lane; argon2 itself
            refuses anything smaller, so fail at startup rather than at the
            first signup.
        """
        if self.session_ttl_seconds <= 0:
            raise ValueError("RAMPART_SESSION_TTL_SECONDS must be positive.")
        if self.password_min_length < 8:
            raise ValueError("RAMPART_PASSWORD_MIN_LENGTH may not be lower than 8.")
        if self.argon2_parallelism < 1 or self.argon2_time_cost < 1:
            raise ValueError("argon2 time cost and parallelism must be at least 1.")
        if self.argon2_memory_cost < 8 * self.argon2_parallelism:
            raise ValueError("RAMPART_ARGON2_MEMORY_COST must be at least 8 KiB per lane.")
        if self.debug:
            logger.warning("Debug mode is on: internal error detail will be exposed to callers.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
