"""
core/config.py -- Centralized configuration via pydantic-settings.

All environment variable reads happen here. No module should call os.getenv()
or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. bcrypt_cost -> BCRYPT_COST). Type coercion is built in.

  @model_validator(mode="after"): Rejects out-of-range values at startup so a
      bad deployment fails before it serves a request.

What the auth core itself needs is only token_ttl and bcrypt_cost; the rest
configures the store, the transport and logging around it.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("sso.config")

VERSION = "0.1.0"


class Settings(BaseSettings):
    """Settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Runtime
    # ------------------------------------------------------------------

    # local/dev log at DEBUG, prod at INFO.
    env: Literal["local", "dev", "prod"] = "local"

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = "sqlite:///./storage/sso.db"

    # ------------------------------------------------------------------
    # Auth core
    # ------------------------------------------------------------------

    token_ttl_seconds: int = 3600
    # 12 is a good balance for security and performance. Tests use 4.
    bcrypt_cost: int = 12

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    request_timeout_seconds: float = 10.0

    @property
    def token_ttl(self) -> timedelta:
        return timedelta(seconds=self.token_ttl_seconds)

    @property
    def log_level(self) -> int:
        return logging.INFO if self.env == "prod" else logging.DEBUG

    @model_validator(mode="after")
    def validate_ranges(self) -> "Settings":
        """Reject values the auth core cannot run with.

        bcrypt accepts work factors 4..31. Anything outside fails at hash time,
        so fail here instead. A zero or negative TTL would issue tokens that are
        already expired.
        """
        if not 4 <= self.bcrypt_cost <= 31:
            raise ValueError("BCRYPT_COST must be between 4 and 31.")
        if self.token_ttl_seconds <= 0:
            raise ValueError("TOKEN_TTL_SECONDS must be positive.")
        if self.request_timeout_seconds <= 0:
            raise ValueError("REQUEST_TIMEOUT_SECONDS must be positive.")
        if self.bcrypt_cost < 10 and self.env == "prod":
            logger.warning("WARNING: BCRYPT_COST=%d is below 10 in production.", self.bcrypt_cost)
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
