"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for tourguard happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY).

  @model_validator(mode="after"): Cross-field validation once every field is
      resolved. Enforces the SECRET_KEY policy and the all-or-nothing email
      gateway settings.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. Session tokens are
  HS256-signed with it.

  In production mode (DEBUG not set or false), a missing SECRET_KEY is a
  hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("tourguard.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'tourguard_users.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
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
    # Empty string is the sentinel for "not configured".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Sessions and password reset
    # ------------------------------------------------------------------

    token_expire_seconds: int = 90 * 24 * 3600
    reset_token_expire_minutes: int = 10

    # ------------------------------------------------------------------
    # Email gateway (empty url means "log emails instead of sending")
    # ------------------------------------------------------------------

    email_gateway_url: str = ""
    email_api_key: str = ""
    email_hmac_secret: str = ""
    email_timeout_seconds: float = 10.0

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost", "testserver"]
    cors_origins: list[str] = ["http://localhost:3000"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Issued tokens will not survive a restart.

        Production mode: refuse to start without SECRET_KEY.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def validate_email_gateway(self) -> "Settings":
        """A gateway URL without credentials (or the reverse) is a misconfiguration."""
        gateway_fields = (self.email_gateway_url, self.email_api_key, self.email_hmac_secret)
        if any(gateway_fields) and not all(gateway_fields):
            raise ValueError("EMAIL_GATEWAY_URL, EMAIL_API_KEY and EMAIL_HMAC_SECRET must be set together.")
        if self.email_timeout_seconds <= 0:
            raise ValueError("EMAIL_TIMEOUT_SECONDS must be positive.")
        return self

    @property
    def email_gateway_enabled(self) -> bool:
        return bool(self.email_gateway_url)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
