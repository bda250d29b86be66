"""
core/config.py -- Shopfront settings, read from the environment and .env.

get_settings() is the only way in; nothing else reads os.environ. The cached
instance is shared, so tests can monkeypatch attributes on it directly.

SECRET_KEY signs every JWT and keys the refresh-token HMAC. It must be at
least 32 characters; with DEBUG=true a throwaway key is generated instead.

Layer rule: no imports from api/, auth/ or catalog/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("shopfront.config")


class Settings(BaseSettings):
    """Field names map to upper-case environment variables (secret_key -> SECRET_KEY)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = False
    # "" means unset; check_settings() replaces it or refuses to start.
    secret_key: str = ""
    log_level: str = "INFO"

    # Token lifetimes
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 7

    # Database URLs; "" = SQLite file next to the store module
    auth_db_url: str = ""
    catalog_db_url: str = ""

    # HTTP
    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]
    login_rate_limit: str = "10/minute"

    self_registration_enabled: bool = True

    @model_validator(mode="after")
    def check_settings(self) -> "Settings":
        """Fill in a dev SECRET_KEY or fail fast on a missing, short key or non-positive token lifetime."""
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("DEBUG is on and SECRET_KEY is unset: using a random key, tokens die with the process")
            else:
                raise ValueError("SECRET_KEY is not set. Set it in the environment or .env, or set DEBUG=true for local use.")
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if self.access_token_expire_minutes <= 0 or self.refresh_token_expire_days <= 0:
            raise ValueError("Token lifetimes must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings, built on first call."""
    return Settings()
