"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the auth service happen here. No module
should call os.getenv() or os.environ.get() directly -- the lifespan calls
get_settings() once and passes the resulting Settings object down through
constructors (SessionAuthority, the store factory, the email clients).

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  Literal backend names: an unknown USER_STORE_BACKEND (etc.) fails validation
      at startup instead of silently falling back to an in-memory store.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. JWT signing
     relies on key entropy -- a short key weakens every issued session.

  In production mode (DEBUG not set or false), a missing SECRET_KEY is a
     hard startup failure. This prevents accidentally running with a random
     key in production (where sessions must survive restarts).

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or stores/.
"""

import logging
import secrets
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authservice.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
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

    # ------------------------------------------------------------------
    # Session tokens and cookie
    # ------------------------------------------------------------------

    token_ttl_seconds: int = Field(default=600, gt=0)
    secure_cookies: bool = False
    cookie_samesite: Literal["lax", "strict"] = "lax"

    # ------------------------------------------------------------------
    # Storage backends
    # ------------------------------------------------------------------

    user_store_backend: Literal["memory", "sql"] = "memory"
    database_url: str = "sqlite:///authservice.db"

    banned_token_store_backend: Literal["memory", "redis"] = "memory"
    two_fa_code_store_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://127.0.0.1:6379/0"
    two_fa_code_ttl_seconds: int = Field(default=600, gt=0)

    # ------------------------------------------------------------------
    # Outbound email (2FA codes)
    # ------------------------------------------------------------------

    email_backend: Literal["mock", "postmark"] = "mock"
    postmark_auth_token: str = ""
    postmark_base_url: str = "https://api.postmarkapp.com/email"
    email_sender: str = "no-reply@localhost"
    email_timeout_seconds: float = Field(default=10.0, gt=0)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_allowed_origins: list[str] = ["http://localhost", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

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
    def validate_email_backend(self) -> "Settings":
        """The Postmark client cannot authenticate without a server token."""
        if self.email_backend == "postmark" and not self.postmark_auth_token:
            raise ValueError("POSTMARK_AUTH_TOKEN is required when EMAIL_BACKEND=postmark.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Called once by the app lifespan; the instance is then handed to every
    component that needs configuration. In tests, construct Settings(...)
    directly or call get_settings.cache_clear() after changing the environment.
    """
    return Settings()
