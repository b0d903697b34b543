"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for ImageDrop happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. Only the
      application entry point (api/main.py lifespan) calls it; everything
      below that receives the Settings object by injection.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Dev mode generates a signing key with a
      warning, production mode refuses to start without a real one.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. HMAC-SHA256 session
  signing relies on key entropy -- a short key weakens every token.

  In production mode (DEBUG not set or false), a missing SECRET_KEY or one of
  the well-known placeholder values is a hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("imagedrop.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'imagedrop_auth.db'}"

# Values shipped in sample configs and old deployments. Treated exactly like
# a missing key in production.
_PLACEHOLDER_SECRETS = frozenset(
    {
        "your-super-secret-jwt-key-change-me",
        "changeme",
        "change-me",
        "secret",
    }
)


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
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    # Two hours. Not renewable -- the user logs in again after expiry.
    token_expire_seconds: int = Field(default=7200, gt=0)

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    password_min_length: int = Field(default=8, ge=1)
    password_max_length: int = Field(default=72, ge=1)  # bcrypt truncates past 72 bytes

    # ------------------------------------------------------------------
    # Global quota defaults (None = unlimited). Per-user overrides win.
    # ------------------------------------------------------------------

    default_max_images: Optional[int] = None
    default_max_upload_size_mb: Optional[float] = 10.0
    default_max_total_storage_mb: Optional[float] = None

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing or is a known placeholder.

        Both modes: reject keys shorter than 32 characters.
        """
        if self.secret_key in _PLACEHOLDER_SECRETS:
            if not self.debug:
                raise ValueError(
                    "SECRET_KEY is set to a placeholder value. " "Generate a real key before running in production."
                )
            logger.warning("SECRET_KEY is a placeholder value; replacing it for this dev session.")
            self.secret_key = ""
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Sessions will not persist across restarts."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if self.password_min_length > self.password_max_length:
            raise ValueError("PASSWORD_MIN_LENGTH cannot exceed PASSWORD_MAX_LENGTH.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables, or construct Settings(...)
    directly and pass it in.
    """
    return Settings()
