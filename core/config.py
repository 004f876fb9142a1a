"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for F1 Stats happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. session_secret -> SESSION_SECRET). Type coercion and validation are
      built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Dev mode generates a session secret with a
      warning; production mode refuses to start without one.

Security notes:
  SESSION_SECRET shorter than 32 chars is rejected outright. Session lookups
  are keyed by HMAC-SHA256(SESSION_SECRET, token), so a short secret weakens
  every stored session record.

  In production mode (DEBUG not set or false), a missing SESSION_SECRET is a
  hard startup failure. A random per-process secret would orphan every stored
  session on restart.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
auth/, or stats/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("f1stats.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'f1stats.db'}"

SESSION_MAX_AGE_SECONDS = 60 * 60 * 24 * 7  # 7 days


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
    # below either generates a dev secret or raises, so callers never see "".
    session_secret: str = ""

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL
    # Sessions may live in a separate database. Empty means "same as database_url".
    session_database_url: str = ""

    # ------------------------------------------------------------------
    # Session cookie
    # ------------------------------------------------------------------

    cookie_secure: bool = False
    session_cookie_name: str = "session_id"
    session_max_age_seconds: int = SESSION_MAX_AGE_SECONDS

    # ------------------------------------------------------------------
    # Admin bootstrap (optional -- skipped unless email and password are set)
    # ------------------------------------------------------------------

    admin_email: str = ""
    admin_username: str = "admin"
    admin_password: str = ""

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = []

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_session_secret(self) -> "Settings":
        """Enforce the SESSION_SECRET policy.

        Dev mode (DEBUG=true): auto-generate a random secret with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SESSION_SECRET is missing.

        Both modes: reject secrets shorter than 32 characters.
        """
        if not self.session_secret:
            if self.debug:
                self.session_secret = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SESSION_SECRET. Sessions will not persist across restarts."
                )
            else:
                raise ValueError(
                    "SESSION_SECRET is required in production mode. "
                    "Set SESSION_SECRET in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.session_secret) < 32:
            raise ValueError("SESSION_SECRET must be at least 32 characters.")
        if not self.session_database_url:
            self.session_database_url = self.database_url
        return self

    @property
    def cookie_samesite(self) -> str:
        """SameSite policy for the session cookie.

        Browsers only accept SameSite=None together with Secure, so cross-site
        usage is opened up only in TLS deployments. Plain-HTTP deployments
        restrict the cookie to same-site requests.
        """
        return "none" if self.cookie_secure else "strict"


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
