"""
core/config.py -- Centralized configuration via pydantic-settings.

All environment variable reads for the auth core happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      (prefix CAMPAIGN_AUTH_) and an optional .env file automatically. Type
      coercion and validation are built in.

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Enforces the password-hashing work factor floor and the
      DEBUG-conditional seed credential.

Security notes:
  [S1] PBKDF2 iteration counts below 10,000 are rejected outright.

  [S2] Outside DEBUG mode a missing SEED_PASSWORD is a hard startup failure.
       The seed accounts are the only way into a fresh store, so they must not
       silently get a throwaway credential in production.

Layer rule: core/ is the kernel. This module may not import from auth/ or
storage/.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("campaignauth.config")

MIN_PBKDF2_ITERATIONS = 10_000


@dataclass(frozen=True)
class SecurityPolicy:
    """Lockout, session and invite lifetimes consumed by AuthManager.

    A plain frozen dataclass so tests can build one directly without going
    through environment variables.
    """

    max_login_attempts: int = 5
    lockout_duration: timedelta = timedelta(minutes=15)
    session_expiry: timedelta = timedelta(hours=24)
    token_expiry: timedelta = timedelta(hours=48)
    login_rate_limit_attempts: int = 5
    login_rate_limit_window: timedelta = timedelta(minutes=15)


class Settings(BaseSettings):
    """Auth core settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (DEBUG=true supplies the seed
    credential). Field `pbkdf2_iterations` reads CAMPAIGN_AUTH_PBKDF2_ITERATIONS,
    and so on.
    """

    model_config = SettingsConfigDict(
        env_prefix="CAMPAIGN_AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False

    # ------------------------------------------------------------------
    # Password hashing
    # ------------------------------------------------------------------

    pbkdf2_iterations: int = MIN_PBKDF2_ITERATIONS

    # ------------------------------------------------------------------
    # Lockout / session / invite policy
    # ------------------------------------------------------------------

    max_login_attempts: int = 5
    lockout_duration_seconds: int = 15 * 60
    session_expiry_hours: int = 24
    token_expiry_hours: int = 48

    # ------------------------------------------------------------------
    # Rate limiting (fixed window, keyed by email)
    # ------------------------------------------------------------------

    login_rate_limit_attempts: int = 5
    login_rate_limit_window_seconds: int = 15 * 60

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    kv_db_url: str = "sqlite:///campaign_auth.db"
    users_key: str = "campaign_secure_users"
    session_key: str = "campaign_session"

    # ------------------------------------------------------------------
    # Registration links and seed accounts
    # ------------------------------------------------------------------

    app_base_url: str = "http://localhost:8080"
    # Empty string is the sentinel for "not configured". The validator below
    # either generates a dev value or raises, so callers never see "".
    seed_password: str = ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_security_floor(self) -> "Settings":
        """Enforce the hashing work factor [S1] and the seed credential policy [S2]."""
        if self.pbkdf2_iterations < MIN_PBKDF2_ITERATIONS:
            raise ValueError(f"PBKDF2_ITERATIONS must be at least {MIN_PBKDF2_ITERATIONS}.")
        positive = {
            "max_login_attempts": self.max_login_attempts,
            "lockout_duration_seconds": self.lockout_duration_seconds,
            "session_expiry_hours": self.session_expiry_hours,
            "token_expiry_hours": self.token_expiry_hours,
            "login_rate_limit_attempts": self.login_rate_limit_attempts,
            "login_rate_limit_window_seconds": self.login_rate_limit_window_seconds,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ValueError(f"{name.upper()} must be a positive integer.")
        if not self.seed_password:
            if self.debug:
                self.seed_password = secrets.token_urlsafe(16)
                logger.warning("Using auto-generated SEED_PASSWORD. Seed accounts change password on every restart.")
            else:
                raise ValueError(
                    "SEED_PASSWORD is required in production mode. "
                    "Set CAMPAIGN_AUTH_SEED_PASSWORD in your environment or .env file. "
                    "To run in development mode, set CAMPAIGN_AUTH_DEBUG=true."
                )
        self.app_base_url = self.app_base_url.rstrip("/")
        return self

    def security_policy(self) -> SecurityPolicy:
        """Project the policy numbers into the immutable SecurityPolicy."""
        return SecurityPolicy(
            max_login_attempts=self.max_login_attempts,
            lockout_duration=timedelta(seconds=self.lockout_duration_seconds),
            session_expiry=timedelta(hours=self.session_expiry_hours),
            token_expiry=timedelta(hours=self.token_expiry_hours),
            login_rate_limit_attempts=self.login_rate_limit_attempts,
            login_rate_limit_window=timedelta(seconds=self.login_rate_limit_window_seconds),
        )


@lru_cache
def get_settings() -> Settings:
    """Return the Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
