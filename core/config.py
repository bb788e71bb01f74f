"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for SonicGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Singleton via lru_cache: get_settings() instantiates Settings once at first
call and returns the cached instance on every subsequent call.

Security notes:
  SECRET_KEY signs the bearer tokens issued to the web UI. Keys shorter than
  32 characters are rejected. In production mode (DEBUG not set or false) a
  missing SECRET_KEY is a hard startup failure; in DEBUG mode a random key is
  generated and bearer tokens do not survive a restart.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, library/ or subsonic/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("sonicgate.config")


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
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    auth_db_url: str = "sqlite:///sonicgate_auth.db"
    library_db_url: str = "sqlite:///sonicgate_library.db"

    # ------------------------------------------------------------------
    # Server identity (reported by ping)
    # ------------------------------------------------------------------

    server_name: str = "SonicGate"
    server_version: str = "0.1.0"
    music_folder_name: str = "Music"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    # Players connect from LAN addresses and custom hostnames, so every host
    # is accepted unless the operator narrows it.
    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = []

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    token_expire_seconds: int = 24 * 3600
    login_rate_limit: str = "10/minute"

    # Keep a plaintext copy of each password so the legacy t/s digest scheme
    # can be verified. Disable to restrict clients to p=, apiKey or bearer.
    store_legacy_passwords: bool = True

    # First-run bootstrap: created at startup when the user table is empty.
    admin_username: str = "admin"
    admin_password: str = ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Generate a throwaway key in DEBUG mode, refuse to start without one otherwise."""
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("DEBUG mode: using a random SECRET_KEY; bearer tokens will not survive a restart")
            else:
                raise ValueError("SECRET_KEY must be set (environment or .env) unless DEBUG=true.")
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
