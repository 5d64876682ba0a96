"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Avatar Engine happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  Explicit construction: settings are read once at startup and turned into
      plain values (e.g. auth.tokens.TokenConfig) that are handed to the
      services that need them. Services never reach back into the environment.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. JWT signing
       relies on key entropy -- a short key weakens every token.

  [M7] In production mode (DEBUG not set or false), a missing SECRET_KEY is a
       hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or avatars/.
"""

import logging
import re
import secrets
from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("avatarengine.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'avatarengine.db'}"

# ---------------------------------------------------------------------------
# Duration strings ("1d", "1h", "30m", "3600")
# ---------------------------------------------------------------------------

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([a-z]*)\s*$", re.IGNORECASE)

_UNIT_SECONDS: dict[str, float] = {
    "ms": 0.001,
    "msec": 0.001,
    "msecs": 0.001,
    "millisecond": 0.001,
    "milliseconds": 0.001,
    "": 1,
    "s": 1,
    "sec": 1,
    "secs": 1,
    "second": 1,
    "seconds": 1,
    "m": 60,
    "min": 60,
    "mins": 60,
    "minute": 60,
    "minutes": 60,
    "h": 3600,
    "hr": 3600,
    "hrs": 3600,
    "hour": 3600,
    "hours": 3600,
    "d": 86400,
    "day": 86400,
    "days": 86400,
    "w": 604800,
    "week": 604800,
    "weeks": 604800,
}


def parse_duration(value: str | int) -> timedelta:
    """Convert a token-lifetime string into a timedelta.

    Accepts a bare number of seconds ("3600", 3600) or a number followed by a
    unit ("1d", "12h", "30m", "45s", "2 weeks"). Zero, negative and malformed
    values raise ValueError -- a token that is born expired is always a
    configuration mistake.
    """
    if isinstance(value, int):
        if value <= 0:
            raise ValueError(f"Duration must be positive, got {value!r}")
        return timedelta(seconds=value)

    match = _DURATION_RE.match(value)
    if match is None:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = int(match.group(1)), match.group(2).lower()
    if unit not in _UNIT_SECONDS:
        raise ValueError(f"Unknown duration unit {unit!r} in {value!r}")
    if amount <= 0:
        raise ValueError(f"Duration must be positive, got {value!r}")
    return timedelta(seconds=amount * _UNIT_SECONDS[unit])


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
    # Auth
    # ------------------------------------------------------------------

    # Token lifetime as a duration string. Deployments have used both "1d"
    # and "1h"; the value is parsed once by parse_duration().
    jwt_expires_in: str = "1d"
    # True: role and email are re-read from the user store on every request,
    # so role changes apply before the token expires. False: claims are
    # trusted as issued.
    resolve_role_from_store: bool = True
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    self_registration_enabled: bool = True

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("jwt_expires_in")
    @classmethod
    def validate_jwt_expires_in(cls, value: str) -> str:
        parse_duration(value)
        return value

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce SECRET_KEY policy [M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @property
    def token_lifetime(self) -> timedelta:
        return parse_duration(self.jwt_expires_in)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
