"""
Runtime settings loaded from environment variables.

Settings are read once per process. Tests that change the environment call
get_settings.cache_clear() afterwards.

Environment variables:
    DATABASE_URL                    SQLAlchemy URL (postgres:// is accepted)
    CLERK_FRONTEND_API              Clerk frontend API host, used for JWKS and issuer
    CLERK_ISSUER_URL                Explicit issuer; overrides CLERK_FRONTEND_API
    CLERK_AUDIENCE                  Expected aud claim (optional)
    CLERK_SECRET_KEY                Clerk Backend API key for active-role updates
    CLERK_API_URL                   Clerk Backend API base URL
    EXPIRY_SWEEP_ENABLED            Run the in-process expiry sweeper (default true)
    EXPIRY_SWEEP_INTERVAL_SECONDS   Seconds between sweeps (default 300)
    EXPIRY_SWEEP_BATCH_SIZE         Max requests expired per sweep (default 500)
    LOG_LEVEL                       Root log level (default INFO)
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from nexus.platform.errors import ConfigurationError

DEFAULT_CLERK_API_URL = "https://api.clerk.com/v1"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _normalize_issuer(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    value = value.rstrip("/")
    if not value.startswith("http"):
        value = f"https://{value}"
    return value


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str]
    clerk_issuer: Optional[str]
    clerk_audience: Optional[str]
    clerk_secret_key: Optional[str]
    clerk_api_url: str
    expiry_sweep_enabled: bool
    expiry_sweep_interval_seconds: int
    expiry_sweep_batch_size: int
    log_level: str

    @property
    def auth_configured(self) -> bool:
        return self.clerk_issuer is not None


def load_settings() -> Settings:
    """
    Build Settings from the current environment.

    Raises:
        ConfigurationError: a numeric setting is malformed or out of range
    """
    database_url = os.getenv("DATABASE_URL") or None
    if database_url and database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    settings = Settings(
        database_url=database_url,
        clerk_issuer=_normalize_issuer(
            os.getenv("CLERK_ISSUER_URL") or os.getenv("CLERK_FRONTEND_API")
        ),
        clerk_audience=os.getenv("CLERK_AUDIENCE") or None,
        clerk_secret_key=os.getenv("CLERK_SECRET_KEY") or None,
        clerk_api_url=os.getenv("CLERK_API_URL", DEFAULT_CLERK_API_URL).rstrip("/"),
        expiry_sweep_enabled=_env_bool("EXPIRY_SWEEP_ENABLED", True),
        expiry_sweep_interval_seconds=_env_int("EXPIRY_SWEEP_INTERVAL_SECONDS", 300),
        expiry_sweep_batch_size=_env_int("EXPIRY_SWEEP_BATCH_SIZE", 500),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )

    if settings.expiry_sweep_interval_seconds <= 0:
        raise ConfigurationError("EXPIRY_SWEEP_INTERVAL_SECONDS must be positive")
    if settings.expiry_sweep_batch_size <= 0:
        raise ConfigurationError("EXPIRY_SWEEP_BATCH_SIZE must be positive")

    return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings singleton."""
    return load_settings()
