"""Environment-driven settings via pydantic-settings.

Every field can be set with a ``MEALSYNC_`` prefixed environment variable
or a ``.env`` file, e.g. ``MEALSYNC_BASE_URL`` or
``MEALSYNC_MEALS_STALE_AFTER=2m``. Durations accept the same forms as
``parse_duration`` and are stored as milliseconds.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mealsync.duration import parse_duration


class Settings(BaseSettings):
    """Client settings from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MEALSYNC_", env_file=".env", extra="ignore"
    )

    # Backend
    base_url: str = "http://localhost:8000/api"
    request_timeout: int = 10_000

    # Stale windows per data domain
    meals_stale_after: int = 300_000
    nutrition_stale_after: int = 600_000
    profile_stale_after: int = 900_000
    cache_max_entries: int | None = None

    # Retry
    retry_max_attempts: int = 3
    retry_base_delay: int = 1_000
    retry_max_delay: int = 5_000

    # Durable token storage: redis_url wins over token_file; neither means memory
    token_file: Path | None = None
    redis_url: str | None = None
    access_token_key: str = "auth_token"
    refresh_token_key: str = "refresh_token"

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator(
        "request_timeout",
        "meals_stale_after",
        "nutrition_stale_after",
        "profile_stale_after",
        "retry_base_delay",
        "retry_max_delay",
        mode="before",
    )
    @classmethod
    def parse_durations(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip().isdigit():
            return parse_duration(v)
        return v

    @model_validator(mode="after")
    def check_retry(self) -> "Settings":
        if self.retry_max_attempts < 1:
            raise ValueError("retry_max_attempts must be at least 1")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings (read once)."""
    return Settings()


__all__ = ["Settings", "get_settings"]
