"""Application configuration."""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Processing status backend
    status_api_url: str = "http://localhost:3000"
    status_timeout: float = 5.0  # Per request, seconds

    # Guard timing (seconds)
    validation_timeout: float = 15.0
    min_validation_interval: float = 2.0
    cross_tab_debounce: float = 0.4
    sync_interval: float = 5.0  # Periodic backend re-check on gated routes; 0 disables

    # Allow access when validation exceeds validation_timeout
    fail_open: bool = True

    # Redis-backed local state (optional)
    redis_url: str = "redis://localhost:6379/0"
    storage_prefix: str = "accessguard:"
    storage_channel: str = "accessguard:storage-events"

    # Route table override (YAML); empty = built-in table
    routes_file: str = ""

    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
