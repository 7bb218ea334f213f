"""Configuration settings for the Fortuna projection engine."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Flat settings read from environment variables or a ``.env`` file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Projection worker
    projection_interval_seconds: float = Field(
        default=3600.0,
        validation_alias="PROJECTION_INTERVAL_SECONDS",
        description="Seconds between scheduled projection syncs",
    )
    projection_months_ahead: int = Field(
        default=12,
        validation_alias="PROJECTION_MONTHS_AHEAD",
        description="Number of months kept materialized ahead of today",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
