"""
Configuration management using Pydantic Settings.

All configuration is loaded from environment variables with sensible defaults.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PHARMA_FEEDS_",
        extra="ignore",
    )

    # Fetching
    fetch_timeout: float = Field(15.0, description="Per-feed HTTP timeout (seconds)")
    max_redirects: int = Field(5, description="Maximum redirects followed per feed")
    user_agent: str = Field(DEFAULT_USER_AGENT, description="User-Agent sent to feed endpoints")
    max_concurrent_fetches: int = Field(10, description="Max concurrent feed requests per cycle")

    # Cache / refresh
    cache_ttl_minutes: int = Field(30, description="Minutes a snapshot stays fresh")
    refresh_interval_minutes: int = Field(30, description="Minutes between full refresh cycles")
    max_items_per_source: int = Field(10, description="Items kept per feed snapshot")

    # Queries
    max_search_results: int = Field(50, description="Search result cap")
    trending_window_hours: int = Field(24, description="Default trending window (hours)")
    trending_limit: int = Field(10, description="Default number of trending topics")

    # Logging
    log_level: str = Field("INFO", description="Log level")
    log_json: bool = Field(False, description="Output logs as JSON")

    @field_validator("fetch_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("fetch_timeout must be positive")
        return v

    @field_validator(
        "max_redirects",
        "max_concurrent_fetches",
        "cache_ttl_minutes",
        "refresh_interval_minutes",
        "max_items_per_source",
        "max_search_results",
        "trending_window_hours",
        "trending_limit",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def cache_ttl_seconds(self) -> int:
        return self.cache_ttl_minutes * 60


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Clear cache to allow re-reading settings (useful for tests)
def clear_settings_cache():
    """Clear the settings cache."""
    get_settings.cache_clear()
