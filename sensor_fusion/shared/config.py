"""
Centralized configuration for Sensor Fusion.

Uses pydantic-settings for environment variable management.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # Correlation Engine Defaults
    # ==========================================================================

    correlation_time_window_ms: int = 30_000
    correlation_spatial_radius: float = 10.0  # meters
    correlation_min_threshold: float = 0.3
    correlation_max_buffer_size: int = 1000
    correlation_analysis_interval_ms: int = 5_000
    correlation_cycle_timeout_ms: int = 30_000
    correlation_enable_advanced_analysis: bool = True

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
