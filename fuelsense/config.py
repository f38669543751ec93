"""
Configuration management for FuelSense.

Loads environment variables (and an optional .env file) into typed settings.

Usage:
    from fuelsense.config import get_settings

    settings = get_settings()
    print(settings.forecast_api_url)
"""
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ========================================================================
    # Forecast Provider
    # ========================================================================
    forecast_api_url: str = "https://marine-api.open-meteo.com/v1/marine"
    forecast_days: int = 16
    forecast_timeout_s: float = 12.0
    forecast_max_retries: int = 3
    forecast_backoff_s: float = 1.0
    forecast_max_backoff_s: float = 8.0
    forecast_max_workers: int = 8
    forecast_match_tolerance_hours: float = 1.0
    user_agent: str = "FuelSense/1.0"

    # ========================================================================
    # Batching
    # ========================================================================
    coordinate_precision: int = 2
    batch_window_hours: int = 6

    # ========================================================================
    # Pipeline Defaults
    # ========================================================================
    default_sampling_interval_hours: float = 12.0
    default_bunkering_hours: float = 8.0
    safe_window_search_hours: int = 48

    # ========================================================================
    # API Configuration
    # ========================================================================
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = "http://localhost:3000"
    environment: str = "development"
    log_level: str = "info"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings
    """
    return Settings()
