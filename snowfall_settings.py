"""
Runtime settings loaded from environment variables (prefix SNOWFALL_).
Uses pydantic-settings for validation and type coercion.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SnowfallSettings(BaseSettings):
    """Where to fetch from, where to cache, and how hard to retry."""

    model_config = SettingsConfigDict(
        env_prefix="SNOWFALL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Local storage
    data_dir: Path = Path("data")
    plots_dir: Path = Path("plots")
    refresh: bool = False

    # Sources
    oni_url: str = "https://psl.noaa.gov/data/correlation/oni.data"
    snotel_base_url: str = (
        "https://wcc.sc.egov.usda.gov/reportGenerator/view_csv/customSingleStationReport/daily/"
    )
    history_days: int = Field(default=15000, gt=0)

    # HTTP
    request_timeout: float = Field(default=60.0, gt=0)
    max_attempts: int = Field(default=3, ge=1)

    log_level: str = "INFO"


@lru_cache
def get_settings() -> SnowfallSettings:
    """Get cached settings instance."""
    return SnowfallSettings()
