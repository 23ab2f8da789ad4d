"""Application configuration using pydantic-settings pattern."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Personnel Ledger"
    app_version: str = "0.1.0"
    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Database (SQLite)
    database_url: str = Field(default="file:personnel_ledger.db")

    # Identity resolution
    fuzzy_match_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Minimum similarity for a fuzzy candidate over the full pool",
    )
    context_match_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Minimum similarity over identities recently active on the project",
    )
    recent_window_days: int = Field(default=14, ge=0)
    identity_cache_ttl_seconds: float = Field(default=300.0, gt=0)
    identity_cache_max_size: int = Field(default=1024, gt=0)

    # Payroll
    max_hours_per_day: float = Field(default=24.0, gt=0)
    overtime_multiplier: float = Field(default=1.5, gt=0)
    doubletime_multiplier: float = Field(default=2.0, gt=0)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
