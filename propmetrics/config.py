"""
Application configuration using Pydantic Settings.
"""

import os
from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings


def get_env_file() -> str:
    """Determine which env file to use based on environment."""
    env = os.getenv("APP_ENV", "development")
    if env == "production":
        return ".env.production"
    return ".env.development"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite:///./dev.db"

    # App settings
    app_name: str = "Property Metrics"
    debug: bool = False
    log_level: str = "INFO"
    app_env: str = "development"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Defaults for lazily created property assumptions
    default_vacancy_rate: Decimal = Decimal("0.05")
    default_management_fee_rate: Decimal = Decimal("0.08")
    default_market_cap_rate: Decimal = Decimal("0.055")
    default_loan_to_cost: Decimal = Decimal("0.75")
    default_hold_period_years: int = 5
    default_rehab_financed: bool = True
    default_dscr_threshold: Decimal = Decimal("1.15")

    # Metrics
    ratio_storage_limit: Decimal = Decimal("9.9999")
    occupancy_risk_threshold: Decimal = Decimal("0.90")
    metrics_cache_size: int = 512

    class Config:
        env_file = get_env_file()
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
