"""
Retail Analytics Engine
Centralized Configuration Management

This module provides configuration management using Pydantic settings with
environment variable support, validation, and type safety. Every threshold
used by the analytical catalog (shipping expectations, churn windows, value
tiers) lives here so reports can be re-tuned without code changes.
"""

from functools import lru_cache
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnalyticsSettings(BaseSettings):
    """Analytical catalog configuration"""

    model_config = SettingsConfigDict(env_prefix="ANALYTICS_")

    # Snapshot construction
    integrity_mode: str = Field(default="strict", description="Orphan handling: strict or lenient")
    validate_snapshot: bool = Field(default=True, description="Run data quality checks on build")

    # Logistics
    expected_shipping_days: int = Field(default=3, description="Expected shipping time in days")
    on_time_threshold_days: int = Field(default=4, description="Max days for an on-time delivery")
    fast_shipping_days: float = Field(default=2, description="Upper bound for fast shipping")
    moderate_shipping_days: float = Field(default=4, description="Upper bound for moderate shipping")

    # Retention
    churn_window_months: int = Field(default=6, description="Inactivity window for churn")
    return_window_months: int = Field(default=6, description="Window for a return purchase")

    # Trends
    rolling_window: int = Field(default=3, description="Rolling forecast window in months")

    # Segmentation
    high_value_threshold: float = Field(default=5000, description="Total sales above which a customer is high value")
    medium_value_threshold: float = Field(default=2000, description="Lower bound of the medium value tier")
    monthly_buyer_days: float = Field(default=30, description="Max average interval of a monthly buyer")
    quarterly_buyer_days: float = Field(default=90, description="Max average interval of a quarterly buyer")
    rfm_buckets: int = Field(default=5, description="Buckets per RFM dimension")

    # Lifetime value
    clv_min_lifespan_days: Optional[int] = Field(
        default=None,
        description="Floor applied to zero lifespans; unset leaves CLV undefined",
    )

    @field_validator("integrity_mode")
    @classmethod
    def validate_integrity_mode(cls, v: str) -> str:
        """Validate integrity mode value"""
        allowed = ["strict", "lenient"]
        if v.lower() not in allowed:
            raise ValueError(f"Integrity mode must be one of: {allowed}")
        return v.lower()


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="retail-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
