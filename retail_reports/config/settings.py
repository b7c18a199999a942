"""
Retail Shop Reporting Engine
Centralized Configuration Management

This module provides configuration management using Pydantic settings with
environment variable support, validation, and type safety.
"""

from functools import lru_cache
from typing import Optional, List
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="retail_shop", description="Database name")
    user: str = Field(default="shop", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")
    pool_size: int = Field(default=5, description="Connections kept open per worker")
    max_overflow: int = Field(default=5, description="Extra connections allowed under load")
    pool_timeout: float = Field(default=10.0, description="Seconds to wait for a free connection")
    url: Optional[str] = Field(default=None, description="Full async database URL (overrides host/port)")

    @property
    def async_url(self) -> str:
        """Async database URL for asyncpg"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class ReportingSettings(BaseSettings):
    """Reporting engine thresholds and defaults"""

    model_config = SettingsConfigDict(env_prefix="REPORTS_")

    # Data source
    store: str = Field(default="sql", description="Report store backend: sql or frame")
    data_path: str = Field(default="./data/raw", description="Parquet directory for the frame store")

    # Periods and filters
    default_window_days: int = Field(default=30, description="Trailing window when no dates are given")
    default_limit: int = Field(default=10, description="Default top-N size")
    max_limit: int = Field(default=100, description="Largest accepted top-N size")
    lenient_dates: bool = Field(default=False, description="Replace unparseable dates with defaults")

    # Trend
    trend_threshold: float = Field(default=5.0, description="Growth percentage separating stable from trending")

    # Inventory
    max_multiplier: int = Field(default=3, description="Derived max threshold = multiplier x min threshold")
    high_utilization_ratio: float = Field(default=0.7, description="Share of max above which stock is high")
    critical_days: float = Field(default=7, description="Days until stockout considered critical")
    high_days: float = Field(default=14, description="Days until stockout considered high priority")
    usage_window_days: int = Field(default=30, description="Days before today used to estimate daily usage; today is also counted")

    # Alerts and recommendations
    low_stock_alert_ratio: float = Field(default=0.2, description="Low stock share of catalog that raises an alert")
    overstock_alert_ratio: float = Field(default=0.1, description="Overstock share of catalog that raises an alert")
    concentration_ratio: float = Field(default=0.5, description="Top product revenue share considered concentrated")
    low_margin_percent: float = Field(default=20.0, description="Category margin below which pricing is reviewed")
    high_value_cost: float = Field(default=10000.0, description="Category stock cost considered high value")

    # Stock movements
    estimate_restock: bool = Field(default=True, description="Estimate stock-in from sales when no receipts exist")
    restock_estimate_ratio: float = Field(default=0.8, description="Estimated stock-in as a share of stock-out")

    @field_validator("store")
    @classmethod
    def validate_store(cls, v: str) -> str:
        """Validate store backend"""
        allowed = ["sql", "frame"]
        if v.lower() not in allowed:
            raise ValueError(f"Store must be one of: {allowed}")
        return v.lower()


class SecuritySettings(BaseSettings):
    """Security Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    # Rate limiting
    rate_limit_requests: int = Field(default=100, alias="RATE_LIMIT_REQUESTS", description="Rate limit requests")
    rate_limit_window_seconds: int = Field(default=60, alias="RATE_LIMIT_WINDOW_SECONDS", description="Rate limit window")

    # CORS
    cors_origins: List[str] = Field(
        default=["http://localhost:4200", "http://localhost:3000"],
        description="Allowed CORS origins"
    )


class MonitoringSettings(BaseSettings):
    """Monitoring and Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    metrics_enabled: bool = Field(default=True, alias="METRICS_ENABLED", description="Expose Prometheus metrics")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v.lower() not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be json or text")
        return v.lower()


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
    )

    # Application
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    reporting: ReportingSettings = Field(default_factory=ReportingSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
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
    Settings are read from the environment once per process.
    """
    return Settings()
