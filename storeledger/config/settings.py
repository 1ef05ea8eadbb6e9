"""
Application settings with Pydantic v2 validation.

Loads configuration from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReportingSettings(BaseSettings):
    """Reconciliation and reporting configuration."""

    model_config = SettingsConfigDict(env_prefix="REPORT_")

    # Revenue model used when a caller does not pass one explicitly
    default_recognition: Literal["order_product", "order_total", "collections"] = (
        "order_product"
    )
    exclude_cancelled_orders: bool = True

    # Slack allowed between a recorded order total and the recomputed one
    total_tolerance: float = 0.01

    carry_forward_label: str = "Profit carry-forward"

    @field_validator("total_tolerance")
    @classmethod
    def non_negative_tolerance(cls, v: float) -> float:
        if v < 0:
            raise ValueError("total_tolerance must be >= 0")
        return v


class StorageSettings(BaseSettings):
    """Storage configuration."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    data_dir: Path = Path("data")
    db_name: str = "storeledger.db"

    # SQLite settings
    pool_size: int = 5
    busy_timeout: int = 30000  # ms

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "storeledger"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Sub-settings
    reporting: ReportingSettings = Field(default_factory=ReportingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
