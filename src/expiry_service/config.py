"""Application configuration objects."""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .barcode import BarcodeFormat


class Settings(BaseSettings):
    """Pydantic settings used to configure the application."""

    model_config = SettingsConfigDict(
        env_prefix="EXPIRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(
        default="Expiry Tracker Service",
        description="Human friendly name for the API.",
    )
    environment: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Deployment environment flag used for logging.",
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./expiry.db",
        description="SQLAlchemy compatible database URL.",
    )
    echo_sql: bool = Field(
        default=False,
        description="Enable SQL echo logging for debugging.",
    )
    log_level: str = Field(default="INFO", description="Root log level.")
    host: str = Field(default="0.0.0.0", description="Interface the HTTP server binds to.")
    port: int = Field(default=8000, ge=1, le=65535, description="HTTP server port.")
    status_policy: Literal["day", "month"] = Field(
        default="day",
        description="Expiration status policy: day tiers or month tiers.",
    )
    near_expiration_days: int = Field(
        default=7,
        ge=0,
        description="Upper bound (inclusive) of the near-expiration window for the day policy.",
    )
    merge_key: Literal["barcode", "item_name"] = Field(
        default="barcode",
        description="Field matched together with the expiration day when merging records.",
    )
    barcode_format: BarcodeFormat = Field(
        default=BarcodeFormat.CUSTOM,
        description="Barcode validation policy applied to every input path.",
    )
    notification_check_hour: int = Field(
        default=9,
        ge=0,
        le=23,
        description="Local wall-clock hour of the daily notification check.",
    )
    enable_notification_check: bool = Field(
        default=True,
        description="Start the daily notification check with the application.",
    )

    @field_validator("database_url")
    @classmethod
    def _validate_sqlite_path(cls, value: str) -> str:
        if value.startswith("sqlite") and ":memory:" not in value and "///" not in value:
            raise ValueError(
                "SQLite database URLs should be in the form sqlite+aiosqlite:///path/to/db"
            )
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of :class:`Settings`."""

    return Settings()


__all__ = ["Settings", "get_settings"]
