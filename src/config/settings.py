"""
Configuration Management for Household Ledger

Uses pydantic-settings: values come from environment variables and an
optional .env file.

DESIGN DECISION: Deployment configuration lives in one place. The
Google Sheets section is optional; without it the app runs on the
local store alone, so it is only loaded when the remote store is built.

User preferences (salary, cash mode, ...) are NOT configuration: they are
data, stored as the settings document and edited from the dashboard.
"""

import warnings
from functools import lru_cache
from pathlib import Path

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets remote store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Service account key file (JSON)"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the spreadsheet that holds the collections"
    )
    worksheet_prefix: str = Field(
        default="",
        description="Prefix for the per-collection worksheet names"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """A missing key file is a warning; it may be mounted after startup."""
        if not Path(v).is_file():
            warnings.warn(f"Service account key not found at {v}")
        return v


class AppSettings(BaseSettings):
    """
    Application settings for the dashboard and the stores.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Local mirror
    local_store_path: str = Field(
        default="data/local_store.json",
        description="JSON file backing the local durable store"
    )

    # Remote calls
    remote_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        le=300,
        description="Upper bound on a single remote store call"
    )
    start_online: bool = Field(
        default=True,
        description="Assume the remote store is reachable at startup"
    )

    # Display
    currency_label: str = Field(
        default="SAR",
        description="Currency label shown next to amounts"
    )
    budget_warning_ratio: float = Field(
        default=0.8,
        gt=0.0,
        le=1.0,
        description="Share of a budget at which a warning is shown"
    )
    trend_months: int = Field(
        default=6,
        ge=2,
        le=24,
        description="Number of months in the trend report"
    )

    @property
    def local_store_file(self) -> Path:
        """Local store path as a Path."""
        return Path(self.local_store_path)


class Settings(BaseSettings):
    """
    Root settings container.

    Sub-settings are built on access, so a missing Google Sheets section
    only fails the code that needs it.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """Shared Settings instance; get_settings.cache_clear() reloads it."""
    return Settings()


def validate_all_settings() -> dict[str, object]:
    """
    Startup check of each settings section.

    Returns {section: bool}, plus "{section}_error" with the message for
    every section that failed to load.
    """
    settings = get_settings()
    sections = {
        "google_sheets": lambda: settings.google_sheets,
        "app": lambda: settings.app,
    }

    results: dict[str, object] = {}
    for name, load in sections.items():
        try:
            load()
        except ValidationError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)
        else:
            results[name] = True
    return results
