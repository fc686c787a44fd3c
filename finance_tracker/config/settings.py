"""
Configuration Management for Finance Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
A single Settings object is built at process start and handed to every
component, so table names and provider credentials are never looked up
ad hoc from the environment.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Record store selection and collection names."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        extra="ignore"
    )

    backend: str = Field(
        default="memory",
        description="Storage backend: 'memory' or 'google_sheets'"
    )

    # Collection (table / worksheet) names
    accounts_table: str = Field(default="Accounts")
    categories_table: str = Field(default="Categories")
    transactions_table: str = Field(default="FinanceTransactions")
    subscriptions_table: str = Field(default="Subscriptions")
    networth_table: str = Field(default="NetWorth")
    audit_table: str = Field(default="AuditLog")

    @field_validator('backend')
    @classmethod
    def validate_backend(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in {"memory", "google_sheets"}:
            raise ValueError(f"Unsupported storage backend: {v}")
        return v


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class TwilioSettings(BaseSettings):
    """Twilio WhatsApp configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TWILIO_",
        extra="ignore"
    )

    account_sid: Optional[str] = None
    auth_token: Optional[str] = None
    wa_from: Optional[str] = Field(
        default=None,
        description="Sender number, e.g. 'whatsapp:+14155238886'"
    )
    api_base_url: str = Field(default="https://api.twilio.com")

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.wa_from)


class LineSettings(BaseSettings):
    """LINE Messaging API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LINE_",
        extra="ignore"
    )

    channel_access_token: Optional[str] = None
    channel_secret: str = Field(
        default="test-secret",
        description="Shared secret used to sign webhook bodies"
    )
    api_base_url: str = Field(default="https://api.line.me")

    @property
    def is_configured(self) -> bool:
        return bool(self.channel_access_token)


class SchedulerSettings(BaseSettings):
    """Scheduled job configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SCHEDULER_",
        extra="ignore"
    )

    enabled: bool = Field(
        default=False,
        description="Start the background jobs with the API process"
    )
    daily_subscriptions_hour: int = Field(default=9, ge=0, le=23)
    monthly_networth_day: int = Field(default=1, ge=1, le=28)
    monthly_networth_hour: int = Field(default=10, ge=0, le=23)
    poll_interval_seconds: int = Field(
        default=60,
        ge=1,
        description="How often the scheduler loop checks the clock"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
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

    default_currency: str = Field(
        default="THB",
        min_length=3,
        max_length=3,
        description="Currency used when a record omits one"
    )
    reminder_lead_days: int = Field(
        default=3,
        ge=0,
        le=31,
        description="How many days ahead a 'pre' reminder is sent"
    )

    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=3001, ge=1, le=65535)

    @property
    def is_production(self) -> bool:
        return self.app_environment.lower() in {"prod", "production"}


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def twilio(self) -> TwilioSettings:
        return TwilioSettings()

    @property
    def line(self) -> LineSettings:
        return LineSettings()

    @property
    def scheduler(self) -> SchedulerSettings:
        return SchedulerSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings(settings: Optional[Settings] = None) -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = settings or get_settings()

    try:
        storage = settings.storage
        results["storage"] = True
    except Exception as e:
        storage = None
        results["storage"] = False
        results["storage_error"] = str(e)

    # Sheets credentials only matter when that backend is selected
    if storage is not None and storage.backend == "google_sheets":
        try:
            _ = settings.google_sheets
            results["google_sheets"] = True
        except Exception as e:
            results["google_sheets"] = False
            results["google_sheets_error"] = str(e)

    results["twilio"] = settings.twilio.is_configured
    if not results["twilio"]:
        results["twilio_error"] = "Twilio not configured"

    results["line"] = settings.line.is_configured
    if not results["line"]:
        results["line_error"] = "LINE not configured"

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
