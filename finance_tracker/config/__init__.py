"""Configuration package."""

from finance_tracker.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    LineSettings,
    SchedulerSettings,
    Settings,
    StorageSettings,
    TwilioSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "LineSettings",
    "SchedulerSettings",
    "Settings",
    "StorageSettings",
    "TwilioSettings",
    "get_settings",
    "validate_all_settings",
]
