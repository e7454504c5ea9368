"""Configuration package."""

from split_tracker.config.settings import (
    AppSettings,
    EmailJSSettings,
    GoogleSheetsSettings,
    Settings,
    SplitSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "EmailJSSettings",
    "GoogleSheetsSettings",
    "Settings",
    "SplitSettings",
    "get_settings",
    "validate_all_settings",
]
