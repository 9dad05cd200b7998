"""Configuration package."""

from finance_engine.config.settings import (
    AppSettings,
    GeminiSettings,
    GoogleSheetsSettings,
    MatchingSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GeminiSettings",
    "GoogleSheetsSettings",
    "MatchingSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
