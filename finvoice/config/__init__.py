"""Configuration package."""

from finvoice.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    InsightSettings,
    LedgerSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "InsightSettings",
    "LedgerSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
