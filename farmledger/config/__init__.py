"""Configuration package."""

from farmledger.config.settings import (
    AppSettings,
    LedgerSettings,
    ParentalSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "LedgerSettings",
    "ParentalSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
