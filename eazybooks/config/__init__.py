"""Configuration package."""

from eazybooks.config.settings import (
    AccessSettings,
    AppSettings,
    CheckoutSettings,
    GoogleSheetsSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AccessSettings",
    "AppSettings",
    "CheckoutSettings",
    "GoogleSheetsSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
