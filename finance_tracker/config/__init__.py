"""Configuration package."""

from finance_tracker.config.settings import (
    AppSettings,
    CloudinarySettings,
    GoogleSheetsSettings,
    OCRWebhookSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CloudinarySettings",
    "GoogleSheetsSettings",
    "OCRWebhookSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
