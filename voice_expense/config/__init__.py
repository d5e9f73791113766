"""Configuration package."""

from voice_expense.config.settings import (
    AppSettings,
    CaptureSettings,
    ExtractionSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CaptureSettings",
    "ExtractionSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
