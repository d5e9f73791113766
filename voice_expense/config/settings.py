"""
Configuration Management for the Voice Expense Logger

Every section is a pydantic-settings class with its own environment prefix.

DESIGN DECISION: All tunable numbers live here (silence thresholds,
confidence cut-off, default currency). They were tuned empirically and
differ between platforms, so they are defaults rather than constants.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CaptureSettings(BaseSettings):
    """Speech capture timing configuration."""

    model_config = SettingsConfigDict(
        env_prefix="VOICE_CAPTURE_",
        extra="ignore"
    )

    silence_threshold_seconds: float = Field(
        default=2.0,
        ge=0.5,
        le=10.0,
        description="Trailing silence after speech that ends a session"
    )
    minimum_speech_duration_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=5.0,
        description="A session never auto-stops before this much recording time"
    )
    silence_check_interval_seconds: float = Field(
        default=0.5,
        ge=0.05,
        le=2.0,
        description="How often the silence check polls the recording state"
    )

    @model_validator(mode='after')
    def check_interval_fits_threshold(self) -> 'CaptureSettings':
        """A poll slower than the threshold would overshoot it by a full interval."""
        if self.silence_check_interval_seconds > self.silence_threshold_seconds:
            raise ValueError(
                "silence_check_interval_seconds cannot exceed silence_threshold_seconds"
            )
        return self


class ExtractionSettings(BaseSettings):
    """Expense extraction configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EXPENSE_",
        extra="ignore"
    )

    default_currency: str = Field(
        default="USD",
        description="Currency used when nothing in the transcript or locale decides"
    )
    default_locale: Optional[str] = Field(
        default=None,
        description="Locale identifier (e.g. en_US, ar-AE) used when the caller gives none"
    )
    currency_registry_path: Optional[str] = Field(
        default=None,
        description="Override for the packaged currencies.json"
    )
    low_confidence_threshold: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Expenses scoring below this are flagged for confirmation"
    )

    @field_validator('default_currency')
    @classmethod
    def validate_currency_code(cls, v: str) -> str:
        """Accept any case, store upper-case."""
        code = v.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"Currency code must be 3 letters, got: {v!r}")
        return code

    @field_validator('currency_registry_path')
    @classmethod
    def validate_registry_path(cls, v: Optional[str]) -> Optional[str]:
        """Fail at startup rather than on the first parse."""
        if v is not None and not Path(v).is_file():
            raise ValueError(f"Currency registry file not found at {v}")
        return v


class AppSettings(BaseSettings):
    """
    Process-wide settings: environment name, debug flag and log level.

    Read from unprefixed environment variables and the .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Standard library log level name for local logs"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def is_production(self) -> bool:
        return self.app_environment.lower() == "production"


class Settings(BaseSettings):
    """
    Root settings container.

    Capture, extraction and app settings behind one object.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sections are built on access so a bad EXPENSE_ value does not block capture

    @property
    def capture(self) -> CaptureSettings:
        return CaptureSettings()

    @property
    def extraction(self) -> ExtractionSettings:
        return ExtractionSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Return the process settings, built on first call.

    Tests that change the environment must call
    get_settings.cache_clear() before and after.
    """
    return Settings()


def validate_all_settings() -> dict[str, object]:
    """
    Build every section once and report which ones fail.

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name_error: message} for each failure.
    The host app calls this at startup before wiring the flow.
    """
    results: dict[str, object] = {}

    settings = get_settings()

    for name in ("capture", "extraction", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
