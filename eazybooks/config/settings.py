"""
Configuration Management for EazyBooks

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AccessSettings(BaseSettings):
    """Feature gating and guard configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ACCESS_",
        extra="ignore"
    )

    # Unset by default: the admin override is opt-in and audited on use
    super_admin_email: Optional[str] = Field(
        default=None,
        description="Email granted admin access regardless of profile capability"
    )
    default_fallback_path: str = Field(
        default="/dashboard",
        description="Where role and admin guards redirect on denial"
    )
    upgrade_path: str = Field(
        default="/upgrade",
        description="Target of the upsell panel's upgrade button"
    )
    upcoming_tax_window_days: int = Field(
        default=30,
        ge=1,
        le=365,
        description="Pending taxes due within this many days count as upcoming"
    )

    @field_validator('super_admin_email')
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        """Compare emails case-insensitively; blank means disabled."""
        if v is None or not v.strip():
            return None
        return v.strip().lower()


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

    # Sheet names within the spreadsheet
    profiles_sheet_name: str = Field(
        default="Profiles",
        description="Name of the sheet for user profiles"
    )
    businesses_sheet_name: str = Field(
        default="Businesses",
        description="Name of the sheet for business records"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
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


class CheckoutSettings(BaseSettings):
    """Hosted checkout links for paid plans."""

    model_config = SettingsConfigDict(
        env_prefix="CHECKOUT_",
        extra="ignore"
    )

    premium_url: Optional[str] = Field(
        default=None,
        description="Checkout link for the premium plan"
    )
    enterprise_url: Optional[str] = Field(
        default=None,
        description="Checkout link for the enterprise plan"
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
        default="USD",
        min_length=3,
        max_length=3,
        description="Currency used when a business has none configured"
    )


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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def access(self) -> AccessSettings:
        return AccessSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def checkout(self) -> CheckoutSettings:
        return CheckoutSettings()

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


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("access", "google_sheets", "checkout", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
