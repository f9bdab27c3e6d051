"""
Configuration Management for Accounts Keeper

Every setting is read from the environment (or .env) through
pydantic-settings. Each external service gets its own prefix, and the
settings page reports which of them are configured.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets document store configuration."""

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

    # One worksheet per collection is created on demand with this prefix
    worksheet_prefix: str = Field(
        default="",
        description="Optional prefix for collection worksheet names"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """A missing key file only warns; it may be mounted after startup."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "The Sheets backend will fail until it is present."
            )
        return v


class AuthSettings(BaseSettings):
    """Authentication provider configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        extra="ignore"
    )

    min_password_length: int = Field(
        default=6,
        ge=1,
        description="Minimum password length accepted at sign-up"
    )
    bcrypt_rounds: int = Field(
        default=12,
        ge=4,
        le=16,
        description="bcrypt work factor"
    )
    delete_confirmation_word: str = Field(
        default="DELETE",
        description="Word the user must type to delete their account"
    )


class AppSettings(BaseSettings):
    """App-wide behaviour: storage backend, paging and export naming."""

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
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Document store backend"
    )

    # Currency defaults for users without saved settings
    default_currency: str = Field(
        default="INR",
        description="Currency code used until the user picks one"
    )

    # Page sizes
    transactions_per_page: int = Field(
        default=20,
        ge=1,
        le=200,
        description="Rows per page on the transactions page"
    )
    recent_transactions_limit: int = Field(
        default=10,
        ge=1,
        description="Rows in the recent transactions panel on the accounts page"
    )
    overview_recent_limit: int = Field(
        default=5,
        ge=1,
        description="Rows in the recent transactions panel on the overview page"
    )

    # Export
    export_filename_prefix: str = Field(
        default="accounts-keeper-data",
        description="Prefix of the exported JSON file name"
    )


class Settings(BaseSettings):
    """
    Top-level settings object.

    Sub-settings are built on first access, so an unused backend never
    needs its variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so the memory backend
    # runs without any Google configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def auth(self) -> AuthSettings:
        return AuthSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Process-wide settings instance.

    Built once per process.
    Tests call get_settings.cache_clear() after changing the environment.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Check each settings group loads.

    Maps group name to success, with a "<group>_error" message on failure.
    Google Sheets is only checked when it is the selected backend.
    """
    results = {}

    settings = get_settings()

    try:
        app = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)
        app = None

    try:
        _ = settings.auth
        results["auth"] = True
    except Exception as e:
        results["auth"] = False
        results["auth_error"] = str(e)

    if app is not None and app.storage_backend == "google_sheets":
        try:
            _ = settings.google_sheets
            results["google_sheets"] = True
        except Exception as e:
            results["google_sheets"] = False
            results["google_sheets_error"] = str(e)

    return results
