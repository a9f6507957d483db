"""
Configuration Management for Family Budget

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Spreadsheet IDs, sheet titles, secrets and Firebase project details used to be
scattered constants; here they are validated at startup instead.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


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
        description="ID of the budget spreadsheet"
    )

    # Sheet titles within the spreadsheet
    history_sheet_name: str = Field(default="History")
    recurring_sheet_name: str = Field(default="Recurring")
    hsa_sheet_name: str = Field(default="HSA")
    logs_sheet_name: str = Field(default="Logs")
    metadata_sheet_name: str = Field(default="Metadata")
    goals_sheet_name: str = Field(default="Goals")
    fiscal_years_sheet_name: str = Field(default="Fiscal Years")
    fiscal_months_sheet_name: str = Field(default="Fiscal Months")
    fiscal_weeks_sheet_name: str = Field(default="Fiscal Weeks")

    # Goals live in single cells of the Goals sheet
    weekly_goal_cell: str = Field(
        default="A2",
        description="Cell holding the remaining weekly goal"
    )
    monthly_goal_cell: str = Field(
        default="B2",
        description="Cell holding the remaining monthly goal"
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


class FirebaseSettings(BaseSettings):
    """Firebase (Firestore tokens + Cloud Messaging) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FIREBASE_",
        extra="ignore"
    )

    project_id: str = Field(
        ...,
        description="Firebase project that owns the FCM sender"
    )
    credentials_path: Optional[str] = Field(
        default=None,
        description="Service account JSON; application default credentials when unset"
    )
    tokens_collection: str = Field(
        default="fcmTokens",
        description="Firestore collection holding device tokens"
    )
    fcm_endpoint: str = Field(
        default="https://fcm.googleapis.com/v1/projects/{project_id}/messages:send",
        description="FCM HTTP v1 send endpoint template"
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for each FCM request"
    )

    @property
    def send_url(self) -> str:
        return self.fcm_endpoint.format(project_id=self.project_id)


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

    notification_secret: str = Field(
        default="",
        description="Shared secret required by the notification endpoints"
    )

    # Logs sheet timestamps are written in a fixed offset (MST)
    log_utc_offset_hours: int = Field(
        default=-7,
        ge=-12,
        le=14,
        description="UTC offset used for Logs sheet timestamps"
    )

    fiscal_window_days: int = Field(
        default=365,
        ge=1,
        description="GET returns fiscal periods starting within this many days of today"
    )

    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins"
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


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
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def firebase(self) -> FirebaseSettings:
        return FirebaseSettings()

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

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    try:
        _ = settings.firebase
        results["firebase"] = True
    except Exception as e:
        results["firebase"] = False
        results["firebase_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
