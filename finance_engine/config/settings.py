"""
Configuration Management for the Ingestion Engine

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The pure parsing and matching functions take their thresholds as arguments
(defaulting to named constants); only the import flow reads these settings,
so the engine can run without any environment at all.
"""

import warnings
from functools import lru_cache
from pathlib import Path

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
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    transactions_sheet_name: str = Field(default="Transactions")
    accounts_sheet_name: str = Field(default="Accounts")
    audit_sheet_name: str = Field(default="AuditLog")

    @field_validator("credentials_path")
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class GeminiSettings(BaseSettings):
    """Gemini document-extraction configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(..., description="Gemini API key")
    model_name: str = Field(default="gemini-1.5-flash")
    max_tokens: int = Field(
        default=8192,
        ge=100,
        le=8192,
        description="Maximum tokens in response (statements can be long)"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound for one extraction call"
    )


class MatchingSettings(BaseSettings):
    """
    Fuzzy matching thresholds.

    The defaults were hand-tuned; keep them in sync with the constants in
    `finance_engine.reconciliation.duplicates`.
    """

    model_config = SettingsConfigDict(
        env_prefix="MATCHING_",
        extra="ignore"
    )

    strict_similarity: float = Field(default=0.5, ge=0.0, le=1.0)
    loose_similarity: float = Field(default=0.3, ge=0.0, le=1.0)
    amount_tolerance: float = Field(default=0.01, ge=0.0)
    loose_window_days: int = Field(default=5, ge=0)
    min_word_length: int = Field(
        default=3,
        ge=1,
        description="Words shorter than this are ignored when comparing descriptions"
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
    app_environment: str = Field(default="development")
    debug_mode: bool = Field(default=False)

    # Upload boundary
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum document size in MB"
    )
    supported_document_types: str = Field(
        default="application/pdf,image/jpeg,image/png",
        description="Comma-separated list of accepted MIME types"
    )
    min_extraction_confidence: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Below this, extractions are flagged for careful review"
    )

    # Ledger workbooks
    ledger_header_row: int = Field(default=1, ge=1)
    ledger_max_column: int = Field(default=20, ge=1)
    month_locale: str = Field(default="pt_BR")

    # Flat files
    flat_file_delimiter: str = Field(default=",", min_length=1, max_length=1)

    # Analysis
    anomaly_z_threshold: float = Field(default=2.0, gt=0)
    anomaly_max_results: int = Field(default=5, ge=1)

    @property
    def supported_types_list(self) -> list[str]:
        """Get supported MIME types as a list."""
        return [t.strip().lower() for t in self.supported_document_types.split(",") if t.strip()]

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def matching(self) -> MatchingSettings:
        return MatchingSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus `<name>_error`
    entries for the ones that failed. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("google_sheets", "gemini", "matching", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
