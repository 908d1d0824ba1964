"""
Configuration Management for Household Settlement

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The engine itself takes its policy as an argument; these settings only
supply the household defaults and the backends the application wires up.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from household_settlement.models.ledger import (
    MissingIncomePolicy,
    RoundingMode,
    WeightingMode,
)


class EngineSettings(BaseSettings):
    """Default settlement policy and engine tuning."""

    model_config = SettingsConfigDict(
        env_prefix="SETTLEMENT_",
        extra="ignore"
    )

    weighting_mode: WeightingMode = Field(
        default=WeightingMode.INCOME_WEIGHTED,
        description="How fair shares are weighted when a household has no policy"
    )
    rounding_mode: RoundingMode = Field(
        default=RoundingMode.LARGEST_REMAINDER,
        description="Where leftover minor units go after flooring shares"
    )
    missing_income_policy: MissingIncomePolicy = Field(
        default=MissingIncomePolicy.ZERO_WEIGHT,
        description="Treatment of members without an income declaration"
    )
    include_personal_reimbursements: bool = Field(
        default=False,
        description="Settle personal expenses paid on someone else's behalf"
    )
    transfer_description: str = Field(
        default="Settlement transfer",
        max_length=200,
        description="Description stamped on every generated transfer"
    )
    upsert_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a draft upsert that lost a uniqueness race"
    )


class DatabaseSettings(BaseSettings):
    """Settlement persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        extra="ignore"
    )

    url: str = Field(
        default="sqlite:///settlements.db",
        description="SQLAlchemy database URL"
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements (debugging only)"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets ledger and audit configuration."""

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
        description="ID of the household ledger spreadsheet"
    )

    # Sheet names within the spreadsheet
    members_sheet_name: str = Field(
        default="Members",
        description="Name of the sheet listing household members"
    )
    expenses_sheet_name: str = Field(
        default="Expenses",
        description="Name of the sheet for expense records"
    )
    incomes_sheet_name: str = Field(
        default="Incomes",
        description="Name of the sheet for income declarations"
    )
    policies_sheet_name: str = Field(
        default="Policies",
        description="Name of the sheet for household policies"
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
    use_google_sheets: bool = Field(
        default=False,
        description="Read the ledger and write the audit trail through Google Sheets"
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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def engine(self) -> EngineSettings:
        return EngineSettings()

    @property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

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

    sections = {
        "engine": lambda: settings.engine,
        "database": lambda: settings.database,
        "google_sheets": lambda: settings.google_sheets,
        "app": lambda: settings.app,
    }

    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
