"""
Configuration Management for FinVoice Core

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here, including every
threshold the insight rules use. Changing a threshold never requires touching
the engine itself.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Ledger store selection and derived-aggregate arithmetic."""

    model_config = SettingsConfigDict(
        env_prefix="FINVOICE_LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: Literal["local", "google_sheets"] = Field(
        default="local",
        description="Which ledger store a new session is built on"
    )
    local_store_path: Optional[str] = Field(
        default=None,
        description="JSON file mirroring the local store (in-memory only if unset)"
    )
    amount_precision: int = Field(
        default=6,
        ge=0,
        le=12,
        description="Digits Budget.spent is rounded to after each adjustment"
    )


class InsightSettings(BaseSettings):
    """Thresholds used by the insight engine."""

    model_config = SettingsConfigDict(
        env_prefix="FINVOICE_INSIGHTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Spending patterns
    trend_increase_ratio: float = Field(default=1.1, gt=1.0)
    trend_decrease_ratio: float = Field(default=0.9, gt=0.0, lt=1.0)
    trend_window_months: int = Field(
        default=3,
        ge=1,
        description="Size of the recent and the older window compared for trend"
    )
    high_risk_variance_ratio: float = Field(default=0.5, ge=0.0)
    medium_risk_variance_ratio: float = Field(default=0.2, ge=0.0)
    seasonality_min_months: int = Field(default=12, ge=1)
    seasonality_variance_ratio: float = Field(default=0.3, ge=0.0)
    peak_day_count: int = Field(default=2, ge=1, le=7)

    # Insight rules
    budget_warning_ratio: float = Field(
        default=0.9,
        gt=0.0,
        description="Utilisation at which a budget warning is raised"
    )
    goal_attention_progress: float = Field(default=0.5, gt=0.0, le=1.0)
    goal_attention_days: int = Field(default=180, ge=1)
    idle_cash_threshold: float = Field(
        default=50000.0,
        ge=0.0,
        description="Available cash above which an investment opportunity is raised"
    )
    festival_months: str = Field(
        default="11,12",
        description="Comma-separated calendar months (1-12) of the festival season"
    )
    emergency_fund_months: float = Field(default=3.0, gt=0.0)
    debt_to_income_limit: float = Field(
        default=40.0,
        gt=0.0,
        description="Debt payments as a percentage of monthly income"
    )
    income_variability_limit: float = Field(default=0.3, gt=0.0)

    # Personalised recommendations
    dining_monthly_limit: float = Field(default=15000.0, ge=0.0)

    # Advisory interaction log
    interaction_log_path: Optional[str] = Field(
        default=None,
        description="JSON lines file for the interaction log (in-memory if unset)"
    )

    @field_validator("festival_months")
    @classmethod
    def validate_festival_months(cls, v: str) -> str:
        """Every entry must be a calendar month number."""
        for part in v.split(","):
            part = part.strip()
            if not part:
                continue
            if not part.isdigit() or not 1 <= int(part) <= 12:
                raise ValueError(f"Invalid festival month: {part!r}")
        return v

    @property
    def festival_months_list(self) -> list[int]:
        """Festival months as integers."""
        return [int(m.strip()) for m in self.festival_months.split(",") if m.strip()]


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets remote store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
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

    # Worksheet names within the spreadsheet
    expenses_sheet_name: str = Field(default="Expenses")
    budgets_sheet_name: str = Field(default="Budgets")
    goals_sheet_name: str = Field(default="Goals")
    cards_sheet_name: str = Field(default="Cards")
    investments_sheet_name: str = Field(default="Investments")
    income_sheet_name: str = Field(default="Income")
    audit_sheet_name: str = Field(default="AuditLog")

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before opening a remote session."
            )
        return v

    def sheet_name_for(self, collection: str) -> str:
        """Worksheet name for a ledger collection value (e.g. 'expenses')."""
        return getattr(self, f"{collection}_sheet_name")


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
        description="Minimum level for the structured log"
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


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

    # Sub-settings are built lazily so a local-only session never needs
    # Google credentials.

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def insights(self) -> InsightSettings:
        return InsightSettings()

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

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a `<name>_error`
    entry for every group that failed. Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("ledger", "insights", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
