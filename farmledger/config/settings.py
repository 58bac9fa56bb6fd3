"""
Configuration Management for Finance Farm Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: Policy constants (streak curve, alert tiers, insight
thresholds) are configuration, not code. The defaults below are the values
the app ships with; deployments can tune them without touching the engine.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Ledger core policy constants."""

    model_config = SettingsConfigDict(
        env_prefix="FARMLEDGER_LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Streak curve: base + step * streak, capped
    streak_base_multiplier: Decimal = Field(
        default=Decimal("1.0"),
        ge=1,
        description="Multiplier for a streak of zero"
    )
    streak_step: Decimal = Field(
        default=Decimal("0.1"),
        ge=0,
        description="Multiplier added per consecutive income log"
    )
    streak_max_multiplier: Decimal = Field(
        default=Decimal("2.0"),
        ge=1,
        description="Upper bound for the fertilizer multiplier"
    )

    # Budget alert tiers
    budget_danger_percentage: Decimal = Field(
        default=Decimal("90"),
        gt=0,
        le=100,
        description="Percentage of the monthly limit that raises a danger alert"
    )

    # Insight heuristics
    spending_trend_threshold: Decimal = Field(
        default=Decimal("10"),
        ge=0,
        description="Spend swing (%) vs the prior window worth reporting"
    )
    income_streak_highlight: int = Field(
        default=7,
        ge=1,
        description="Streak length treated as a positive signal"
    )
    goal_risk_window_days: int = Field(
        default=7,
        ge=0,
        description="Days before a deadline when a goal is checked for risk"
    )
    goal_risk_progress: Decimal = Field(
        default=Decimal("90"),
        ge=0,
        le=100,
        description="Progress (%) below which a goal near its deadline is at risk"
    )
    insight_lookback_days: int = Field(
        default=30,
        ge=1,
        description="Length of the comparison windows used by insights"
    )

    # Expense tags
    max_tags: int = Field(default=10, ge=0)
    max_tag_length: int = Field(default=30, ge=1)

    @model_validator(mode='after')
    def validate_streak_curve(self) -> 'LedgerSettings':
        if self.streak_max_multiplier < self.streak_base_multiplier:
            raise ValueError("streak_max_multiplier cannot be below streak_base_multiplier")
        return self


class ParentalSettings(BaseSettings):
    """Parental control policy configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FARMLEDGER_PARENTAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    approval_expiry_hours: Optional[int] = Field(
        default=None,
        ge=1,
        description="Default lifetime of an approval request; None means no expiry"
    )
    auto_reject_message: str = Field(
        default="Auto-rejected due to expiration",
        description="Parent response recorded on requests rejected by the expiry sweep"
    )


class StorageSettings(BaseSettings):
    """Persistence backend configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FARMLEDGER_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: Literal["memory", "sqlite"] = Field(
        default="memory",
        description="Which document collection backend to use"
    )
    sqlite_path: str = Field(
        default="farmledger.db",
        description="Database file for the sqlite backend"
    )
    sqlite_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How long sqlite waits on a locked database before failing"
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
        description="Minimum level for structured logs"
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

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def parental(self) -> ParentalSettings:
        return ParentalSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

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
    Validate all settings sections.

    Returns a dict of {section: is_valid}, plus `<section>_error`
    entries describing any failure. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for section in ("ledger", "parental", "storage", "app"):
        try:
            getattr(settings, section)
            results[section] = True
        except Exception as e:
            results[section] = False
            results[f"{section}_error"] = str(e)

    return results
