"""
Configuration Management for SplitLedger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: Every tolerance the engine applies lives here.
Split-sum slack is a business rule, not a floating-point workaround,
so it must be visible and adjustable rather than hard-coded.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Split, validation and balance settings."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    default_currency: str = Field(
        default="USD",
        description="Currency used when none is given"
    )

    # Tolerances (in minor units, e.g. cents)
    interactive_tolerance_minor_units: int = Field(
        default=1,
        ge=0,
        description="Allowed split-sum mismatch while a form is being edited"
    )
    commit_tolerance_minor_units: int = Field(
        default=0,
        ge=0,
        description="Allowed split-sum mismatch at persistence (equal/unequal)"
    )
    percentage_commit_tolerance_minor_units: int = Field(
        default=1,
        ge=0,
        description="Allowed split-sum mismatch at persistence (percentage)"
    )
    percentage_tolerance: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        description="Allowed deviation of the percentage sum from 100"
    )

    min_participants: int = Field(
        default=2,
        ge=1,
        description="Payer plus at least one other party"
    )
    distribute_percentage_remainder: bool = Field(
        default=True,
        description=(
            "Hand out rounding residue in input order when percentages "
            "sum to exactly 100"
        )
    )

    @field_validator('default_currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Currency codes are three ASCII letters."""
        v = v.strip().upper()
        if len(v) != 3 or not v.isalpha():
            raise ValueError(f"Invalid currency code: {v!r}")
        return v


class DisplaySettings(BaseSettings):
    """How balances are rendered for the presentation layer."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_DISPLAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    settled_up_text: str = Field(
        default="All settled up",
        description="Shown instead of a zero balance"
    )
    currency_symbols: dict[str, str] = Field(
        default_factory=dict,
        description="Overrides for the built-in currency symbol table"
    )


class AuditSettings(BaseSettings):
    """Audit trail configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_AUDIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    enabled: bool = Field(
        default=True,
        description="Emit audit events from the ledger flows"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for local audit logs"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in allowed:
            raise ValueError(f"Unsupported log level: {v}. Allowed: {allowed}")
        return v


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
    def display(self) -> DisplaySettings:
        return DisplaySettings()

    @property
    def audit(self) -> AuditSettings:
        return AuditSettings()


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

    Returns a dict of {setting_name: is_valid}, with a
    "<setting_name>_error" entry for each failure.
    """
    results = {}

    settings = get_settings()

    for name in ("ledger", "display", "audit"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
