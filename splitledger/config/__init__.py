"""Configuration package."""

from splitledger.config.settings import (
    AuditSettings,
    DisplaySettings,
    LedgerSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AuditSettings",
    "DisplaySettings",
    "LedgerSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
