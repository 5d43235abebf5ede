"""Configuration package."""

from expense_tracker.config.budget import BudgetSettings
from expense_tracker.config.settings import (
    AppSettings,
    BackupSettings,
    BudgetConfig,
    Settings,
    StorageSettings,
    TelegramSettings,
    WebSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "BackupSettings",
    "BudgetConfig",
    "BudgetSettings",
    "Settings",
    "StorageSettings",
    "TelegramSettings",
    "WebSettings",
    "get_settings",
    "validate_all_settings",
]
