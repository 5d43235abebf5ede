"""
Configuration Management for the Expense Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Budget-related values never make startup fail: a malformed value falls
back to its documented default, exactly like a missing one. Only the
backing file itself (see the storage package) can stop the process.
"""

import warnings
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from expense_tracker.models.transaction import MAX_AMOUNT


DEFAULT_MONTHLY_BUDGET = Decimal("12000")
DEFAULT_SALARY_DAY = 15
DEFAULT_DATA_DIR = Path("/app/data")
DEFAULT_CERT_PATH = Path("/app/certs/fullchain.pem")
DEFAULT_KEY_PATH = Path("/app/certs/privkey.pem")


class StorageSettings(BaseSettings):
    """Backing file configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    data_path: str = Field(
        default="/app/data/data.csv",
        description="Path to the CSV backing file"
    )

    @property
    def resolved_data_path(self) -> Path:
        """Relative paths are placed inside the default data directory."""
        path = Path(self.data_path)
        if not path.is_absolute():
            path = DEFAULT_DATA_DIR / path
        return path


class BudgetConfig(BaseSettings):
    """
    Budget and cycle configuration.

    The runtime override (see `expense_tracker.config.budget`) is layered
    on top of `monthly_budget_rub`.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    monthly_budget_rub: Decimal = Field(
        default=DEFAULT_MONTHLY_BUDGET,
        description="Default monthly budget"
    )
    salary_day: int = Field(
        default=DEFAULT_SALARY_DAY,
        description="Day of month (1-28) on which a budget cycle starts"
    )
    daily_report_timezone: str = Field(
        default="UTC",
        description="IANA timezone used to decide what 'today' is"
    )

    @field_validator("monthly_budget_rub", mode="before")
    @classmethod
    def validate_monthly_budget(cls, v):
        """Fall back to the default for unparseable, non-positive or oversized budgets."""
        try:
            value = Decimal(str(v).strip())
        except (InvalidOperation, ValueError):
            return DEFAULT_MONTHLY_BUDGET
        if not value.is_finite() or value <= 0 or value >= MAX_AMOUNT:
            return DEFAULT_MONTHLY_BUDGET
        return value

    @field_validator("salary_day", mode="before")
    @classmethod
    def validate_salary_day(cls, v):
        """Cycle days 29-31 are rejected to avoid month-length ambiguity."""
        try:
            value = int(str(v).strip())
        except ValueError:
            return DEFAULT_SALARY_DAY
        if not 1 <= value <= 28:
            return DEFAULT_SALARY_DAY
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        """Configured timezone, or UTC if the name is unknown."""
        try:
            return ZoneInfo(self.daily_report_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            warnings.warn(
                f"Invalid DAILY_REPORT_TIMEZONE '{self.daily_report_timezone}', "
                "falling back to UTC"
            )
            return ZoneInfo("UTC")


class WebSettings(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    web_address: str = Field(
        default="0.0.0.0:8088",
        description="host:port the HTTP API listens on"
    )
    cert_path: Optional[str] = Field(
        default=None,
        description="TLS certificate (enables HTTPS together with key_path)"
    )
    key_path: Optional[str] = Field(
        default=None,
        description="TLS private key"
    )

    @property
    def host(self) -> str:
        host, _, _ = self.web_address.rpartition(":")
        return host or "0.0.0.0"

    @property
    def port(self) -> int:
        _, _, port = self.web_address.rpartition(":")
        return int(port) if port.isdigit() else 8088

    @property
    def tls_enabled(self) -> bool:
        return bool(self.cert_path and self.key_path)

    def resolve_tls_paths(self) -> Optional[tuple[Path, Path]]:
        """
        Certificate and key to serve HTTPS with, or None for plain HTTP.

        Without CERT_PATH/KEY_PATH the certificates mounted at /app/certs
        are used when both exist.

        Raises:
            FileNotFoundError: A configured file does not exist
        """
        if not self.cert_path and not self.key_path:
            if DEFAULT_CERT_PATH.is_file() and DEFAULT_KEY_PATH.is_file():
                return DEFAULT_CERT_PATH, DEFAULT_KEY_PATH
            return None

        if not self.tls_enabled:
            return None

        cert, key = Path(self.cert_path), Path(self.key_path)
        if not cert.is_file():
            raise FileNotFoundError(f"certificate file not found: {cert}")
        if not key.is_file():
            raise FileNotFoundError(f"private key file not found: {key}")
        return cert, key


class TelegramSettings(BaseSettings):
    """Chat bot configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TELEGRAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    bot_token: Optional[str] = Field(
        default=None,
        description="Telegram bot token"
    )
    webhook_secret: Optional[str] = Field(
        default=None,
        description="Expected X-Telegram-Bot-Api-Secret-Token header value"
    )
    mini_app_url: Optional[str] = Field(
        default=None,
        description="URL of the expense form opened from /start"
    )


class BackupSettings(BaseSettings):
    """Daily backup configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BACKUP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    time: str = Field(
        default="03:00",
        description="Local time of the daily backup (HH:MM)"
    )
    timezone: Optional[str] = Field(
        default=None,
        description="Timezone for the backup schedule (defaults to the report timezone)"
    )
    retention_days: int = Field(
        default=14,
        ge=0,
        description="Delete dated backups older than this many days (0 keeps all)"
    )
    dir: Optional[str] = Field(
        default=None,
        description="Backup directory (defaults to 'backups' next to the data file)"
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
    currency: str = Field(
        default="RUB",
        description="Currency label shown next to amounts"
    )
    max_upload_size_mb: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum CSV upload size in MB"
    )

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

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def budget(self) -> BudgetConfig:
        return BudgetConfig()

    @property
    def web(self) -> WebSettings:
        return WebSettings()

    @property
    def telegram(self) -> TelegramSettings:
        return TelegramSettings()

    @property
    def backup(self) -> BackupSettings:
        return BackupSettings()

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

    Returns a dict of {setting_name: is_valid}, plus `<name>_error`
    entries describing failures. Used by the settings page.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "budget", "web", "telegram", "backup", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    if results.get("telegram") and not settings.telegram.bot_token:
        results["telegram"] = False
        results["telegram_error"] = "TELEGRAM_BOT_TOKEN is not set"

    return results
