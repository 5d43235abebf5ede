"""Shared fixtures."""

from decimal import Decimal

import pytest

from expense_tracker.config import Settings, get_settings
from expense_tracker.models.transaction import Transaction
from expense_tracker.orchestrator import create_app_components
from expense_tracker.services.storage import CsvTransactionStore


CONFIG_ENV_VARS = [
    "MONTHLY_BUDGET_RUB",
    "SALARY_DAY",
    "DAILY_REPORT_TIMEZONE",
    "DATA_PATH",
    "WEB_ADDRESS",
    "CERT_PATH",
    "KEY_PATH",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_WEBHOOK_SECRET",
    "TELEGRAM_MINI_APP_URL",
    "BACKUP_TIME",
    "BACKUP_TIMEZONE",
    "BACKUP_RETENTION_DAYS",
    "BACKUP_DIR",
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Run every test without configuration from the host or a .env file."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def tx(date: str, amount, category: str = "Food", description: str = "") -> Transaction:
    return Transaction(
        date=date,
        category=category,
        description=description,
        amount=Decimal(str(amount)),
    )


@pytest.fixture
def data_path(tmp_path):
    return tmp_path / "data" / "data.csv"


@pytest.fixture
def store(data_path):
    store = CsvTransactionStore(data_path)
    store.load()
    return store


@pytest.fixture
def components(store):
    return create_app_components(settings=Settings(), store=store)
