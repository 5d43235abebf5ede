"""Services package."""

from expense_tracker.services.storage import (
    CsvTransactionStore,
    FormatError,
    InMemoryTransactionStore,
    PersistenceError,
    StorageError,
    TransactionStoreInterface,
)
from expense_tracker.services.backup import BackupService

__all__ = [
    # Storage services
    "CsvTransactionStore",
    "FormatError",
    "InMemoryTransactionStore",
    "PersistenceError",
    "StorageError",
    "TransactionStoreInterface",
    # Backup services
    "BackupService",
]
