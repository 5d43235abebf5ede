"""
Storage Services Package

Provides the abstract transaction store interface and its CSV file
implementation.
"""

from expense_tracker.services.storage.interface import (
    CSV_HEADER,
    FormatError,
    PersistenceError,
    StorageError,
    TransactionStoreInterface,
)
from expense_tracker.services.storage.csv_store import (
    CsvTransactionStore,
    InMemoryTransactionStore,
    export_csv,
    read_transactions,
    serialize_transactions,
)

__all__ = [
    # Interfaces
    "CSV_HEADER",
    "TransactionStoreInterface",
    # Exceptions
    "FormatError",
    "PersistenceError",
    "StorageError",
    # CSV implementation
    "CsvTransactionStore",
    "InMemoryTransactionStore",
    "export_csv",
    "read_transactions",
    "serialize_transactions",
]
