"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the expense table.
This allows us to:
1. Keep the accounting engines independent of the file format
2. Use an in-memory store for testing
3. Swap the CSV file for something else without touching callers

The interface is intentionally tiny: load, append, replace, query.
There are no updates or deletes of single rows; users edit the CSV by
hand or upload a replacement.
"""

from abc import ABC, abstractmethod
from typing import Optional

from expense_tracker.models.transaction import Transaction


CSV_HEADER = ["Date", "Category", "Description", "Amount"]


class TransactionStoreInterface(ABC):
    """
    Abstract interface for the transaction table.

    Any implementation must serialize every read and write through a
    single lock and preserve insertion order.
    """

    @abstractmethod
    def load(self) -> None:
        """
        Load the table from its backing storage.

        Raises:
            FormatError: If the stored data is malformed. Nothing is loaded.
            PersistenceError: If the backing storage cannot be created.
        """
        pass

    @abstractmethod
    def append(self, transaction: Transaction) -> None:
        """
        Append one transaction and persist the whole table.

        Raises:
            PersistenceError: If persisting fails. The in-memory table
                already contains the new row.
        """
        pass

    @abstractmethod
    def replace_all(self, transactions: list[Transaction]) -> None:
        """
        Replace the whole table and persist it.

        Raises:
            PersistenceError: If persisting fails. The in-memory table
                already reflects the replacement.
        """
        pass

    @abstractmethod
    def query_by_date(self, date: str) -> list[Transaction]:
        """
        Get all transactions whose date string equals `date` exactly.
        """
        pass

    @abstractmethod
    def query_all(self) -> list[Transaction]:
        """
        Get a copy of the whole table in insertion order.
        """
        pass

    def clear(self) -> None:
        """Remove every transaction."""
        self.replace_all([])


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class FormatError(StorageError):
    """The backing file does not have the expected shape."""

    def __init__(self, message: str, line: Optional[int] = None):
        self.line = line
        super().__init__(message)


class PersistenceError(StorageError):
    """The backing file could not be written."""
    pass
