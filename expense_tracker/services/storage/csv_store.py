"""
CSV File Storage Implementation

DESIGN DECISION: A plain CSV file is the only persistent representation
of the expense table because:
1. Users can open and fix it in any spreadsheet or text editor
2. The same format is used for import and export
3. No database setup required

TRADEOFFS:
- Every change rewrites the whole file (fine for a handful of rows a day)
- One coarse lock: writers block readers during a rewrite
- No transactions: the in-memory table is updated before the file, so a
  failed rewrite leaves memory ahead of disk until the next good write

The file always looks exactly like `serialize_transactions(table)`.
"""

import csv
import io
import os
from decimal import InvalidOperation
from pathlib import Path
from threading import Lock
from typing import Iterable, TextIO, Union

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expense_tracker.models.transaction import Transaction, parse_amount
from expense_tracker.services.storage.interface import (
    CSV_HEADER,
    FormatError,
    PersistenceError,
    StorageError,
    TransactionStoreInterface,
)


logger = structlog.get_logger(__name__)


def serialize_transactions(transactions: Iterable[Transaction]) -> str:
    """
    Render transactions in the canonical backing-file format.

    Header first, one row per transaction, two-decimal amounts, `\\n` line
    endings and standard quoting for fields that need it.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for tx in transactions:
        writer.writerow(tx.to_row())
    return buffer.getvalue()


def export_csv(transactions: Iterable[Transaction]) -> str:
    """
    Render an export for users: newest first.

    Valid dates are zero-padded YYYY-MM-DD, so string order is date order.
    The sort is stable, keeping file order among rows of the same day.
    """
    ordered = sorted(transactions, key=lambda tx: tx.date, reverse=True)
    return serialize_transactions(ordered)


def read_transactions(source: TextIO) -> list[Transaction]:
    """
    Strictly parse a backing file.

    Raises FormatError on the first problem; the caller gets nothing.
    """
    reader = csv.reader(source)
    transactions = []
    header_seen = False

    try:
        for row in reader:
            if not row:
                continue

            if not header_seen:
                if row != CSV_HEADER:
                    raise FormatError(
                        "CSV header does not match expected format",
                        line=reader.line_num,
                    )
                header_seen = True
                continue

            if len(row) != len(CSV_HEADER):
                raise FormatError(
                    f"invalid record length on line {reader.line_num}: "
                    f"expected {len(CSV_HEADER)} fields, got {len(row)}",
                    line=reader.line_num,
                )

            try:
                amount = parse_amount(row[3])
            except ValueError:
                raise FormatError(
                    f"invalid amount on line {reader.line_num}: '{row[3]}'",
                    line=reader.line_num,
                )

            transactions.append(Transaction(
                date=row[0],
                category=row[1],
                description=row[2],
                amount=amount,
            ))
    except csv.Error as e:
        raise FormatError(
            f"malformed CSV on line {reader.line_num}: {e}",
            line=reader.line_num,
        )

    return transactions


class CsvTransactionStore(TransactionStoreInterface):
    """
    CSV file implementation of the transaction table.

    The whole table is kept in memory. Every read and write, including the
    file rewrite, happens while holding `self._lock`.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._lock = Lock()
        self._transactions: list[Transaction] = []

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> None:
        """Load the backing file, creating it with just a header if missing."""
        with self._lock:
            if not self._path.exists():
                try:
                    self._path.parent.mkdir(parents=True, exist_ok=True)
                    self._write_file(serialize_transactions([]))
                except OSError as e:
                    raise PersistenceError(
                        f"Failed to create data file {self._path}: {e}"
                    ) from e
                self._transactions = []
                logger.info("data_file_created", path=str(self._path))
                return

            try:
                with self._path.open("r", encoding="utf-8-sig", newline="") as f:
                    transactions = read_transactions(f)
            except OSError as e:
                raise StorageError(
                    f"Failed to read data file {self._path}: {e}"
                ) from e

            self._transactions = transactions
            logger.info(
                "data_file_loaded",
                path=str(self._path),
                row_count=len(transactions),
            )

    def append(self, transaction: Transaction) -> None:
        with self._lock:
            self._commit(self._transactions + [transaction], "append")

    def replace_all(self, transactions: list[Transaction]) -> None:
        with self._lock:
            self._commit(list(transactions), "replace_all")

    def query_by_date(self, date: str) -> list[Transaction]:
        with self._lock:
            return [tx for tx in self._transactions if tx.date == date]

    def query_all(self) -> list[Transaction]:
        with self._lock:
            return list(self._transactions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._transactions)

    def _commit(self, transactions: list[Transaction], operation: str) -> None:
        """
        Replace the in-memory table and rewrite the file. Caller holds the lock.

        A table that cannot be serialized is refused and memory is left
        unchanged. A failed file write leaves memory ahead of disk.
        """
        try:
            content = serialize_transactions(transactions)
        except (InvalidOperation, ValueError) as e:
            logger.error(
                "data_file_serialize_failed",
                path=str(self._path),
                operation=operation,
                error=str(e),
            )
            raise PersistenceError(
                f"Failed to serialize transactions for {self._path}: {e}"
            ) from e

        self._transactions = transactions
        try:
            self._write_file(content)
        except OSError as e:
            logger.error(
                "data_file_write_failed",
                path=str(self._path),
                operation=operation,
                error=str(e),
            )
            raise PersistenceError(
                f"Failed to write data file {self._path}: {e}"
            ) from e

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.05, max=0.5),
        reraise=True,
    )
    def _write_file(self, content: str) -> None:
        """Write to a sibling temp file, then atomically rename over the target."""
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self._path)


class InMemoryTransactionStore(TransactionStoreInterface):
    """
    Store without a backing file.

    Used by tests that do not need a backing file.
    """

    def __init__(self, transactions: Iterable[Transaction] = ()):
        self._lock = Lock()
        self._transactions = list(transactions)

    def load(self) -> None:
        pass

    def append(self, transaction: Transaction) -> None:
        with self._lock:
            self._transactions.append(transaction)

    def replace_all(self, transactions: list[Transaction]) -> None:
        with self._lock:
            self._transactions = list(transactions)

    def query_by_date(self, date: str) -> list[Transaction]:
        with self._lock:
            return [tx for tx in self._transactions if tx.date == date]

    def query_all(self) -> list[Transaction]:
        with self._lock:
            return list(self._transactions)
