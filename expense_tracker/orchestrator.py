"""
Main Orchestrator for the Expense Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Expenses (input → validate → append → audit)
2. Imports (file → validate every row → replace or append → audit)
3. Reports (store → cycle → saldo / graph series)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the store without passing the validator
- A CSV import with a single bad row changes nothing
- Every change is audited

The flows are synchronous. The store is a local file guarded by a lock,
and the HTTP layer runs handlers in a worker thread.
"""

import calendar
from datetime import date, datetime, tzinfo
from decimal import Decimal
from typing import NamedTuple, Optional, Union
from uuid import UUID

from expense_tracker.accounting import build_graph_data, compute_saldo, normalize_cycle_day
from expense_tracker.audit import AuditLogger, create_correlation_id
from expense_tracker.config import BudgetSettings, Settings, get_settings
from expense_tracker.models.transaction import (
    ImportResult,
    SaldoReport,
    Series,
    Transaction,
    ValidationIssue,
    format_amount,
    parse_iso_date,
)
from expense_tracker.services.storage import (
    CsvTransactionStore,
    PersistenceError,
    TransactionStoreInterface,
    export_csv,
)
from expense_tracker.validation import TransactionValidator, ValidationError


IMPORT_REPLACE = "replace"
IMPORT_APPEND = "append"


class ExpenseFlow:
    """
    Orchestrates every change to the expense table.

    Flow for a single expense:
    1. Validate → reject with every issue found
    2. Append → persist to the backing file
    3. Audit → one structured event per change

    A PersistenceError is audited and re-raised. The in-memory table may
    already hold the new rows when it is raised.
    """

    def __init__(
        self,
        store: TransactionStoreInterface,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._validator = validator or TransactionValidator()
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def validator(self) -> TransactionValidator:
        return self._validator

    def add_expense(
        self,
        payload: dict,
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Validate and append one expense.

        Args:
            payload: Dict with date, category, description and amount
            source: Surface that submitted it (bot, api, web)

        Raises:
            ValidationError: The payload was rejected
            PersistenceError: The backing file could not be rewritten
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            transaction = self._validator.validate_payload(payload)
        except ValidationError as e:
            self._audit_logger.log_validation_failed(
                issues=[issue.model_dump() for issue in e.issues],
                source=source,
                correlation_id=correlation_id,
            )
            raise

        self._append(transaction, source, correlation_id)
        return transaction

    def _append(
        self,
        transaction: Transaction,
        source: str,
        correlation_id: UUID,
    ) -> None:
        try:
            self._store.append(transaction)
        except PersistenceError as e:
            self._audit_logger.log_persistence_failed(
                operation="append",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        self._audit_logger.log_transaction_added(
            date=transaction.date,
            category=transaction.category,
            amount=format_amount(transaction.amount),
            source=source,
            correlation_id=correlation_id,
        )

    def import_csv(
        self,
        content: Union[bytes, str],
        mode: str = IMPORT_REPLACE,
        source: str = "api",
        filename: Optional[str] = None,
    ) -> ImportResult:
        """
        Import a CSV file.

        In replace mode an empty file clears the table. In append mode a
        file without data rows, header only or fully empty, is rejected.

        Raises:
            ValidationError: With every line-numbered issue in the file
            PersistenceError: The backing file could not be rewritten
        """
        if mode not in (IMPORT_REPLACE, IMPORT_APPEND):
            raise ValueError(f"Unknown import mode: {mode}")

        correlation_id = create_correlation_id()
        result = self._validator.parse_csv_import(content)

        if result.is_empty and mode == IMPORT_REPLACE:
            self.reset(source=source, correlation_id=correlation_id)
            return result

        if mode == IMPORT_APPEND and result.is_valid and not result.transactions:
            issues = [ValidationIssue(field="file", message="CSV file is empty")]
            self._audit_logger.log_import_rejected(
                issue_count=len(issues),
                filename=filename,
                source=source,
                correlation_id=correlation_id,
            )
            raise ValidationError(issues)

        if not result.is_valid:
            self._audit_logger.log_import_rejected(
                issue_count=len(result.issues),
                filename=filename,
                source=source,
                correlation_id=correlation_id,
            )
            raise ValidationError(result.issues)

        try:
            if mode == IMPORT_REPLACE:
                self._store.replace_all(result.transactions)
            else:
                for transaction in result.transactions:
                    self._store.append(transaction)
        except PersistenceError as e:
            self._audit_logger.log_persistence_failed(
                operation=f"import ({mode})",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        self._audit_logger.log_transactions_imported(
            count=len(result.transactions),
            total_amount=format_amount(result.total_amount),
            mode=mode,
            source=source,
            correlation_id=correlation_id,
        )
        return result

    def reset(
        self,
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Remove every transaction."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            self._store.clear()
        except PersistenceError as e:
            self._audit_logger.log_persistence_failed(
                operation="reset",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise
        self._audit_logger.log_data_reset(source=source, correlation_id=correlation_id)

    def transactions(self, day: Optional[str] = None) -> list[Transaction]:
        """All transactions, or the ones dated exactly `day`."""
        if day:
            return self._store.query_by_date(day)
        return self._store.query_all()

    def export(self, source: str) -> str:
        """CSV text of every transaction, newest date first."""
        transactions = self._store.query_all()
        self._audit_logger.log_export_generated(row_count=len(transactions), source=source)
        return export_csv(transactions)


class ReportFlow:
    """
    Read-only reporting over the store.

    The budget is read from BudgetSettings on every call so runtime
    overrides take effect immediately.
    """

    def __init__(
        self,
        store: TransactionStoreInterface,
        budget: BudgetSettings,
        cycle_day: int,
        timezone: tzinfo,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._budget = budget
        self._cycle_day = normalize_cycle_day(cycle_day)
        self._timezone = timezone
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def budget(self) -> BudgetSettings:
        return self._budget

    @property
    def cycle_day(self) -> int:
        return self._cycle_day

    def today(self) -> date:
        """Current date in the report timezone."""
        return datetime.now(self._timezone).date()

    def resolve_date(self, value: Optional[str]) -> date:
        """Parse a YYYY-MM-DD argument, falling back to today."""
        if value:
            try:
                return parse_iso_date(value)
            except ValueError:
                pass
        return self.today()

    def saldo(
        self,
        reference_date: Optional[date] = None,
        source: str = "api",
    ) -> SaldoReport:
        """Saldo report for `reference_date` (default today)."""
        reference_date = reference_date or self.today()
        report = compute_saldo(
            self._store.query_all(),
            reference_date=reference_date,
            cycle_day=self._cycle_day,
            monthly_budget=self._budget.current,
        )
        self._audit_logger.log_saldo_computed(
            date=reference_date.isoformat(),
            saldo=format_amount(report.saldo),
            source=source,
        )
        return report

    def daily_report(
        self,
        reference_date: Optional[date] = None,
        source: str = "bot",
    ) -> tuple[SaldoReport, list[Transaction]]:
        """The saldo report plus the expenses recorded on that day."""
        reference_date = reference_date or self.today()
        report = self.saldo(reference_date, source=source)
        return report, self._store.query_by_date(reference_date.isoformat())

    def daily_allowance_this_month(self, today: Optional[date] = None) -> Decimal:
        """Monthly budget spread evenly over the days of the current calendar month."""
        today = today or self.today()
        days_in_month = calendar.monthrange(today.year, today.month)[1]
        return self._budget.current / days_in_month

    def graph_data(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        source: str = "api",
    ) -> Series:
        """Series for the spending graph over the requested window."""
        series = build_graph_data(
            self._store.query_all(),
            date_from=date_from,
            date_to=date_to,
            monthly_budget=self._budget.current,
            today=self.today(),
        )
        self._audit_logger.log_series_built(
            date_from=series.date_from.isoformat(),
            date_to=series.date_to.isoformat(),
            point_count=len(series.points),
            source=source,
        )
        return series


class AppComponents(NamedTuple):
    """Everything a surface (bot, API, web app) needs."""
    settings: Settings
    store: TransactionStoreInterface
    budget: BudgetSettings
    audit_logger: AuditLogger
    expense_flow: ExpenseFlow
    report_flow: ReportFlow


def create_app_components(
    settings: Optional[Settings] = None,
    store: Optional[TransactionStoreInterface] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use (default: cached environment settings)
        store: Store to use. When omitted a CSV store is created at the
               configured data path and loaded.

    Raises:
        FormatError: The backing file is malformed
        StorageError: The backing file could not be created or read
    """
    settings = settings or get_settings()
    audit_logger = AuditLogger()

    if store is None:
        store = CsvTransactionStore(settings.storage.resolved_data_path)
        store.load()
        audit_logger.log_store_loaded(
            path=str(store.path),
            row_count=len(store),
        )

    budget = BudgetSettings(settings.budget.monthly_budget_rub)

    expense_flow = ExpenseFlow(
        store=store,
        audit_logger=audit_logger,
    )
    report_flow = ReportFlow(
        store=store,
        budget=budget,
        cycle_day=settings.budget.salary_day,
        timezone=settings.budget.tzinfo,
        audit_logger=audit_logger,
    )

    return AppComponents(
        settings=settings,
        store=store,
        budget=budget,
        audit_logger=audit_logger,
        expense_flow=expense_flow,
        report_flow=report_flow,
    )
