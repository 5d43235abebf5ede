"""
Data Models Package

This package contains all Pydantic models used in the Expense Tracker.
All data flowing through the system must conform to these schemas.
"""

from expense_tracker.models.transaction import (
    BudgetCycle,
    ImportResult,
    SaldoReport,
    Series,
    SeriesPoint,
    Transaction,
    TransactionInput,
    ValidationIssue,
    format_amount,
    parse_amount,
    parse_iso_date,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "BudgetCycle",
    "ImportResult",
    "SaldoReport",
    "Series",
    "SeriesPoint",
    "Transaction",
    "TransactionInput",
    "ValidationIssue",
    "format_amount",
    "parse_amount",
    "parse_iso_date",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
