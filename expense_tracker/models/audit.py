"""
Audit Models for the Expense Tracker

Every change to the expense table and every budget change is logged.
This provides:
1. Traceability of who changed the data, and from which surface
2. Debugging information when a write to the backing file fails
3. A record of runtime budget overrides, which are otherwise lost on restart

DESIGN DECISION: Audit events are emitted as structured log lines only.
The backing CSV stays a pure expense table that users can edit by hand.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Table changes
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTIONS_IMPORTED = "transactions_imported"
    DATA_RESET = "data_reset"
    PERSISTENCE_FAILED = "persistence_failed"

    # Input rejected before reaching the store
    VALIDATION_FAILED = "validation_failed"
    IMPORT_REJECTED = "import_rejected"

    # Budget
    BUDGET_OVERRIDDEN = "budget_overridden"
    BUDGET_RESET = "budget_reset"

    # Reports
    SALDO_COMPUTED = "saldo_computed"
    SERIES_BUILT = "series_built"
    EXPORT_GENERATED = "export_generated"

    # Backups
    BACKUP_WRITTEN = "backup_written"
    BACKUP_FAILED = "backup_failed"
    BACKUP_PRUNED = "backup_pruned"

    # System events
    STORE_LOADED = "store_loaded"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Where the action came from: "bot", "web", "form", "backup", "system"
    source: Optional[str] = Field(
        default=None,
        description="Surface that triggered the event"
    )

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one CSV upload)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "source": self.source,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added("2024-01-01", "Food", "10.50", "bot", cid)
        event = AuditEventBuilder.budget_overridden("15000.00", "bot")
    """

    @staticmethod
    def transaction_added(
        date: str,
        category: str,
        amount: str,
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            source=source,
            correlation_id=correlation_id,
            description=f"Expense added: {category} {amount} on {date}",
            details={
                "date": date,
                "category": category,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def transactions_imported(
        count: int,
        total_amount: str,
        mode: str,
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_IMPORTED,
            source=source,
            correlation_id=correlation_id,
            description=f"Imported {count} transactions ({mode})",
            details={
                "count": count,
                "total_amount": total_amount,
                "mode": mode,
            },
            is_user_action=True,
        )

    @staticmethod
    def data_reset(
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_RESET,
            severity=AuditSeverity.WARNING,
            source=source,
            correlation_id=correlation_id,
            description="All transactions removed (empty upload)",
            is_user_action=True,
        )

    @staticmethod
    def persistence_failed(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.ERROR,
            source="store",
            correlation_id=correlation_id,
            description=f"Backing file rewrite failed during {operation}",
            details={
                "operation": operation,
            },
            error_message=error_message,
        )

    @staticmethod
    def validation_failed(
        issues: list[dict],
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            source=source,
            correlation_id=correlation_id,
            description=f"Input rejected with {len(issues)} issues",
            details={
                "issues": issues,
            },
            is_user_action=True,
        )

    @staticmethod
    def import_rejected(
        issue_count: int,
        filename: Optional[str],
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_REJECTED,
            severity=AuditSeverity.WARNING,
            source=source,
            correlation_id=correlation_id,
            description=f"CSV import rejected with {issue_count} issues",
            details={
                "issue_count": issue_count,
                "filename": filename,
            },
            is_user_action=True,
        )

    @staticmethod
    def budget_overridden(
        amount: str,
        source: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_OVERRIDDEN,
            source=source,
            description=f"Monthly budget overridden to {amount} until restart",
            details={
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def budget_reset(
        amount: str,
        source: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_RESET,
            source=source,
            description=f"Monthly budget reset to configured {amount}",
            details={
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def saldo_computed(
        date: str,
        saldo: str,
        source: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SALDO_COMPUTED,
            severity=AuditSeverity.DEBUG,
            source=source,
            description=f"Saldo for {date}: {saldo}",
            details={
                "date": date,
                "saldo": saldo,
            },
        )

    @staticmethod
    def series_built(
        date_from: str,
        date_to: str,
        point_count: int,
        source: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SERIES_BUILT,
            severity=AuditSeverity.DEBUG,
            source=source,
            description=f"Graph series {date_from}..{date_to} ({point_count} points)",
            details={
                "from": date_from,
                "to": date_to,
                "point_count": point_count,
            },
        )

    @staticmethod
    def export_generated(
        row_count: int,
        source: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_GENERATED,
            severity=AuditSeverity.DEBUG,
            source=source,
            description=f"CSV export with {row_count} rows",
            details={
                "row_count": row_count,
            },
        )

    @staticmethod
    def backup_written(
        path: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_WRITTEN,
            source="backup",
            description=f"Backup written: {path}",
            details={
                "path": path,
            },
        )

    @staticmethod
    def backup_failed(
        path: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_FAILED,
            severity=AuditSeverity.ERROR,
            source="backup",
            description=f"Backup failed: {path}",
            details={
                "path": path,
            },
            error_message=error_message,
        )

    @staticmethod
    def backup_pruned(
        removed: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_PRUNED,
            source="backup",
            description=f"Removed {len(removed)} old backups",
            details={
                "removed": removed,
            },
        )

    @staticmethod
    def store_loaded(
        path: str,
        row_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_LOADED,
            source="system",
            description=f"Loaded {row_count} transactions from {path}",
            details={
                "path": path,
                "row_count": row_count,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            source="system",
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
