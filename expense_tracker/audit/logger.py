"""
Audit Logger

DESIGN DECISION: Every change to the expense table is logged.
This provides:
1. Complete traceability of imports, resets and budget overrides
2. Debugging capability when the backing file cannot be written
3. A history of the runtime budget, which is not persisted anywhere

The audit logger:
- Writes structured JSON log lines through structlog
- Never raises: a logging failure must not break the user's action
- Supports correlation IDs to trace related events
"""

import logging
from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Keeps the most recent events in memory so the settings page and the
    tests can show what happened without parsing log output.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("expense_tracker.audit")
        self._history: deque[AuditEvent] = deque(maxlen=history_size)

    @property
    def recent_events(self) -> list[AuditEvent]:
        """Most recent events, newest last."""
        return list(self._history)

    def log(self, event: AuditEvent) -> None:
        """Log an audit event at its severity."""
        self._history.append(event)

        log_dict = event.to_log_dict()
        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Logging must never break the calling flow
            logging.getLogger(__name__).warning("audit logging failed: %s", e)

    def log_transaction_added(
        self,
        date: str,
        category: str,
        amount: str,
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.transaction_added(
            date=date,
            category=category,
            amount=amount,
            source=source,
            correlation_id=correlation_id,
        ))

    def log_transactions_imported(
        self,
        count: int,
        total_amount: str,
        mode: str,
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.transactions_imported(
            count=count,
            total_amount=total_amount,
            mode=mode,
            source=source,
            correlation_id=correlation_id,
        ))

    def log_data_reset(
        self,
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.data_reset(
            source=source,
            correlation_id=correlation_id,
        ))

    def log_persistence_failed(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.persistence_failed(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_validation_failed(
        self,
        issues: list[dict],
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.validation_failed(
            issues=issues,
            source=source,
            correlation_id=correlation_id,
        ))

    def log_import_rejected(
        self,
        issue_count: int,
        filename: Optional[str],
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.import_rejected(
            issue_count=issue_count,
            filename=filename,
            source=source,
            correlation_id=correlation_id,
        ))

    def log_budget_overridden(self, amount: str, source: str) -> None:
        self.log(AuditEventBuilder.budget_overridden(amount=amount, source=source))

    def log_budget_reset(self, amount: str, source: str) -> None:
        self.log(AuditEventBuilder.budget_reset(amount=amount, source=source))

    def log_saldo_computed(self, date: str, saldo: str, source: str) -> None:
        self.log(AuditEventBuilder.saldo_computed(date=date, saldo=saldo, source=source))

    def log_series_built(
        self,
        date_from: str,
        date_to: str,
        point_count: int,
        source: str,
    ) -> None:
        self.log(AuditEventBuilder.series_built(
            date_from=date_from,
            date_to=date_to,
            point_count=point_count,
            source=source,
        ))

    def log_export_generated(self, row_count: int, source: str) -> None:
        self.log(AuditEventBuilder.export_generated(row_count=row_count, source=source))

    def log_backup_written(self, path: str) -> None:
        self.log(AuditEventBuilder.backup_written(path=path))

    def log_backup_failed(self, path: str, error_message: str) -> None:
        self.log(AuditEventBuilder.backup_failed(path=path, error_message=error_message))

    def log_backup_pruned(self, removed: list[str]) -> None:
        self.log(AuditEventBuilder.backup_pruned(removed=removed))

    def log_store_loaded(self, path: str, row_count: int) -> None:
        self.log(AuditEventBuilder.store_loaded(path=path, row_count=row_count))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a CSV upload).
    Pass it through all subsequent operations.
    """
    return uuid4()
