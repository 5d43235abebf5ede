"""Backup rotation service."""

from expense_tracker.services.backup.rotation import (
    BackupService,
    next_run_at,
    parse_hhmm,
)

__all__ = ["BackupService", "next_run_at", "parse_hhmm"]
