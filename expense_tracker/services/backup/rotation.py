"""
Daily Backup Rotation

Copies the backing CSV file into a backup directory once a day:

    <backup_dir>/YYYY-MM-DD.csv   dated copy (date in the backup timezone)
    <backup_dir>/latest.csv       copy of the most recent backup

Dated copies older than the retention window are deleted. A retention of
0 keeps everything.

IMPORTANT: Backup failures are logged, never raised out of the loop.
The expense table keeps working when the backup disk does not.
"""

import asyncio
import os
import re
import shutil
from datetime import date, datetime, time, timedelta, tzinfo
from pathlib import Path
from typing import Callable, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from expense_tracker.audit import AuditLogger
from expense_tracker.config import Settings


logger = structlog.get_logger(__name__)

DEFAULT_BACKUP_TIME = (3, 0)
LATEST_NAME = "latest.csv"
DATED_BACKUP_PATTERN = re.compile(r"^(\d{4}-\d{2}-\d{2})\.csv$")


def parse_hhmm(value: Optional[str]) -> tuple[int, int]:
    """Parse "HH:MM" (24h). An empty value means the default 03:00."""
    if not value:
        return DEFAULT_BACKUP_TIME
    parsed = datetime.strptime(value.strip(), "%H:%M")
    return parsed.hour, parsed.minute


def next_run_at(now: datetime, hour: int, minute: int) -> datetime:
    """The next moment strictly after `now` at hour:minute, in now's timezone."""
    candidate = datetime.combine(now.date(), time(hour, minute), tzinfo=now.tzinfo)
    if candidate <= now:
        candidate = datetime.combine(
            now.date() + timedelta(days=1),
            time(hour, minute),
            tzinfo=now.tzinfo,
        )
    return candidate


class BackupService:
    """Writes dated copies of the backing file and prunes old ones."""

    def __init__(
        self,
        source_path: Union[str, Path],
        backup_dir: Union[str, Path],
        time_of_day: Optional[str] = None,
        timezone: Optional[tzinfo] = None,
        retention_days: int = 14,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.source_path = Path(source_path)
        self.backup_dir = Path(backup_dir)
        self.timezone = timezone or ZoneInfo("UTC")
        self.retention_days = retention_days
        self._audit_logger = audit_logger or AuditLogger()
        self._clock = clock or (lambda: datetime.now(self.timezone))

        try:
            self.hour, self.minute = parse_hhmm(time_of_day)
        except ValueError:
            logger.warning("backup_time_invalid", value=time_of_day, fallback="03:00")
            self.hour, self.minute = DEFAULT_BACKUP_TIME

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        audit_logger: Optional[AuditLogger] = None,
    ) -> "BackupService":
        """Build the service from BACKUP_* settings."""
        source_path = settings.storage.resolved_data_path
        backup = settings.backup

        backup_dir = Path(backup.dir) if backup.dir else source_path.parent / "backups"

        timezone = settings.budget.tzinfo
        if backup.timezone:
            try:
                timezone = ZoneInfo(backup.timezone)
            except (ZoneInfoNotFoundError, ValueError):
                logger.warning("backup_timezone_invalid", value=backup.timezone)

        return cls(
            source_path=source_path,
            backup_dir=backup_dir,
            time_of_day=backup.time,
            timezone=timezone,
            retention_days=backup.retention_days,
            audit_logger=audit_logger,
        )

    def now(self) -> datetime:
        return self._clock()

    def run_once(self, now: Optional[datetime] = None) -> Optional[Path]:
        """
        Write today's backup, refresh latest.csv and prune.

        Returns:
            Path of the dated backup, or None if it could not be written
        """
        now = now or self.now()
        target = self.backup_dir / f"{now.date().isoformat()}.csv"
        tmp_path = target.with_name(target.name + ".tmp")

        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(self.source_path, tmp_path)
            with open(tmp_path, "rb") as f:
                os.fsync(f.fileno())
            os.replace(tmp_path, target)
        except OSError as e:
            self._audit_logger.log_backup_failed(path=str(target), error_message=str(e))
            return None

        self._audit_logger.log_backup_written(path=str(target))

        try:
            shutil.copyfile(target, self.backup_dir / LATEST_NAME)
        except OSError as e:
            logger.warning("backup_latest_failed", path=str(target), error=str(e))

        if self.retention_days > 0:
            self.enforce_retention(now.date())

        return target

    def enforce_retention(self, today: date) -> list[str]:
        """Delete dated backups older than the retention window."""
        cutoff = today - timedelta(days=self.retention_days)
        removed = []

        try:
            entries = sorted(self.backup_dir.iterdir())
        except OSError as e:
            logger.warning("backup_retention_list_failed", error=str(e))
            return removed

        for entry in entries:
            match = DATED_BACKUP_PATTERN.match(entry.name)
            if not match or not entry.is_file():
                continue
            try:
                backup_date = date.fromisoformat(match.group(1))
            except ValueError:
                continue
            if backup_date < cutoff:
                try:
                    entry.unlink()
                    removed.append(entry.name)
                except OSError as e:
                    logger.warning("backup_remove_failed", path=str(entry), error=str(e))

        if removed:
            self._audit_logger.log_backup_pruned(removed=removed)
        return removed

    async def run_daily(self, stop_event: asyncio.Event) -> None:
        """
        Back up immediately, then every day at the configured time.

        Returns as soon as `stop_event` is set.
        """
        await asyncio.to_thread(self.run_once)

        while not stop_event.is_set():
            now = self.now()
            next_run = next_run_at(now, self.hour, self.minute)
            delay = (next_run - now).total_seconds()
            logger.info("backup_scheduled", next_run=next_run.isoformat())

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                await asyncio.to_thread(self.run_once)

        logger.info("backup_stopped")
