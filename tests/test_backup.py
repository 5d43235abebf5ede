"""Tests for the daily backup rotation."""

import asyncio
from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from expense_tracker.config import Settings
from expense_tracker.models.audit import AuditEventType
from expense_tracker.services.backup import BackupService
from expense_tracker.services.backup.rotation import next_run_at, parse_hhmm


UTC = ZoneInfo("UTC")
CONTENT = "Date,Category,Description,Amount\n2024-01-01,Food,,1.00\n"


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "data.csv"
    path.write_text(CONTENT)
    return path


@pytest.fixture
def backup_dir(tmp_path):
    return tmp_path / "backups"


class TestSchedule:
    """Tests for the backup time of day."""

    def test_parse_hhmm(self):
        """Test HH:MM parsing and the default."""
        assert parse_hhmm("23:45") == (23, 45)
        assert parse_hhmm("") == (3, 0)
        assert parse_hhmm(None) == (3, 0)

    @pytest.mark.parametrize("value", ["25:00", "3pm", "12:60"])
    def test_parse_hhmm_invalid(self, value):
        """Test invalid times raise ValueError."""
        with pytest.raises(ValueError):
            parse_hhmm(value)

    def test_invalid_time_falls_back(self, source, backup_dir):
        """Test the service uses 03:00 for an invalid time."""
        service = BackupService(source, backup_dir, time_of_day="nope")
        assert (service.hour, service.minute) == (3, 0)

    def test_next_run_later_today(self):
        """Test a time still ahead today."""
        now = datetime(2025, 1, 1, 1, 0, tzinfo=UTC)
        assert next_run_at(now, 3, 0) == datetime(2025, 1, 1, 3, 0, tzinfo=UTC)

    def test_next_run_tomorrow(self):
        """Test a time already passed, or exactly now, is tomorrow."""
        now = datetime(2025, 12, 31, 3, 0, tzinfo=UTC)
        assert next_run_at(now, 3, 0) == datetime(2026, 1, 1, 3, 0, tzinfo=UTC)


class TestRunOnce:
    """Tests for a single backup run."""

    def test_writes_dated_copy_and_latest(self, source, backup_dir):
        """Test the dated file and latest.csv are copies of the data file."""
        service = BackupService(source, backup_dir)
        target = service.run_once(datetime(2025, 3, 10, 3, 0, tzinfo=UTC))

        assert target == backup_dir / "2025-03-10.csv"
        assert target.read_text() == CONTENT
        assert (backup_dir / "latest.csv").read_text() == CONTENT
        assert not (backup_dir / "2025-03-10.csv.tmp").exists()

    def test_missing_source_is_audited(self, tmp_path, backup_dir):
        """Test a failed copy returns None and is audited."""
        service = BackupService(tmp_path / "missing.csv", backup_dir)
        assert service.run_once(datetime(2025, 3, 10, tzinfo=UTC)) is None
        event = service._audit_logger.recent_events[-1]
        assert event.event_type == AuditEventType.BACKUP_FAILED

    def test_retention(self, source, backup_dir):
        """Test dated backups before today minus the window are deleted."""
        backup_dir.mkdir()
        for name in ["2025-02-20.csv", "2025-02-24.csv", "2025-02-25.csv", "notes.csv"]:
            (backup_dir / name).write_text("old")

        service = BackupService(source, backup_dir, retention_days=14)
        service.run_once(datetime(2025, 3, 10, tzinfo=UTC))

        remaining = sorted(path.name for path in backup_dir.iterdir())
        assert remaining == [
            "2025-02-24.csv", "2025-02-25.csv", "2025-03-10.csv", "latest.csv", "notes.csv",
        ]

    def test_retention_zero_keeps_everything(self, source, backup_dir):
        """Test a retention of 0 never deletes."""
        backup_dir.mkdir()
        (backup_dir / "2020-01-01.csv").write_text("old")
        BackupService(source, backup_dir, retention_days=0).run_once(
            datetime(2025, 3, 10, tzinfo=UTC)
        )
        assert (backup_dir / "2020-01-01.csv").exists()

    def test_enforce_retention_returns_removed(self, source, backup_dir):
        """Test the removed names are returned and audited."""
        backup_dir.mkdir()
        (backup_dir / "2025-01-01.csv").write_text("old")
        service = BackupService(source, backup_dir, retention_days=7)
        assert service.enforce_retention(date(2025, 3, 10)) == ["2025-01-01.csv"]
        assert service._audit_logger.recent_events[-1].event_type == AuditEventType.BACKUP_PRUNED


class TestRunDaily:
    """Tests for the background loop."""

    def test_backs_up_then_stops(self, source, backup_dir):
        """Test the loop backs up on start and returns once stopped."""
        service = BackupService(
            source,
            backup_dir,
            clock=lambda: datetime(2025, 3, 10, 12, 0, tzinfo=UTC),
        )

        async def run():
            stop_event = asyncio.Event()
            task = asyncio.create_task(service.run_daily(stop_event))
            await asyncio.sleep(0.1)
            stop_event.set()
            await asyncio.wait_for(task, timeout=5)

        asyncio.run(run())
        assert (backup_dir / "2025-03-10.csv").exists()


class TestFromSettings:
    """Tests for building the service from the environment."""

    def test_defaults(self, monkeypatch, tmp_path):
        """Test the backup directory defaults to backups next to the data file."""
        monkeypatch.setenv("DATA_PATH", str(tmp_path / "data" / "data.csv"))
        monkeypatch.setenv("DAILY_REPORT_TIMEZONE", "Europe/Moscow")
        service = BackupService.from_settings(Settings())
        assert service.backup_dir == tmp_path / "data" / "backups"
        assert service.timezone == ZoneInfo("Europe/Moscow")
        assert service.retention_days == 14

    def test_explicit_values(self, monkeypatch, tmp_path):
        """Test BACKUP_* values override the defaults."""
        monkeypatch.setenv("BACKUP_DIR", str(tmp_path / "elsewhere"))
        monkeypatch.setenv("BACKUP_TIME", "04:30")
        monkeypatch.setenv("BACKUP_TIMEZONE", "Asia/Tokyo")
        monkeypatch.setenv("BACKUP_RETENTION_DAYS", "0")
        service = BackupService.from_settings(Settings())
        assert service.backup_dir == tmp_path / "elsewhere"
        assert (service.hour, service.minute) == (4, 30)
        assert service.timezone == ZoneInfo("Asia/Tokyo")
        assert service.retention_days == 0
