"""
Tests for the Expense Tracker models

Test strategy:
1. Unit tests for individual components (models, validators, engines)
2. Integration tests for flows against a temporary backing file
3. No network calls in tests (use fakes)
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from expense_tracker.models.transaction import (
    BudgetCycle,
    ImportResult,
    SaldoReport,
    Series,
    SeriesPoint,
    Transaction,
    TransactionInput,
    ValidationIssue,
    MAX_AMOUNT,
    format_amount,
    parse_amount,
    parse_decimal,
    parse_iso_date,
)
from expense_tracker.audit import AuditLogger
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestParsing:
    """Tests for the date and amount helpers."""

    def test_parse_iso_date(self):
        """Test a strict YYYY-MM-DD date parses."""
        assert parse_iso_date("2025-08-09") == date(2025, 8, 9)

    @pytest.mark.parametrize("value", ["20250809", "2025-8-9", "2025-02-30", "", "09.08.2025"])
    def test_parse_iso_date_rejects_other_forms(self, value):
        """Test that anything but a real YYYY-MM-DD date is rejected."""
        with pytest.raises(ValueError):
            parse_iso_date(value)

    def test_parse_amount_from_float_keeps_short_form(self):
        """Test floats are converted through their shortest repr."""
        assert parse_amount(10.1) == Decimal("10.1")

    @pytest.mark.parametrize("value", ["abc", "NaN", "inf", True, None])
    def test_parse_amount_rejects_non_numbers(self, value):
        """Test unparseable and non-finite amounts are rejected."""
        with pytest.raises(ValueError):
            parse_amount(value)

    @pytest.mark.parametrize("value", ["1e15", "1e27", "-1e30", Decimal("1E+100")])
    def test_parse_amount_rejects_oversized(self, value):
        """Test amounts that cannot be written with two decimals are rejected."""
        with pytest.raises(ValueError, match="too large"):
            parse_amount(value)

    def test_parse_decimal_has_no_upper_bound(self):
        """Test the unbounded parser still accepts large finite numbers."""
        assert parse_decimal("1e27") == Decimal("1e27")

    def test_largest_amount_formats(self):
        """Test the largest accepted amount still renders in cents."""
        assert format_amount(MAX_AMOUNT - Decimal("0.01")) == "999999999999999.99"

    def test_format_amount_rounds_half_up(self):
        """Test amounts are rendered with two decimals, half-up."""
        assert format_amount(Decimal("10.5")) == "10.50"
        assert format_amount(Decimal("0.125")) == "0.13"
        assert format_amount(Decimal("2.675")) == "2.68"


class TestTransactionModels:
    """Tests for Transaction and TransactionInput."""

    def test_transaction_row(self):
        """Test conversion to a backing-file row."""
        transaction = Transaction(date="2024-01-01", category="Food", description="Lunch", amount="10.5")
        assert transaction.to_row() == ["2024-01-01", "Food", "Lunch", "10.50"]

    def test_transaction_is_frozen(self):
        """Test that stored transactions cannot be mutated."""
        transaction = Transaction(date="2024-01-01", category="Food", amount=1)
        with pytest.raises(PydanticValidationError):
            transaction.amount = Decimal("2")

    def test_transaction_keeps_malformed_date(self):
        """Test legacy rows with odd dates are kept but have no parsed date."""
        transaction = Transaction(date="yesterday", category="Food", amount=1)
        assert transaction.date == "yesterday"
        assert transaction.parsed_date is None

    def test_input_strips_whitespace(self):
        """Test that whitespace is stripped from user input."""
        tx_input = TransactionInput(date="2024-01-01", category="  Food  ", amount="5")
        assert tx_input.category == "Food"

    def test_input_rejects_zero_amount(self):
        """Test that amounts must be positive."""
        with pytest.raises(PydanticValidationError):
            TransactionInput(date="2024-01-01", category="Food", amount=0)

    def test_input_rejects_oversized_amount(self):
        """Test amounts at or above the bound are rejected as too large."""
        with pytest.raises(PydanticValidationError) as exc_info:
            TransactionInput(date="2024-01-01", category="Food", amount="1e27")
        assert exc_info.value.errors()[0]["type"] == "less_than"

    def test_input_rejects_empty_category(self):
        """Test that a category is required."""
        with pytest.raises(PydanticValidationError):
            TransactionInput(date="2024-01-01", category="   ", amount=5)

    def test_input_none_description(self):
        """Test a missing description becomes an empty string."""
        tx_input = TransactionInput(date="2024-01-01", category="Food", amount=5, description=None)
        assert tx_input.to_transaction().description == ""


class TestReportModels:
    """Tests for saldo and series models."""

    def _report(self, saldo: str) -> SaldoReport:
        return SaldoReport(
            date=date(2025, 8, 9),
            monthly_budget=Decimal("12000"),
            cycle=BudgetCycle(
                cycle_start=date(2025, 7, 15),
                cycle_end=date(2025, 8, 15),
                day_index=26,
                days_in_cycle=31,
            ),
            spend_today=Decimal("0"),
            spent_cumulative=Decimal("9000"),
            allowed_cumulative=Decimal("10064.52"),
            saldo=Decimal(saldo),
            remaining_days=0,
        )

    def test_on_track(self):
        """Test a non-negative saldo is on track."""
        assert self._report("0").is_on_track
        assert not self._report("-0.01").is_on_track

    def test_saldo_dict_without_tomorrow(self):
        """Test the JSON form on the last cycle day."""
        data = self._report("1064.52").to_dict()
        assert data["tomorrow_allowance"] is None
        assert data["cycle_start"] == "2025-07-15"
        assert data["saldo"] == pytest.approx(1064.52)

    def test_series_dict_keys(self):
        """Test the graph payload uses the keys the web page reads."""
        series = Series(
            date_from=date(2025, 1, 1),
            date_to=date(2025, 1, 1),
            monthly_budget=Decimal("3100"),
            points=[SeriesPoint(
                date=date(2025, 1, 1),
                spend=Decimal("10"),
                cumulative=Decimal("10"),
                budget_cum=Decimal("100"),
                saldo=Decimal("90"),
            )],
        )
        data = series.to_dict()
        assert set(data) == {"from", "to", "monthlyBudget", "points"}
        assert data["points"][0] == {
            "date": "2025-01-01",
            "spend": 10.0,
            "cumulative": 10.0,
            "budget_cum": 100.0,
            "saldo": 90.0,
        }


class TestValidationModels:
    """Tests for validation result models."""

    def test_issue_with_line(self):
        """Test line numbers are shown in the message."""
        issue = ValidationIssue(field="amount", message="Amount must be positive", line=3)
        assert str(issue) == "Line 3: Amount must be positive"

    def test_import_result_summary(self):
        """Test total and date range of an import."""
        result = ImportResult(transactions=[
            Transaction(date="2024-02-01", category="Food", amount="1.25"),
            Transaction(date="2024-01-01", category="Bus", amount="2"),
        ])
        assert result.is_valid
        assert result.total_amount == Decimal("3.25")
        assert result.date_range == ("2024-02-01", "2024-01-01")

    def test_import_result_with_issues_is_invalid(self):
        """Test a result with issues is not valid."""
        result = ImportResult(issues=[ValidationIssue(field="row", message="x", line=2)])
        assert not result.is_valid
        assert result.date_range is None


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test creating an audit event."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.TRANSACTION_ADDED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_builder_transaction_added(self):
        """Test AuditEventBuilder for transaction added."""
        correlation_id = uuid4()
        event = AuditEventBuilder.transaction_added(
            date="2024-01-01",
            category="Food",
            amount="10.50",
            source="bot",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.TRANSACTION_ADDED
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True
        assert event.details["amount"] == "10.50"

    def test_audit_event_builder_persistence_failed(self):
        """Test persistence failures are errors."""
        event = AuditEventBuilder.persistence_failed(
            operation="append",
            error_message="disk full",
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "disk full"

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEventBuilder.budget_overridden(amount="15000.00", source="bot")
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "budget_overridden"
        assert log_dict["source"] == "bot"
        assert isinstance(log_dict["event_id"], str)

    def test_audit_logger_keeps_bounded_history(self):
        """Test only the most recent events are kept."""
        audit_logger = AuditLogger(history_size=3)
        for amount in ["1", "2", "3", "4", "5"]:
            audit_logger.log_budget_overridden(amount=amount, source="bot")
        assert [event.details["amount"] for event in audit_logger.recent_events] == ["3", "4", "5"]
