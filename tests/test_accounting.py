"""Tests for cycle, saldo and series calculations."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from expense_tracker.accounting import (
    budget_cycle,
    build_graph_data,
    build_series,
    compute_saldo,
    cycle_bounds,
    normalize_cycle_day,
    resolve_window,
    spend_between,
    spend_on,
)
from expense_tracker.models.transaction import format_amount

from tests.conftest import tx


BUDGET = Decimal("12000")


class TestCycle:
    """Tests for salary cycle boundaries."""

    def test_reference_before_salary_day(self):
        """Test the worked example: day 26 of a 31-day cycle."""
        cycle = budget_cycle(date(2025, 8, 9), 15)
        assert cycle.cycle_start == date(2025, 7, 15)
        assert cycle.cycle_end == date(2025, 8, 15)
        assert cycle.days_in_cycle == 31
        assert cycle.day_index == 26

    def test_reference_on_salary_day_starts_new_cycle(self):
        """Test the salary day itself is day 1 of the next cycle."""
        cycle = budget_cycle(date(2025, 8, 15), 15)
        assert cycle.cycle_start == date(2025, 8, 15)
        assert cycle.cycle_end == date(2025, 9, 15)
        assert cycle.day_index == 1

    def test_cycle_across_year_boundary(self):
        """Test January dates before the salary day fall in December's cycle."""
        assert cycle_bounds(date(2025, 1, 10), 15) == (date(2024, 12, 15), date(2025, 1, 15))

    def test_february_cycle_length(self):
        """Test a cycle starting in February has February's length."""
        assert budget_cycle(date(2025, 2, 20), 15).days_in_cycle == 28
        assert budget_cycle(date(2024, 2, 20), 15).days_in_cycle == 29

    def test_bounds_constant_within_cycle(self):
        """Test every day of a cycle maps to the same bounds."""
        start, end = cycle_bounds(date(2025, 3, 1), 10)
        day = start
        while day < end:
            assert cycle_bounds(day, 10) == (start, end)
            day += timedelta(days=1)

    def test_first_of_month_cycle(self):
        """Test a salary day of 1 gives calendar months."""
        assert cycle_bounds(date(2025, 3, 31), 1) == (date(2025, 3, 1), date(2025, 4, 1))

    @pytest.mark.parametrize("value,expected", [
        (None, 15), ("", 15), ("abc", 15), (0, 15), (29, 15), ("28", 28), (1, 1),
    ])
    def test_normalize_cycle_day(self, value, expected):
        """Test invalid cycle days fall back to 15."""
        assert normalize_cycle_day(value) == expected


class TestAllowance:
    """Tests for the saldo computation."""

    def test_worked_example(self):
        """Test budget 12000 on day 26 of 31 with 9000 spent."""
        transactions = [tx("2025-07-20", 5000), tx("2025-08-01", 4000)]
        report = compute_saldo(transactions, date(2025, 8, 9), 15, BUDGET)

        assert format_amount(report.allowed_cumulative) == "10064.52"
        assert report.spent_cumulative == Decimal("9000")
        assert format_amount(report.saldo) == "1064.52"
        assert report.remaining_days == 5
        assert report.tomorrow_allowance == Decimal("600")
        assert report.is_on_track

    def test_spend_outside_cycle_is_ignored(self):
        """Test expenses before the cycle start and after the date are not summed."""
        transactions = [
            tx("2025-07-14", 100),
            tx("2025-07-15", 10),
            tx("2025-08-09", 20),
            tx("2025-08-10", 1000),
        ]
        report = compute_saldo(transactions, date(2025, 8, 9), 15, BUDGET)
        assert report.spent_cumulative == Decimal("30")
        assert report.spend_today == Decimal("20")

    def test_last_day_of_cycle(self):
        """Test the whole budget is allowed on the last day and no tomorrow is given."""
        report = compute_saldo([], date(2025, 8, 14), 15, BUDGET)
        assert report.allowed_cumulative == BUDGET
        assert report.remaining_days == 0
        assert report.tomorrow_allowance is None

    def test_overspent(self):
        """Test a negative saldo and a zero tomorrow allowance."""
        report = compute_saldo([tx("2025-08-09", 13000)], date(2025, 8, 9), 15, BUDGET)
        assert report.saldo < 0
        assert not report.is_on_track
        assert report.tomorrow_allowance == Decimal("0")

    def test_malformed_dates_are_skipped(self):
        """Test rows with unparseable dates do not break the sum."""
        transactions = [tx("garbage", 500), tx("2025-08-01", 10)]
        assert spend_between(transactions, date(2025, 7, 15), date(2025, 8, 9)) == Decimal("10")

    def test_spend_on_exact_match(self):
        """Test the daily total only matches the exact date string."""
        assert spend_on([tx("2025-08-09", 1), tx("2025-08-09", 2)], date(2025, 8, 9)) == Decimal("3")


class TestSeries:
    """Tests for the graph series."""

    def test_cumulative_resets_on_first(self):
        """Test cumulative spend restarts on the 1st even mid-window."""
        transactions = [tx("2025-01-30", 10), tx("2025-01-31", 20), tx("2025-02-01", 5)]
        points = build_series(transactions, date(2025, 1, 30), date(2025, 2, 2), Decimal("3100"))

        assert [p.cumulative for p in points] == [10, 30, 5, 5]
        assert [p.spend for p in points] == [10, 20, 5, 0]

    def test_budget_line_is_per_calendar_month(self):
        """Test the budget line uses day of month over days in month."""
        points = build_series([], date(2025, 1, 31), date(2025, 2, 1), Decimal("3100"))
        assert points[0].budget_cum == Decimal("3100")
        assert format_amount(points[1].budget_cum) == "110.71"
        assert points[1].saldo == points[1].budget_cum

    def test_window_with_both_bounds(self):
        """Test explicit bounds are used as given."""
        assert resolve_window([], "2025-01-01", "2025-01-31", date(2025, 6, 1)) == (
            date(2025, 1, 1), date(2025, 1, 31),
        )

    def test_reversed_window_is_swapped(self):
        """Test from after to is swapped."""
        assert resolve_window([], "2025-02-01", "2025-01-01", date(2025, 6, 1)) == (
            date(2025, 1, 1), date(2025, 2, 1),
        )

    def test_no_data_defaults_to_last_30_days(self):
        """Test an empty table shows the last 30 days."""
        today = date(2025, 6, 1)
        assert resolve_window([], None, None, today) == (today - timedelta(days=30), today)

    def test_recent_data_defaults_to_90_days(self):
        """Test with recent data the window is 90 days back to the last expense."""
        today = date(2025, 6, 1)
        transactions = [tx("2025-01-01", 1), tx("2025-05-20", 1)]
        assert resolve_window(transactions, None, None, today) == (
            today - timedelta(days=90), date(2025, 5, 20),
        )

    def test_old_data_starts_at_first_expense(self):
        """Test when all data is older than 90 days the window covers it all."""
        today = date(2025, 6, 1)
        transactions = [tx("2024-01-05", 1), tx("2024-02-10", 1)]
        assert resolve_window(transactions, None, "bad", today) == (
            date(2024, 1, 5), date(2024, 2, 10),
        )

    def test_graph_data(self):
        """Test the complete graph payload."""
        series = build_graph_data(
            [tx("2025-03-02", 50)], "2025-03-01", "2025-03-03", Decimal("3100"), date(2025, 6, 1),
        )
        data = series.to_dict()
        assert data["from"] == "2025-03-01"
        assert data["to"] == "2025-03-03"
        assert data["monthlyBudget"] == 3100.0
        assert [p["cumulative"] for p in data["points"]] == [0.0, 50.0, 50.0]
