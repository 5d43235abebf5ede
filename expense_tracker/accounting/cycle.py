"""
Budget Cycle Calculation

A budget cycle runs from the salary day of one month up to, but not
including, the salary day of the next month. With a salary day of 15:

    2025-08-09 -> cycle 2025-07-15 .. 2025-08-15 (31 days, day 26)
    2025-08-15 -> cycle 2025-08-15 .. 2025-09-15 (31 days, day 1)

Salary days are limited to 1-28 so every month has one.
"""

from datetime import date
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from expense_tracker.models.transaction import BudgetCycle


MIN_CYCLE_DAY = 1
MAX_CYCLE_DAY = 28
DEFAULT_CYCLE_DAY = 15


def normalize_cycle_day(value: Optional[Union[int, str]]) -> int:
    """Return `value` as a cycle day, or the default if it is missing or out of range."""
    if value is None or isinstance(value, bool):
        return DEFAULT_CYCLE_DAY
    try:
        day = int(str(value).strip())
    except ValueError:
        return DEFAULT_CYCLE_DAY
    if not MIN_CYCLE_DAY <= day <= MAX_CYCLE_DAY:
        return DEFAULT_CYCLE_DAY
    return day


def cycle_bounds(reference_date: date, cycle_day: int) -> tuple[date, date]:
    """
    Get the (start, end) of the cycle containing `reference_date`.

    `end` is exclusive: it is exactly one calendar month after `start`.
    """
    cycle_day = normalize_cycle_day(cycle_day)

    if reference_date.day >= cycle_day:
        cycle_start = reference_date.replace(day=cycle_day)
    else:
        previous_month = reference_date - relativedelta(months=1)
        cycle_start = previous_month.replace(day=cycle_day)

    cycle_end = cycle_start + relativedelta(months=1)
    return cycle_start, cycle_end


def budget_cycle(reference_date: date, cycle_day: int) -> BudgetCycle:
    """Bundle the cycle bounds with the position of `reference_date` in it."""
    cycle_start, cycle_end = cycle_bounds(reference_date, cycle_day)

    days_in_cycle = max((cycle_end - cycle_start).days, 1)
    day_index = max((reference_date - cycle_start).days + 1, 1)

    return BudgetCycle(
        cycle_start=cycle_start,
        cycle_end=cycle_end,
        day_index=day_index,
        days_in_cycle=days_in_cycle,
    )
