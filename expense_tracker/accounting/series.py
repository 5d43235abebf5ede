"""
Spending Series for the Graph

Builds one point per calendar day over a window:

    spend       expenses dated that day
    cumulative  month-to-date spend, reset on the 1st of every month
    budget_cum  monthly budget * day of month / days in month
    saldo       budget_cum - cumulative

NOTE: this series accumulates per calendar month, while the saldo
command accumulates per salary cycle. Both behaviours are kept as they
are until someone decides which one the graph should follow.
"""

import calendar
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from expense_tracker.models.transaction import (
    Series,
    SeriesPoint,
    Transaction,
    parse_iso_date,
)


DEFAULT_WINDOW_DAYS = 90
EMPTY_WINDOW_DAYS = 30

ZERO = Decimal("0")


def daily_totals(transactions: Iterable[Transaction]) -> dict[str, Decimal]:
    """Sum expenses per exact date string."""
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for tx in transactions:
        totals[tx.date] += tx.amount
    return dict(totals)


def build_series(
    transactions: Iterable[Transaction],
    date_from: date,
    date_to: date,
    monthly_budget: Decimal,
) -> list[SeriesPoint]:
    """
    Walk every day from `date_from` to `date_to` inclusive.

    Days without expenses are zero-spend points.
    """
    per_day = daily_totals(transactions)
    monthly_budget = Decimal(monthly_budget)

    points = []
    cumulative = ZERO
    day = date_from
    while day <= date_to:
        spend = per_day.get(day.isoformat(), ZERO)

        days_in_month = calendar.monthrange(day.year, day.month)[1]
        budget_cum = monthly_budget * day.day / days_in_month

        if day.day == 1:
            cumulative = ZERO
        cumulative += spend

        points.append(SeriesPoint(
            date=day,
            spend=spend,
            cumulative=cumulative,
            budget_cum=budget_cum,
            saldo=budget_cum - cumulative,
        ))
        day += timedelta(days=1)

    return points


def _try_parse(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return parse_iso_date(value)
    except ValueError:
        return None


def resolve_window(
    transactions: Iterable[Transaction],
    date_from: Optional[str],
    date_to: Optional[str],
    today: date,
) -> tuple[date, date]:
    """
    Work out the graph window from optional `from`/`to` query values.

    Unparseable values count as missing. When something is missing:
    - with data: `from` is 90 days ago, or the first expense if all data
      is older than that; `to` is the last expense
    - without data: the last 30 days up to today
    A reversed window is swapped.
    """
    start = _try_parse(date_from)
    end = _try_parse(date_to)

    if start is None or end is None:
        known = sorted(
            d for d in (tx.parsed_date for tx in transactions) if d is not None
        )
        if known:
            first, last = known[0], known[-1]
            default_start = today - timedelta(days=DEFAULT_WINDOW_DAYS)
            if start is None:
                start = first if last < default_start else default_start
            if end is None:
                end = last
        else:
            start = today - timedelta(days=EMPTY_WINDOW_DAYS)
            end = today

    if start > end:
        start, end = end, start

    return start, end


def build_graph_data(
    transactions: Iterable[Transaction],
    date_from: Optional[str],
    date_to: Optional[str],
    monthly_budget: Decimal,
    today: date,
) -> Series:
    """Resolve the window and build the series for the graph endpoint."""
    transactions = list(transactions)
    start, end = resolve_window(transactions, date_from, date_to, today)
    return Series(
        date_from=start,
        date_to=end,
        monthly_budget=Decimal(monthly_budget),
        points=build_series(transactions, start, end, monthly_budget),
    )
