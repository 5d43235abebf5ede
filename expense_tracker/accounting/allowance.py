"""
Allowance Engine

Computes the daily saldo for one reference date:

    allowed so far  = monthly budget * day_index / days_in_cycle
    spent so far    = sum of expenses from cycle start to the reference date
    saldo           = allowed so far - spent so far
    tomorrow        = what is left of the budget / days left in the cycle

A negative saldo means spending is ahead of the even pace; it is not an
error. The engine is stateless and keeps full Decimal precision; callers
round with `format_amount` when presenting.

Rows whose date cannot be parsed are skipped in the cumulative sum. The
store is strict when rows are written, this path is lenient with rows
that were edited by hand.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable

from expense_tracker.accounting.cycle import budget_cycle
from expense_tracker.models.transaction import SaldoReport, Transaction


ZERO = Decimal("0")


def spend_on(transactions: Iterable[Transaction], day: date) -> Decimal:
    """Total of the expenses whose date string is exactly `day` in ISO form."""
    key = day.isoformat()
    return sum((tx.amount for tx in transactions if tx.date == key), ZERO)


def spend_between(
    transactions: Iterable[Transaction],
    start: date,
    end: date,
) -> Decimal:
    """Total of the expenses dated within [start, end]."""
    total = ZERO
    for tx in transactions:
        tx_date = tx.parsed_date
        if tx_date is None:
            continue
        if start <= tx_date <= end:
            total += tx.amount
    return total


def compute_saldo(
    transactions: Iterable[Transaction],
    reference_date: date,
    cycle_day: int,
    monthly_budget: Decimal,
) -> SaldoReport:
    """
    Compute the saldo report for `reference_date`.

    Args:
        transactions: All known expenses, in any order
        reference_date: The day being reported on
        cycle_day: Salary day the budget cycle starts on (1-28)
        monthly_budget: Budget for one full cycle

    Returns:
        SaldoReport with today's spend, cumulative figures and tomorrow's
        allowance (None on the last day of the cycle)
    """
    transactions = list(transactions)
    monthly_budget = Decimal(monthly_budget)
    cycle = budget_cycle(reference_date, cycle_day)

    spend_today = spend_on(transactions, reference_date)
    spent_cumulative = spend_between(transactions, cycle.cycle_start, reference_date)

    allowed_cumulative = monthly_budget * cycle.day_index / cycle.days_in_cycle
    saldo = allowed_cumulative - spent_cumulative

    remaining_days = (cycle.cycle_end - reference_date).days - 1
    tomorrow_allowance = None
    if remaining_days > 0:
        remaining_budget = max(ZERO, monthly_budget - spent_cumulative)
        tomorrow_allowance = remaining_budget / remaining_days

    return SaldoReport(
        date=reference_date,
        monthly_budget=monthly_budget,
        cycle=cycle,
        spend_today=spend_today,
        spent_cumulative=spent_cumulative,
        allowed_cumulative=allowed_cumulative,
        saldo=saldo,
        remaining_days=max(remaining_days, 0),
        tomorrow_allowance=tomorrow_allowance,
    )
