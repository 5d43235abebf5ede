"""Budget accounting package: cycles, saldo and graph series."""

from expense_tracker.accounting.allowance import compute_saldo, spend_between, spend_on
from expense_tracker.accounting.cycle import (
    DEFAULT_CYCLE_DAY,
    budget_cycle,
    cycle_bounds,
    normalize_cycle_day,
)
from expense_tracker.accounting.series import (
    build_graph_data,
    build_series,
    daily_totals,
    resolve_window,
)

__all__ = [
    "DEFAULT_CYCLE_DAY",
    "budget_cycle",
    "build_graph_data",
    "build_series",
    "compute_saldo",
    "cycle_bounds",
    "daily_totals",
    "normalize_cycle_day",
    "resolve_window",
    "spend_between",
    "spend_on",
]
