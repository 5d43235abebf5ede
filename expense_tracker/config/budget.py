"""
Runtime Budget Settings

The monthly budget has two layers:
1. The configured default (MONTHLY_BUDGET_RUB), read at startup
2. An optional runtime override set from the chat bot or web form

LIFECYCLE: the override starts unset, can be replaced at any time,
is cleared by `reset()` and is lost on restart. The accounting engines
never read this object; callers pass `current` to them explicitly.
"""

from decimal import Decimal
from threading import Lock
from typing import Optional

from expense_tracker.config.settings import DEFAULT_MONTHLY_BUDGET
from expense_tracker.models.transaction import MAX_AMOUNT


SOURCE_CONFIGURATION = "configuration"
SOURCE_RUNTIME = "runtime override"


class BudgetSettings:
    """Process-wide holder for the effective monthly budget."""

    def __init__(self, default: Decimal = DEFAULT_MONTHLY_BUDGET):
        if default <= 0:
            raise ValueError("Default monthly budget must be positive")
        self._default = default
        self._override: Optional[Decimal] = None
        self._lock = Lock()

    @property
    def default(self) -> Decimal:
        return self._default

    @property
    def current(self) -> Decimal:
        """The override if one is set, otherwise the configured default."""
        with self._lock:
            return self._override if self._override is not None else self._default

    @property
    def is_overridden(self) -> bool:
        with self._lock:
            return self._override is not None

    @property
    def source(self) -> str:
        return SOURCE_RUNTIME if self.is_overridden else SOURCE_CONFIGURATION

    def override(self, value: Decimal) -> Decimal:
        """Set a runtime override. Raises ValueError for non-positive or oversized amounts."""
        value = Decimal(value)
        if not value.is_finite() or value <= 0:
            raise ValueError("Monthly budget must be a positive amount")
        if value >= MAX_AMOUNT:
            raise ValueError("Monthly budget is too large")
        with self._lock:
            self._override = value
        return value

    def reset(self) -> Decimal:
        """Drop the override and return the configured default."""
        with self._lock:
            self._override = None
        return self._default
