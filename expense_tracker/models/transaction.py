"""
Core Data Models for the Expense Tracker

These models define the schemas for everything flowing through the system:
1. Transactions as they live in the backing file
2. Validated input coming from the bot, the web form or a CSV import
3. Derived, never-persisted values (budget cycle, saldo, graph series)

DESIGN DECISION: Amounts are Decimal end to end.
Rounding to two places only happens when a value is written to the
backing file or shown to the user (see `format_amount`).
"""

import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

CENT = Decimal("0.01")
# Bound for amounts and budgets so cent rounding stays within 28 digits
MAX_AMOUNT = Decimal("1e15")


def parse_iso_date(value: str) -> date:
    """
    Parse a strict YYYY-MM-DD string into a date.

    Raises ValueError for anything else (including other ISO 8601 forms
    such as 20250809 that `date.fromisoformat` would accept).
    """
    if not isinstance(value, str) or not ISO_DATE_PATTERN.match(value):
        raise ValueError(f"Invalid date '{value}': expected YYYY-MM-DD")
    return date.fromisoformat(value)


def parse_decimal(value) -> Decimal:
    """
    Parse a number into a finite Decimal.

    Accepts Decimal, int, float and numeric strings. Raises ValueError for
    anything unparseable, NaN or infinite.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount '{value}'")
    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, float):
            amount = Decimal(repr(value))
        else:
            amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount '{value}'")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount '{value}'")
    return amount


def parse_amount(value) -> Decimal:
    """
    Parse an amount that can be written with two decimals.

    Raises ValueError for anything `parse_decimal` rejects and for
    magnitudes of MAX_AMOUNT or more.
    """
    amount = parse_decimal(value)
    if abs(amount) >= MAX_AMOUNT:
        raise ValueError(f"Amount '{value}' is too large")
    return amount


def format_amount(value: Decimal) -> str:
    """Render an amount with exactly two decimal digits (half-up)."""
    return str(Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    One recorded expense, exactly as stored in the backing file.

    The store does not validate these fields beyond the amount being a
    finite number below MAX_AMOUNT: legacy rows with odd dates or empty
    categories are kept as-is and skipped by the tolerant read paths.
    """
    model_config = ConfigDict(frozen=True)

    date: str = Field(
        ...,
        description="Calendar date in YYYY-MM-DD form"
    )
    category: str = Field(
        ...,
        description="Short category label"
    )
    description: str = Field(
        default="",
        description="Free text, may be empty"
    )
    amount: Decimal = Field(
        ...,
        description="Amount spent"
    )

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, v) -> Decimal:
        return parse_amount(v)

    @property
    def parsed_date(self):
        """The date as a `datetime.date`, or None if the stored string is malformed."""
        try:
            return parse_iso_date(self.date)
        except ValueError:
            return None

    def to_row(self) -> list[str]:
        """Convert to a backing-file row."""
        return [
            self.date,
            self.category,
            self.description,
            format_amount(self.amount),
        ]

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "category": self.category,
            "description": self.description,
            "amount": float(self.amount),
        }


class TransactionInput(BaseModel):
    """
    A new expense as submitted by a user.

    CRITICAL: Only input that passes these checks may be turned into a
    Transaction and appended to the store.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: str = Field(
        ...,
        description="Expense date (YYYY-MM-DD)"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category (required)"
    )
    description: str = Field(
        default="",
        max_length=500,
        description="Optional description"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        lt=MAX_AMOUNT,
        description="Amount spent, must be positive"
    )

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        parse_iso_date(v)
        return v

    @field_validator("description", mode="before")
    @classmethod
    def default_description(cls, v):
        return "" if v is None else v

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, v) -> Decimal:
        return parse_decimal(v)

    def to_transaction(self) -> Transaction:
        return Transaction(
            date=self.date,
            category=self.category,
            description=self.description,
            amount=self.amount,
        )


# =============================================================================
# DERIVED VALUES
# =============================================================================

class BudgetCycle(BaseModel):
    """
    The salary cycle a reference date falls into.

    `cycle_end` is exclusive: it is the first day of the next cycle.
    """
    model_config = ConfigDict(frozen=True)

    cycle_start: date
    cycle_end: date
    day_index: int = Field(ge=1)
    days_in_cycle: int = Field(ge=1)


class SaldoReport(BaseModel):
    """Everything the report and saldo commands show for one day."""

    date: date
    monthly_budget: Decimal
    cycle: BudgetCycle

    spend_today: Decimal
    spent_cumulative: Decimal
    allowed_cumulative: Decimal
    saldo: Decimal

    remaining_days: int = Field(
        ...,
        description="Days left in the cycle after the reference date"
    )
    tomorrow_allowance: Optional[Decimal] = Field(
        default=None,
        description="Per-day allowance for the rest of the cycle (None on the last day)"
    )

    @property
    def is_on_track(self) -> bool:
        return self.saldo >= 0

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "monthly_budget": float(self.monthly_budget),
            "cycle_start": self.cycle.cycle_start.isoformat(),
            "cycle_end": self.cycle.cycle_end.isoformat(),
            "day_index": self.cycle.day_index,
            "days_in_cycle": self.cycle.days_in_cycle,
            "spend_today": float(self.spend_today),
            "spent_cumulative": float(self.spent_cumulative),
            "allowed_cumulative": float(self.allowed_cumulative),
            "saldo": float(self.saldo),
            "remaining_days": self.remaining_days,
            "tomorrow_allowance": (
                float(self.tomorrow_allowance)
                if self.tomorrow_allowance is not None
                else None
            ),
            "on_track": self.is_on_track,
        }


class SeriesPoint(BaseModel):
    """One day of the spending graph."""

    date: date
    spend: Decimal
    cumulative: Decimal = Field(
        ...,
        description="Month-to-date spend (resets on the 1st)"
    )
    budget_cum: Decimal = Field(
        ...,
        description="Month-to-date share of the monthly budget"
    )
    saldo: Decimal

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "spend": float(self.spend),
            "cumulative": float(self.cumulative),
            "budget_cum": float(self.budget_cum),
            "saldo": float(self.saldo),
        }


class Series(BaseModel):
    """A resolved graph window together with its points."""

    date_from: date
    date_to: date
    monthly_budget: Decimal
    points: list[SeriesPoint] = Field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "from": self.date_from.isoformat(),
            "to": self.date_to.isoformat(),
            "monthlyBudget": float(self.monthly_budget),
            "points": [point.to_dict() for point in self.points],
        }


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found in user input."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    line: Optional[int] = Field(
        default=None,
        ge=1,
        description="Line number in an imported file (header is line 1)"
    )

    def __str__(self) -> str:
        if self.line is not None:
            return f"Line {self.line}: {self.message}"
        return self.message


class ImportResult(BaseModel):
    """
    Result of validating a CSV import.

    All issues are collected before reporting; nothing is written unless
    `is_valid` is True.
    """

    transactions: list[Transaction] = Field(default_factory=list)
    issues: list[ValidationIssue] = Field(default_factory=list)
    is_empty: bool = Field(
        default=False,
        description="The uploaded file had no content at all"
    )

    @property
    def is_valid(self) -> bool:
        return not self.issues

    @property
    def total_amount(self) -> Decimal:
        return sum((tx.amount for tx in self.transactions), Decimal("0"))

    @property
    def date_range(self) -> Optional[tuple[str, str]]:
        """First and last date in file order, as the importer reports them."""
        if not self.transactions:
            return None
        return self.transactions[0].date, self.transactions[-1].date
