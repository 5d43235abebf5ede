"""Input validation package."""

from expense_tracker.validation.validator import (
    MAX_ERRORS_SHOWN,
    TransactionValidator,
    ValidationError,
)

__all__ = ["MAX_ERRORS_SHOWN", "TransactionValidator", "ValidationError"]
