"""
Input Validation

DESIGN DECISION: Nothing reaches the store without passing through here.
The store itself only checks that the file has the right shape; the rules
about what a *new* expense may look like live in this module:

- date must be a real calendar date written as YYYY-MM-DD
- category must not be empty
- amount must be a finite number greater than zero and below MAX_AMOUNT

Bulk imports are checked row by row and ALL problems are collected, each
with its line number (the header is line 1), before anything is reported.
A file with any bad row is rejected as a whole.

IMPORTANT: Validation never silently fixes values. It reports them.
"""

import csv
import io
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from expense_tracker.models.transaction import (
    ImportResult,
    Transaction,
    TransactionInput,
    ValidationIssue,
)
from expense_tracker.services.storage.interface import CSV_HEADER


MAX_ERRORS_SHOWN = 10


class ValidationError(Exception):
    """User input was rejected before reaching the store."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(str(issue) for issue in issues))

    @property
    def first_message(self) -> str:
        return self.issues[0].message if self.issues else "Invalid input"


def _issues_from_pydantic(
    error: PydanticValidationError,
    line: Optional[int] = None,
) -> list[ValidationIssue]:
    """Turn pydantic errors into user-facing issues, one per field."""
    issues = []
    seen = set()
    for err in error.errors():
        field = str(err["loc"][0]) if err["loc"] else "input"
        if field in seen:
            continue
        seen.add(field)

        if field == "date":
            message = "Date must be a valid date in YYYY-MM-DD format"
        elif field == "category":
            message = "Category is required"
        elif field == "amount":
            if err["type"] == "greater_than":
                message = "Amount must be positive"
            elif err["type"] == "less_than":
                message = "Amount is too large"
            else:
                message = f"Invalid amount '{err.get('input')}'"
        elif field == "description":
            message = "Description is too long"
        else:
            message = err["msg"]

        issues.append(ValidationIssue(field=field, message=message, line=line))
    return issues


class TransactionValidator:
    """
    Validates new expenses and CSV imports.

    Stateless; one instance can be shared by every surface.
    """

    def validate_input(
        self,
        date: Any,
        category: Any,
        amount: Any,
        description: Any = "",
    ) -> Transaction:
        """
        Validate a single expense.

        Returns:
            The Transaction to append

        Raises:
            ValidationError: With every issue found
        """
        missing = []
        if date is None or date == "":
            missing.append(ValidationIssue(field="date", message="Date is required"))
        if category is None:
            missing.append(ValidationIssue(field="category", message="Category is required"))
        if amount is None:
            missing.append(ValidationIssue(field="amount", message="Amount is required"))
        if missing:
            raise ValidationError(missing)

        try:
            tx_input = TransactionInput(
                date=date,
                category=category,
                description=description,
                amount=amount,
            )
        except PydanticValidationError as e:
            raise ValidationError(_issues_from_pydantic(e))

        return tx_input.to_transaction()

    def validate_payload(self, payload: dict) -> Transaction:
        """Validate a JSON-style dict with date/category/description/amount keys."""
        if not isinstance(payload, dict):
            raise ValidationError([
                ValidationIssue(field="input", message="Invalid request format"),
            ])
        return self.validate_input(
            date=payload.get("date"),
            category=payload.get("category"),
            amount=payload.get("amount"),
            description=payload.get("description") or "",
        )

    def parse_csv_import(self, content: Union[bytes, str]) -> ImportResult:
        """
        Validate an uploaded CSV file.

        An empty file yields an empty, valid result with `is_empty` set;
        callers decide whether that means "reset the data".
        """
        if isinstance(content, bytes):
            try:
                text = content.decode("utf-8-sig")
            except UnicodeDecodeError:
                return ImportResult(issues=[
                    ValidationIssue(field="file", message="File must be UTF-8 encoded text"),
                ])
        else:
            text = content.lstrip("\ufeff")

        reader = csv.reader(io.StringIO(text, newline=""))
        try:
            rows = [(reader.line_num, row) for row in reader if row]
        except csv.Error as e:
            return ImportResult(issues=[
                ValidationIssue(
                    field="file",
                    message=f"Invalid CSV format: {e}",
                    line=reader.line_num or None,
                ),
            ])

        if not rows:
            return ImportResult(is_empty=True)

        header_line, header = rows[0]
        if header != CSV_HEADER:
            return ImportResult(issues=[
                ValidationIssue(
                    field="header",
                    message=f"CSV header must be: {','.join(CSV_HEADER)}",
                    line=header_line,
                ),
            ])

        transactions = []
        issues = []
        for line, row in rows[1:]:
            if len(row) != len(CSV_HEADER):
                issues.append(ValidationIssue(
                    field="row",
                    message="Invalid number of fields",
                    line=line,
                ))
                continue

            try:
                tx_input = TransactionInput(
                    date=row[0],
                    category=row[1],
                    description=row[2],
                    amount=row[3],
                )
            except PydanticValidationError as e:
                issues.extend(_issues_from_pydantic(e, line=line))
                continue

            transactions.append(tx_input.to_transaction())

        if issues:
            return ImportResult(issues=issues)
        return ImportResult(transactions=transactions)

    def get_user_friendly_summary(
        self,
        issues: list[ValidationIssue],
        limit: int = MAX_ERRORS_SHOWN,
    ) -> str:
        """
        Summarize rejected input for chat replies.

        Shows the first `limit` issues and counts the rest.
        """
        if not issues:
            return "✅ All checks passed!"

        lines = ["❌ CSV validation failed:", ""]
        for issue in issues[:limit]:
            lines.append(f"• {issue}")
        if len(issues) > limit:
            lines.append("")
            lines.append(f"... and {len(issues) - limit} more errors")
        return "\n".join(lines)
