"""Tests for input validation."""

from decimal import Decimal

import pytest

from expense_tracker.models.transaction import ValidationIssue
from expense_tracker.validation import TransactionValidator, ValidationError


@pytest.fixture
def validator():
    return TransactionValidator()


class TestSingleExpense:
    """Tests for validating one expense."""

    def test_valid_input(self, validator):
        """Test a valid expense becomes a Transaction."""
        transaction = validator.validate_input("2024-01-01", "Food", "10.5", "Lunch")
        assert transaction.amount == Decimal("10.5")
        assert transaction.description == "Lunch"

    def test_missing_fields(self, validator):
        """Test every missing field is reported."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_input(None, None, None)
        messages = [issue.message for issue in exc_info.value.issues]
        assert messages == ["Date is required", "Category is required", "Amount is required"]

    def test_malformed_date(self, validator):
        """Test dates must be YYYY-MM-DD."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_input("01/02/2024", "Food", 5)
        assert exc_info.value.first_message == "Date must be a valid date in YYYY-MM-DD format"

    def test_non_positive_amount(self, validator):
        """Test zero and negative amounts are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_input("2024-01-01", "Food", -1)
        assert exc_info.value.first_message == "Amount must be positive"

    def test_unparseable_amount(self, validator):
        """Test text amounts are rejected with the value shown."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_input("2024-01-01", "Food", "ten")
        assert exc_info.value.first_message == "Invalid amount 'ten'"

    def test_oversized_amount(self, validator):
        """Test amounts too large to store in cents are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_input("2024-01-01", "Food", "1e27")
        assert exc_info.value.first_message == "Amount is too large"

    def test_blank_category(self, validator):
        """Test a whitespace-only category is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_input("2024-01-01", "  ", 1)
        assert exc_info.value.first_message == "Category is required"

    def test_payload(self, validator):
        """Test JSON-style payloads, with a null description."""
        transaction = validator.validate_payload({
            "date": "2024-01-01",
            "category": "Food",
            "description": None,
            "amount": 3,
        })
        assert transaction.description == ""

    def test_payload_must_be_dict(self, validator):
        """Test non-object payloads are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_payload(["2024-01-01"])
        assert exc_info.value.first_message == "Invalid request format"


class TestCsvImport:
    """Tests for bulk CSV validation."""

    def test_valid_file(self, validator):
        """Test every row of a valid file is returned."""
        result = validator.parse_csv_import(
            b"Date,Category,Description,Amount\n"
            b"2024-01-15,Food,Lunch,500.00\n"
            b"2024-01-15,Transport,Bus,50.00\n"
        )
        assert result.is_valid
        assert len(result.transactions) == 2
        assert result.total_amount == Decimal("550")

    def test_byte_order_mark(self, validator):
        """Test a UTF-8 BOM before the header is accepted."""
        result = validator.parse_csv_import(b"\xef\xbb\xbfDate,Category,Description,Amount\n2024-01-01,A,,1\n")
        assert result.is_valid

    def test_empty_file(self, validator):
        """Test an empty file is flagged, not rejected."""
        result = validator.parse_csv_import(b"")
        assert result.is_empty
        assert result.is_valid

    def test_wrong_header(self, validator):
        """Test a wrong header is a single issue on line 1."""
        result = validator.parse_csv_import("Date,Category,Amount\n2024-01-01,A,1\n")
        assert len(result.issues) == 1
        assert result.issues[0].line == 1
        assert result.issues[0].message == "CSV header must be: Date,Category,Description,Amount"

    def test_collects_all_issues_with_lines(self, validator):
        """Test every bad row is reported with its line and nothing is accepted."""
        result = validator.parse_csv_import(
            "Date,Category,Description,Amount\n"
            "2024-01-01,Food,,1\n"
            "2024-01-02,Food,,abc\n"
            "2024-01-03,Food,,-5\n"
            "2024-01-04,Food\n"
        )
        assert not result.is_valid
        assert result.transactions == []
        assert [str(issue) for issue in result.issues] == [
            "Line 3: Invalid amount 'abc'",
            "Line 4: Amount must be positive",
            "Line 5: Invalid number of fields",
        ]

    def test_oversized_amount_row(self, validator):
        """Test an oversized amount is reported on its line."""
        result = validator.parse_csv_import(
            "Date,Category,Description,Amount\n2024-01-01,Food,,1e27\n"
        )
        assert [str(issue) for issue in result.issues] == ["Line 2: Amount is too large"]

    def test_non_utf8(self, validator):
        """Test binary uploads are rejected."""
        result = validator.parse_csv_import(b"\xff\xfe\x00D")
        assert not result.is_valid


class TestSummary:
    """Tests for the chat summary of rejected imports."""

    def test_limits_shown_issues(self, validator):
        """Test only the first ten issues are listed."""
        issues = [
            ValidationIssue(field="row", message="Invalid number of fields", line=n)
            for n in range(2, 15)
        ]
        summary = validator.get_user_friendly_summary(issues)
        assert summary.startswith("❌ CSV validation failed:")
        assert "Line 11: Invalid number of fields" in summary
        assert "Line 12:" not in summary
        assert summary.endswith("... and 3 more errors")

    def test_no_issues(self, validator):
        """Test an empty issue list reads as success."""
        assert validator.get_user_friendly_summary([]).startswith("✅")
