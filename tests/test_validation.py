"""Tests for entry validation."""

import pytest
from datetime import date

from src.validation import EntryValidator


@pytest.fixture
def validator():
    return EntryValidator(today=date(2024, 3, 10))


class TestObligationValidation:
    """Tests for installment and bill entries."""

    def test_valid_entry(self, validator):
        result = validator.validate_obligation("Car loan", "1500", date(2024, 1, 1), due_day=27)
        assert result.is_valid
        assert result.issues == []

    def test_reports_every_problem(self, validator):
        result = validator.validate_obligation(
            "  ", "0", date(2024, 5, 1), end=date(2024, 4, 1), due_day=40
        )
        fields = {issue.field for issue in result.issues}
        assert fields == {"name", "amount", "end", "due_day"}
        assert result.error_count == 4

    def test_missing_start(self, validator):
        result = validator.validate_obligation("Rent", 100, None)
        assert [i.field for i in result.issues] == ["start"]

    @pytest.mark.parametrize("amount", [None, "", "abc", "-5", "NaN"])
    def test_bad_amounts(self, validator, amount):
        result = validator.validate_obligation("Rent", amount, date(2024, 1, 1))
        assert not result.is_valid
        assert result.issues[0].field == "amount"


class TestExpenseValidation:
    """Tests for daily and external expense entries."""

    def test_valid_daily_expense(self, validator):
        result = validator.validate_daily_expense(date(2024, 3, 9), "Food", 12.5, "card")
        assert result.is_valid

    def test_unknown_payment_method(self, validator):
        result = validator.validate_daily_expense(date(2024, 3, 9), "Food", 10, "cheque")
        assert [i.field for i in result.issues] == ["payment_method"]

    def test_future_date_is_a_warning(self, validator):
        result = validator.validate_daily_expense(date(2024, 4, 1), "Food", 10)
        assert result.is_valid
        assert result.issues[0].issue_type == "future_date"
        assert result.issues[0].severity == "warning"

    def test_large_amount_is_a_warning(self, validator):
        result = validator.validate_external_expense(date(2024, 3, 1), "House", "2000000")
        assert result.is_valid
        assert result.issues[0].issue_type == "suspicious_value"

    def test_external_requires_category(self, validator):
        result = validator.validate_external_expense(date(2024, 3, 1), None, 10)
        assert [i.field for i in result.issues] == ["category"]


class TestBudgetValidation:
    """Tests for budget entries."""

    def test_limit_must_be_positive(self, validator):
        result = validator.validate_budget("Food", 0)
        assert [i.field for i in result.issues] == ["limit"]

    def test_valid_budget(self, validator):
        assert validator.validate_budget("Food", 300).is_valid


class TestSummary:
    """Tests for the user-facing summary text."""

    def test_all_clear(self, validator):
        result = validator.validate_budget("Food", 300)
        assert "All checks passed" in validator.get_user_friendly_summary(result)

    def test_lists_errors_and_warnings(self, validator):
        result = validator.validate_daily_expense(date(2024, 4, 1), "", 10)
        summary = validator.get_user_friendly_summary(result)
        assert "Category is required" in summary
        assert "in the future" in summary


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
