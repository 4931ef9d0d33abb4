"""
Entry Validation

DESIGN DECISION: Form input is checked before any model is built, and
problems are REPORTED, not raised:

- ERRORS block saving (missing name, non-positive amount, end before
  start, due day out of range, unknown payment method)
- WARNINGS are shown but the user may continue (an expense dated in the
  future, an amount far above the usual range)

The models still enforce their own invariants at construction; this layer
exists so the user sees every problem at once, in plain language.

IMPORTANT: Validation NEVER silently fixes input.
"""

from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from src.models.finance import (
    PaymentMethod,
    ValidationIssue,
    ValidationResult,
)


# Anything above this gets a "please double-check" warning
LARGE_AMOUNT_THRESHOLD = Decimal("1000000")


class EntryValidator:
    """
    Validates user-entered records before they reach the store.

    Each `validate_*` method takes the raw form values and returns a
    ValidationResult listing every issue found.
    """

    def __init__(self, today: Optional[date] = None):
        """
        Args:
            today: Reference date for future-date warnings (defaults to today)
        """
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    # -------------------------------------------------------------------------
    # Shared checks
    # -------------------------------------------------------------------------

    def _check_text(self, field: str, value: Optional[str], label: str) -> list[ValidationIssue]:
        if value is None or not str(value).strip():
            return [ValidationIssue(
                field=field,
                issue_type="missing",
                message=f"{label} is required",
            )]
        return []

    def _check_amount(self, value: Any, field: str = "amount") -> list[ValidationIssue]:
        if value is None or value == "":
            return [ValidationIssue(
                field=field,
                issue_type="missing",
                message="Amount is required",
            )]
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return [ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"Amount ({value}) is not a number",
            )]

        if not amount.is_finite() or amount <= 0:
            return [ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message="Amount must be greater than zero",
            )]
        if amount > LARGE_AMOUNT_THRESHOLD:
            return [ValidationIssue(
                field=field,
                issue_type="suspicious_value",
                message=f"Amount ({amount:,.2f}) seems unusually high",
                severity="warning",
            )]
        return []

    def _check_date(self, field: str, value: Optional[date], label: str) -> list[ValidationIssue]:
        if value is None:
            return [ValidationIssue(
                field=field,
                issue_type="missing",
                message=f"{label} is required",
            )]
        return []

    # -------------------------------------------------------------------------
    # Record validators
    # -------------------------------------------------------------------------

    def validate_obligation(
        self,
        name: Optional[str],
        amount: Any,
        start: Optional[date],
        end: Optional[date] = None,
        due_day: Optional[int] = None,
    ) -> ValidationResult:
        """Validate an installment or bill entry."""
        issues = []
        issues += self._check_text("name", name, "Name")
        issues += self._check_amount(amount)
        issues += self._check_date("start", start, "Start date")

        if start is not None and end is not None and end < start:
            issues.append(ValidationIssue(
                field="end",
                issue_type="invalid_range",
                message="End date cannot be before start date",
            ))

        if due_day is not None and not 1 <= due_day <= 31:
            issues.append(ValidationIssue(
                field="due_day",
                issue_type="invalid_range",
                message="Due day must be between 1 and 31",
            ))

        return ValidationResult(issues=issues)

    def validate_daily_expense(
        self,
        expense_date: Optional[date],
        category: Optional[str],
        amount: Any,
        payment_method: Any = PaymentMethod.CASH,
    ) -> ValidationResult:
        """Validate a daily expense entry."""
        issues = []
        issues += self._check_date("date", expense_date, "Date")
        issues += self._check_text("category", category, "Category")
        issues += self._check_amount(amount)

        try:
            PaymentMethod(payment_method)
        except ValueError:
            issues.append(ValidationIssue(
                field="payment_method",
                issue_type="invalid_value",
                message=f"Unknown payment method: {payment_method}",
            ))

        issues += self._future_date_warning(expense_date)
        return ValidationResult(issues=issues)

    def validate_external_expense(
        self,
        expense_date: Optional[date],
        category: Optional[str],
        amount: Any,
    ) -> ValidationResult:
        """Validate a one-off external expense entry."""
        issues = []
        issues += self._check_date("date", expense_date, "Date")
        issues += self._check_text("category", category, "Category")
        issues += self._check_amount(amount)
        return ValidationResult(issues=issues)

    def validate_budget(self, category: Optional[str], limit: Any) -> ValidationResult:
        """Validate a budget entry."""
        issues = []
        issues += self._check_text("category", category, "Category")
        issues += self._check_amount(limit, field="limit")
        return ValidationResult(issues=issues)

    def _future_date_warning(self, value: Optional[date]) -> list[ValidationIssue]:
        # Daily expenses are recorded after the fact; a day of slack covers time zones
        if value is not None and value > self.today + timedelta(days=1):
            return [ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Date ({value}) is in the future",
                severity="warning",
            )]
        return []

    # -------------------------------------------------------------------------
    # Presentation
    # -------------------------------------------------------------------------

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """Plain-language summary of a validation result for the UI."""
        if not result.issues:
            return "✅ All checks passed."

        lines = []
        errors = [i for i in result.issues if i.severity == "error"]
        warnings = [i for i in result.issues if i.severity == "warning"]

        if errors:
            lines.append("❌ Please fix the following:")
            for issue in errors:
                lines.append(f"   • {issue.message}")

        if warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for issue in warnings:
                lines.append(f"   • {issue.message}")

        return "\n".join(lines)
