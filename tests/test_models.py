"""
Tests for Household Ledger models

Test strategy:
1. Unit tests for individual components (models, rules, validators)
2. Store tests run against in-memory backends and a failing remote double
3. No real Google Sheets calls in tests
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from src.models.finance import (
    Budget,
    DailyExpense,
    ExternalExpense,
    MonthComparison,
    MonthlySummary,
    PaymentKind,
    PaymentMethod,
    PaymentRecord,
    RecurringObligation,
    UserSettings,
    ValidationIssue,
    ValidationResult,
)
from src.models.sync import DrainResult, PendingOperation, PendingOperationKind
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestRecordModels:
    """Tests for the persisted record models."""

    def test_obligation_creation(self):
        """Test RecurringObligation model creation."""
        item = RecurringObligation(
            name="Car loan",
            amount=Decimal("1500.00"),
            start=date(2024, 1, 1),
            due_day=27,
        )
        assert item.name == "Car loan"
        assert item.end is None
        assert item.is_local is False

    def test_obligation_strips_whitespace(self):
        """Test that whitespace is stripped from names."""
        item = RecurringObligation(name="  Rent  ", amount=Decimal("10"), start=date(2024, 1, 1))
        assert item.name == "Rent"

    def test_obligation_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValidationError):
            RecurringObligation(name="Test", amount=Decimal("-1"), start=date(2024, 1, 1))

    def test_obligation_accepts_stored_zero_amount(self):
        """Zero amounts from older data still load."""
        item = RecurringObligation(name="Old", amount=Decimal("0"), start=date(2024, 1, 1))
        assert item.amount == Decimal("0")

    def test_obligation_end_before_start(self):
        """Test that the window must not be inverted."""
        with pytest.raises(ValidationError, match="End date cannot be before start date"):
            RecurringObligation(
                name="Test",
                amount=Decimal("10"),
                start=date(2024, 5, 1),
                end=date(2024, 4, 30),
            )

    @pytest.mark.parametrize("due_day", [0, 32])
    def test_obligation_due_day_range(self, due_day):
        """Test that due days outside 1..31 are rejected."""
        with pytest.raises(ValidationError):
            RecurringObligation(
                name="Test", amount=Decimal("10"), start=date(2024, 1, 1), due_day=due_day
            )

    def test_to_document_excludes_identity(self):
        """Identity fields travel outside the payload."""
        item = RecurringObligation(
            id="abc", is_local=True, name="Gym", amount=Decimal("50"), start=date(2024, 1, 1)
        )
        document = item.to_document()
        assert "id" not in document
        assert "is_local" not in document
        assert document["amount"] == "50"
        assert document["start"] == "2024-01-01"

    def test_expense_month(self):
        """Test the derived month of an expense."""
        expense = DailyExpense(
            date=date(2024, 3, 9), category="Food", amount=Decimal("12.5")
        )
        assert expense.month == "2024-03"
        assert expense.payment_method == PaymentMethod.CASH

    def test_expense_loads_from_document_with_month(self):
        """The stored month field is ignored on load, not rejected."""
        expense = DailyExpense.model_validate({
            "id": "x1",
            "date": "2024-03-09",
            "category": "Food",
            "amount": "12.5",
            "month": "2024-03",
        })
        assert expense.id == "x1"
        assert expense.month == "2024-03"

    def test_external_expense_defaults_unpaid(self):
        """Test ExternalExpense defaults."""
        expense = ExternalExpense(date=date(2024, 3, 1), category="Car", amount=Decimal("300"))
        assert expense.paid is False

    def test_budget_requires_positive_limit(self):
        """Test that budget limits must be positive."""
        with pytest.raises(ValidationError):
            Budget(category="Food", limit=Decimal("0"))

    def test_budget_normalized_category(self):
        """Test case-insensitive category normalization."""
        assert Budget(category=" Food ", limit=Decimal("10")).normalized_category == "food"


class TestPaymentRecord:
    """Tests for PaymentRecord keys."""

    def test_ledger_key_and_document_id(self):
        """Test the two key formats."""
        record = PaymentRecord(kind=PaymentKind.BILL, item_id="abc", month="2024-03", paid=True)
        assert record.ledger_key == "bill:abc:2024-03"
        assert record.document_id == "bill_abc_2024-03"

    def test_rejects_malformed_month(self):
        """Test that months must be YYYY-MM."""
        with pytest.raises(ValidationError):
            PaymentRecord(kind=PaymentKind.BILL, item_id="abc", month="2024-13")


class TestSettingsAndSummary:
    """Tests for settings and derived summary models."""

    def test_user_settings_defaults(self):
        """Test default user settings."""
        settings = UserSettings()
        assert settings.salary == Decimal("0")
        assert settings.cash_mode is False
        assert settings.auto_settle is False
        assert settings.rollover is False
        assert settings.theme == "dark"

    def test_summary_totals(self):
        """Test derived totals of a monthly summary."""
        summary = MonthlySummary(
            month="2024-03",
            income=Decimal("5000"),
            installments_total=Decimal("1000"),
            bills_total=Decimal("500"),
            daily_expense_total=Decimal("700"),
            external_total=Decimal("300"),
            saving_target=Decimal("1000"),
        )
        assert summary.recurring_total == Decimal("1500")
        assert summary.total_expenses == Decimal("2500")
        assert summary.actual_savings == Decimal("2500")
        assert summary.saving_rate == Decimal("50")
        assert summary.target_progress == Decimal("250")

    def test_summary_negative_savings(self):
        """Overspending yields negative savings."""
        summary = MonthlySummary(
            month="2024-03", income=Decimal("100"), daily_expense_total=Decimal("150")
        )
        assert summary.actual_savings == Decimal("-50")

    def test_summary_without_income(self):
        """Rates are 0 when there is nothing to divide by."""
        summary = MonthlySummary(month="2024-03")
        assert summary.saving_rate == Decimal("0")
        assert summary.target_progress == Decimal("0")

    def test_month_comparison(self):
        """Test change and percentage change."""
        comparison = MonthComparison(
            label="Total expenses", previous=Decimal("200"), current=Decimal("250")
        )
        assert comparison.change == Decimal("50")
        assert comparison.change_percent == Decimal("25")

    def test_month_comparison_from_zero(self):
        """Percentage change is 0 when the previous value is 0."""
        comparison = MonthComparison(label="x", previous=Decimal("0"), current=Decimal("80"))
        assert comparison.change == Decimal("80")
        assert comparison.change_percent == Decimal("0")


class TestPendingOperation:
    """Tests for outbox models."""

    def test_create_needs_no_document_id(self):
        """Test PendingOperation.create."""
        op = PendingOperation.create("bills", {"name": "Water"})
        assert op.kind == PendingOperationKind.CREATE
        assert op.document_id is None

    def test_update_requires_document_id(self):
        """Test that non-create operations must target a document."""
        with pytest.raises(ValidationError):
            PendingOperation(kind=PendingOperationKind.UPDATE, collection="bills")

    def test_round_trip_through_json(self):
        """Operations survive serialization to the local store."""
        op = PendingOperation.set("settings", "user_settings", {"salary": "10"})
        restored = PendingOperation.model_validate(op.model_dump(mode="json"))
        assert restored == op

    def test_set_keeps_merge_flag(self):
        """A non-merging set replays as a replace."""
        op = PendingOperation.set("settings", "user_settings", {}, merge=False)
        restored = PendingOperation.model_validate(op.model_dump(mode="json"))
        assert restored.merge is False
        assert PendingOperation.set("payments", "bill_a_2024-03", {}).merge is True

    def test_enqueued_at_is_timezone_aware(self):
        """Queue timestamps carry UTC offsets."""
        op = PendingOperation.create("bills", {})
        assert op.enqueued_at.utcoffset() == timedelta(0)
        assert AuditEvent(
            event_type=AuditEventType.RECORD_CREATED, description="x"
        ).timestamp.utcoffset() == timedelta(0)

    def test_drain_result_defaults(self):
        """Test DrainResult defaults."""
        result = DrainResult()
        assert (result.attempted, result.succeeded, result.failed) == (0, 0, 0)
        assert result.skipped is False


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            description="Record created",
        )
        assert event.event_type == AuditEventType.RECORD_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.OPERATION_QUEUED,
            collection="expenses",
            description="Queued create",
            details={"queue_length": 2},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "operation_queued"
        assert log_dict["details"]["queue_length"] == 2

    def test_audit_event_builder_remote_call_failed(self):
        """Test AuditEventBuilder.remote_call_failed."""
        entity_id = uuid4().hex
        event = AuditEventBuilder.remote_call_failed(
            collection="bills",
            operation="update",
            error_message="timeout",
            entity_id=entity_id,
        )
        assert event.event_type == AuditEventType.REMOTE_CALL_FAILED
        assert event.severity == AuditSeverity.WARNING
        assert event.entity_id == entity_id
        assert event.error_message == "timeout"

    def test_audit_event_builder_sync_with_failures(self):
        """A sync with failures is a warning."""
        event = AuditEventBuilder.sync_completed(attempted=3, succeeded=2, failed=1)
        assert event.severity == AuditSeverity.WARNING
        assert event.details["failed"] == 1

    def test_audit_event_builder_connectivity(self):
        """Test both connectivity transitions."""
        assert AuditEventBuilder.connectivity_changed(True).event_type == AuditEventType.WENT_ONLINE
        assert AuditEventBuilder.connectivity_changed(False).event_type == AuditEventType.WENT_OFFLINE


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="missing",
                    message="Amount is required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.is_valid is False
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            issues=[
                ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message="Date in future",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.is_valid is True
        assert result.error_count == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
