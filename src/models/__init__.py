"""
Data Models Package

This package contains all Pydantic models used by the household ledger.
Everything read from or written to a store passes through these schemas.
"""

from src.models.finance import (
    Budget,
    BudgetLevel,
    BudgetStatus,
    DailyExpense,
    ExternalExpense,
    MonthComparison,
    MonthlySummary,
    ObligationKind,
    ObligationView,
    PaymentKind,
    PaymentMethod,
    PaymentRecord,
    RecurringObligation,
    StatusTag,
    StoredRecord,
    UserSettings,
    ValidationIssue,
    ValidationResult,
    normalize_category,
)
from src.models.sync import DrainResult, PendingOperation, PendingOperationKind
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "Budget",
    "BudgetLevel",
    "BudgetStatus",
    "DailyExpense",
    "ExternalExpense",
    "MonthComparison",
    "MonthlySummary",
    "ObligationKind",
    "ObligationView",
    "PaymentKind",
    "PaymentMethod",
    "PaymentRecord",
    "RecurringObligation",
    "StatusTag",
    "StoredRecord",
    "UserSettings",
    "ValidationIssue",
    "ValidationResult",
    "normalize_category",
    # Outbox models
    "DrainResult",
    "PendingOperation",
    "PendingOperationKind",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
