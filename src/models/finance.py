"""
Household Finance Models

DESIGN DECISION: Every record that flows between the UI, the local cache
and the remote store is a Pydantic model. Stores only ever see plain
JSON-compatible dicts (model_dump(mode="json")), and every read goes back
through model_validate so malformed documents are caught at the boundary.

Months are plain "YYYY-MM" strings. They sort lexicographically in
calendar order, which the recurrence rules rely on.
"""

import datetime
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    model_validator,
)


MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


# =============================================================================
# ENUMS
# =============================================================================

class ObligationKind(str, Enum):
    """Kind of recurring obligation. Also names the payment-ledger namespace."""
    INSTALLMENT = "installment"
    BILL = "bill"


class PaymentKind(str, Enum):
    """Namespaces used in payment-ledger keys."""
    INSTALLMENT = "installment"
    BILL = "bill"
    EXTERNAL = "external"


class PaymentMethod(str, Enum):
    """How a daily expense was paid."""
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    WALLET = "wallet"


class StatusTag(str, Enum):
    """
    Display status of a recurring obligation for a given month.

    Evaluated in declaration order by the classifier; first match wins.
    """
    NOT_DUE = "not_due"
    PAID = "paid"
    OVERDUE = "overdue"
    UPCOMING = "upcoming"
    DUE_SOON = "due_soon"
    PENDING = "pending"


class BudgetLevel(str, Enum):
    """Consumption level of a category budget."""
    OK = "ok"
    WARNING = "warning"
    EXCEEDED = "exceeded"


# =============================================================================
# RECORD MODELS
# =============================================================================

class StoredRecord(BaseModel):
    """
    Fields every persisted document may carry.

    `id` is assigned by the remote store, or is a "temp_" id for records
    created while offline. `is_local` marks those locally-originated records.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    id: Optional[str] = Field(
        default=None,
        description="Store-assigned or temporary identifier"
    )
    is_local: bool = Field(
        default=False,
        description="Created while the remote store was unreachable"
    )

    def to_document(self) -> dict[str, Any]:
        """Serialize for the stores, without the identity fields."""
        return self.model_dump(mode="json", exclude={"id", "is_local"})


class RecurringObligation(StoredRecord):
    """
    An installment or a bill: a fixed monthly amount over a date window.

    Both kinds share this shape; the collection they live in tells them apart.
    """

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount due each month inside the window"
    )
    start: date = Field(
        ...,
        description="First day of the recurrence window"
    )
    end: Optional[date] = Field(
        default=None,
        description="Last day of the window; None means unbounded"
    )
    due_day: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        description="Day of month the payment is due; None means last day"
    )

    @model_validator(mode="after")
    def validate_window(self) -> "RecurringObligation":
        """End date cannot precede start date."""
        if self.end is not None and self.end < self.start:
            raise ValueError("End date cannot be before start date")
        return self


class DailyExpense(StoredRecord):
    """An ad-hoc expense paid on the spot."""

    date: datetime.date
    category: str = Field(..., min_length=1, max_length=100)
    note: Optional[str] = Field(default=None, max_length=500)
    amount: Decimal = Field(..., ge=0)
    payment_method: PaymentMethod = PaymentMethod.CASH

    @computed_field
    @property
    def month(self) -> str:
        return self.date.isoformat()[:7]


class ExternalExpense(StoredRecord):
    """
    A one-off expense outside the daily flow.

    Unlike daily expenses these carry their own paid flag, which cash mode
    consults. Rollover entries are external expenses too.
    """

    date: datetime.date
    category: str = Field(..., min_length=1, max_length=100)
    note: Optional[str] = Field(default=None, max_length=500)
    amount: Decimal = Field(..., ge=0)
    paid: bool = False

    @computed_field
    @property
    def month(self) -> str:
        return self.date.isoformat()[:7]


class Budget(StoredRecord):
    """Monthly spending limit for one category."""

    category: str = Field(..., min_length=1, max_length=100)
    limit: Decimal = Field(..., gt=0)

    @property
    def normalized_category(self) -> str:
        return normalize_category(self.category)


class PaymentRecord(BaseModel):
    """Paid flag for one (kind, item, month) triple."""

    kind: PaymentKind
    item_id: str = Field(..., min_length=1)
    month: str = Field(..., pattern=MONTH_PATTERN)
    paid: bool = False

    @property
    def ledger_key(self) -> str:
        return f"{self.kind.value}:{self.item_id}:{self.month}"

    @property
    def document_id(self) -> str:
        return f"{self.kind.value}_{self.item_id}_{self.month}"


class UserSettings(BaseModel):
    """
    User preferences, stored as a singleton document.

    cash_mode: only count obligations once they are marked paid.
    auto_settle: mark due obligations paid when a month view loads.
    rollover: carry unpaid obligations of the previous month forward.
    """
    model_config = ConfigDict(extra="ignore")

    salary: Decimal = Field(default=Decimal("0"), ge=0)
    saving_target: Decimal = Field(default=Decimal("0"), ge=0)
    cash_mode: bool = False
    auto_settle: bool = False
    rollover: bool = False
    theme: str = "dark"


# =============================================================================
# DERIVED VIEW MODELS
# =============================================================================

class ObligationView(BaseModel):
    """A recurring obligation as classified for one month."""

    kind: ObligationKind
    item: RecurringObligation
    month: str
    due_amount: Decimal
    paid: bool
    status: StatusTag
    days_until_due: int
    sort_key: tuple[int, int, str]


class MonthlySummary(BaseModel):
    """Income, expenses and savings for one month."""

    month: str = Field(..., pattern=MONTH_PATTERN)
    income: Decimal = Decimal("0")
    installments_total: Decimal = Decimal("0")
    bills_total: Decimal = Decimal("0")
    daily_expense_total: Decimal = Decimal("0")
    external_total: Decimal = Decimal("0")
    saving_target: Decimal = Decimal("0")

    @computed_field
    @property
    def recurring_total(self) -> Decimal:
        return self.installments_total + self.bills_total

    @computed_field
    @property
    def total_expenses(self) -> Decimal:
        return self.recurring_total + self.daily_expense_total + self.external_total

    @computed_field
    @property
    def actual_savings(self) -> Decimal:
        # Negative means overspend; that is a valid state.
        return self.income - self.total_expenses

    @property
    def saving_rate(self) -> Decimal:
        """Savings as a percentage of income (0 when there is no income)."""
        if self.income <= 0:
            return Decimal("0")
        return self.actual_savings / self.income * 100

    @property
    def target_progress(self) -> Decimal:
        """Savings as a percentage of the saving target."""
        if self.saving_target <= 0:
            return Decimal("0")
        return self.actual_savings / self.saving_target * 100


class BudgetStatus(BaseModel):
    """Spending against one budget in one month."""

    budget: Budget
    month: str
    spent: Decimal
    percentage: Decimal
    level: BudgetLevel

    @property
    def remaining(self) -> Decimal:
        return self.budget.limit - self.spent


class MonthComparison(BaseModel):
    """Change of one figure between two months."""

    label: str
    previous: Decimal
    current: Decimal

    @property
    def change(self) -> Decimal:
        return self.current - self.previous

    @property
    def change_percent(self) -> Decimal:
        if self.previous <= 0:
            return Decimal("0")
        return self.change / self.previous * 100


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found in user-entered data."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'invalid_range')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Outcome of validating one form entry."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")


def normalize_category(category: str) -> str:
    """Categories compare case-insensitively and ignore surrounding spaces."""
    return category.strip().lower()
