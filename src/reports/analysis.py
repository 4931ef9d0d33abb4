"""
Report Calculations

Read-only figures for the dashboard: budget consumption, the alert
badge, the month trend, month-over-month comparison and the expense
distribution. Every function here works on data that was already
loaded; nothing in this module writes.

An empty result is a valid answer ("no budgets", "no alerts"). Nothing
is estimated or filled in.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from src.models.finance import (
    Budget,
    BudgetLevel,
    BudgetStatus,
    DailyExpense,
    MonthComparison,
    MonthlySummary,
    ObligationKind,
    RecurringObligation,
    UserSettings,
    normalize_category,
)
from src.recurrence.classifier import DUE_SOON_DAYS
from src.recurrence.temporal import (
    current_month,
    days_until_due,
    due_for_month,
    previous_month,
    shift_month,
)
from src.reports.aggregator import compute_summary
from src.services.ledger import PaymentLedger
from src.services.storage.reconciling import ReconcilingStore


DEFAULT_WARNING_RATIO = 0.8


# =============================================================================
# BUDGETS
# =============================================================================

def budget_level(percentage: Decimal, warning_ratio: float = DEFAULT_WARNING_RATIO) -> BudgetLevel:
    if percentage >= 100:
        return BudgetLevel.EXCEEDED
    if percentage >= Decimal(str(warning_ratio)) * 100:
        return BudgetLevel.WARNING
    return BudgetLevel.OK


def spent_in_category(
    category: str,
    expenses: Iterable[DailyExpense],
    month: str,
) -> Decimal:
    """Daily expenses of one month in a category (case-insensitive)."""
    wanted = normalize_category(category)
    return sum(
        (
            e.amount for e in expenses
            if e.month == month and normalize_category(e.category) == wanted
        ),
        Decimal("0"),
    )


def budget_status(
    budget: Budget,
    expenses: Iterable[DailyExpense],
    month: str,
    warning_ratio: float = DEFAULT_WARNING_RATIO,
) -> BudgetStatus:
    spent = spent_in_category(budget.category, expenses, month)
    percentage = spent / budget.limit * 100 if budget.limit > 0 else Decimal("0")
    return BudgetStatus(
        budget=budget,
        month=month,
        spent=spent,
        percentage=percentage,
        level=budget_level(percentage, warning_ratio),
    )


def budget_statuses(
    budgets: Iterable[Budget],
    expenses: Iterable[DailyExpense],
    month: str,
    warning_ratio: float = DEFAULT_WARNING_RATIO,
) -> list[BudgetStatus]:
    expenses = list(expenses)
    return [budget_status(b, expenses, month, warning_ratio) for b in budgets]


def check_budget_warning(
    category: str,
    budgets: Iterable[Budget],
    expenses: Iterable[DailyExpense],
    month: str,
    warning_ratio: float = DEFAULT_WARNING_RATIO,
) -> Optional[BudgetStatus]:
    """
    Status of the category's budget when it needs the user's attention.

    Returns None when the category has no budget or is still within it.
    """
    wanted = normalize_category(category)
    for budget in budgets:
        if budget.normalized_category == wanted:
            status = budget_status(budget, expenses, month, warning_ratio)
            return None if status.level == BudgetLevel.OK else status
    return None


def budget_warning_message(status: BudgetStatus) -> str:
    category = status.budget.category
    if status.level == BudgetLevel.EXCEEDED:
        return f'Budget "{category}" exceeded ({status.percentage:.1f}%)'
    return f'Budget "{category}" is close to its limit ({status.percentage:.1f}%)'


# =============================================================================
# ALERTS
# =============================================================================

def count_alerts(
    installments: Iterable[RecurringObligation],
    bills: Iterable[RecurringObligation],
    month: str,
    ledger: PaymentLedger,
    today: Optional[date] = None,
) -> int:
    """
    Unpaid due obligations at most DUE_SOON_DAYS away (overdue included).

    Only the current month has alerts; any other month counts 0.
    """
    if month != current_month(today):
        return 0

    alerts = 0
    for kind, items in (
        (ObligationKind.INSTALLMENT, installments),
        (ObligationKind.BILL, bills),
    ):
        for item in items:
            if not due_for_month(item, month):
                continue
            if ledger.is_paid(kind, item.id, month):
                continue
            if days_until_due(item, month, today=today) <= DUE_SOON_DAYS:
                alerts += 1
    return alerts


# =============================================================================
# DISTRIBUTION AND COMPARISON
# =============================================================================

def expense_distribution(summary: MonthlySummary) -> list[tuple[str, Decimal]]:
    """(label, amount) for each non-zero expense component."""
    components = [
        ("Installments", summary.installments_total),
        ("Bills", summary.bills_total),
        ("Daily expenses", summary.daily_expense_total),
        ("External expenses", summary.external_total),
    ]
    return [(label, amount) for label, amount in components if amount > 0]


def compare_summaries(
    previous: MonthlySummary,
    current: MonthlySummary,
) -> list[MonthComparison]:
    return [
        MonthComparison(
            label="Total expenses",
            previous=previous.total_expenses,
            current=current.total_expenses,
        ),
        MonthComparison(
            label="Actual savings",
            previous=previous.actual_savings,
            current=current.actual_savings,
        ),
        MonthComparison(
            label="Daily expenses",
            previous=previous.daily_expense_total,
            current=current.daily_expense_total,
        ),
        MonthComparison(
            label="Installments and bills",
            previous=previous.recurring_total,
            current=current.recurring_total,
        ),
    ]


# =============================================================================
# STORE-BACKED REPORTS
# =============================================================================

class MonthlyReports:
    """Reports that need more than one month of records."""

    def __init__(self, store: ReconcilingStore):
        self._store = store

    async def _summaries(self, months: list[str], settings: UserSettings) -> list[MonthlySummary]:
        installments = await self._store.get_installments()
        bills = await self._store.get_bills()
        expenses = await self._store.get_expenses()
        external = await self._store.get_external_expenses()
        return [
            compute_summary(
                month=month,
                settings=settings,
                installments=installments,
                bills=bills,
                expenses=expenses,
                external=external,
                ledger=self._store.ledger,
            )
            for month in months
        ]

    async def trend(
        self,
        end_month: str,
        settings: UserSettings,
        months: int = 6,
    ) -> list[MonthlySummary]:
        """Summaries of the `months` months ending at end_month, oldest first."""
        window = [shift_month(end_month, -offset) for offset in range(months - 1, -1, -1)]
        return await self._summaries(window, settings)

    async def compare_months(self, month: str, settings: UserSettings) -> list[MonthComparison]:
        """The month against the one before it."""
        previous, current = await self._summaries([previous_month(month), month], settings)
        return compare_summaries(previous, current)
