"""
Main Orchestrator for Household Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Month view (settings → auto-settle → rollover → classify → summarize)
2. Entry (form values → validate → save → budget check)

DESIGN DECISION: The orchestrator owns the ORDER of operations:
- Automatic actions run before anything is classified, so the lists and
  totals already reflect what they changed
- Nothing is saved unless validation found no errors
- Budget warnings are evaluated after the expense is stored

The UI only calls into these flows and renders what they return.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional

import structlog
from pydantic import BaseModel, Field

from src.audit import AuditLogger, configure_logging, get_audit_logger
from src.config import get_settings
from src.models.finance import (
    Budget,
    BudgetStatus,
    DailyExpense,
    ExternalExpense,
    MonthlySummary,
    ObligationKind,
    ObligationView,
    PaymentMethod,
    RecurringObligation,
    UserSettings,
    ValidationResult,
)
from src.recurrence.classifier import sort_obligations
from src.reports.aggregator import MonthlyAggregator, compute_summary
from src.reports.analysis import (
    budget_statuses,
    budget_warning_message,
    check_budget_warning,
    count_alerts,
    expense_distribution,
)
from src.services.connectivity import ConnectivityMonitor
from src.services.notifications import Notifier
from src.services.storage import (
    Collections,
    GoogleSheetsRemoteStore,
    JsonFileLocalStore,
    ReconcilingStore,
    RemoteStoreInterface,
)
from src.validation import EntryValidator


logger = structlog.get_logger(__name__)


class MonthView(BaseModel):
    """Everything the dashboard renders for one month."""

    month: str
    settings: UserSettings
    installments: list[ObligationView] = Field(default_factory=list)
    bills: list[ObligationView] = Field(default_factory=list)
    expenses: list[DailyExpense] = Field(default_factory=list)
    external: list[ExternalExpense] = Field(default_factory=list)
    summary: MonthlySummary
    alerts: int = 0
    budgets: list[BudgetStatus] = Field(default_factory=list)
    distribution: list[tuple[str, Decimal]] = Field(default_factory=list)
    auto_settled: int = 0
    rolled_over: int = 0


class MonthViewFlow:
    """
    Orchestrates loading a month.

    Flow:
    1. Settings → load (defaults if none stored)
    2. Auto-settle → only if enabled
    3. Rollover → only if enabled
    4. Classify → installments and bills in display order
    5. Summarize → totals, alerts, budgets, distribution
    """

    def __init__(
        self,
        store: ReconcilingStore,
        aggregator: Optional[MonthlyAggregator] = None,
        warning_ratio: float = 0.8,
    ):
        self._store = store
        self._aggregator = aggregator or MonthlyAggregator(store)
        self._warning_ratio = warning_ratio

    async def load(self, month: str, today: Optional[date] = None) -> MonthView:
        settings = await self._store.get_settings()

        auto_settled = 0
        if settings.auto_settle:
            auto_settled = await self._aggregator.auto_deduct_if_due(month, today=today)

        rolled_over = 0
        if settings.rollover:
            rolled_over = len(await self._aggregator.rollover_arrears(month))

        installments = await self._store.get_installments()
        bills = await self._store.get_bills()
        expenses = await self._store.get_expenses(month)
        external = await self._store.get_external_expenses(month)
        ledger = self._store.ledger

        summary = compute_summary(
            month=month,
            settings=settings,
            installments=installments,
            bills=bills,
            expenses=expenses,
            external=external,
            ledger=ledger,
        )

        return MonthView(
            month=month,
            settings=settings,
            installments=sort_obligations(
                ObligationKind.INSTALLMENT, installments, month, ledger, today=today
            ),
            bills=sort_obligations(
                ObligationKind.BILL, bills, month, ledger, today=today
            ),
            expenses=expenses,
            external=external,
            summary=summary,
            alerts=count_alerts(installments, bills, month, ledger, today=today),
            budgets=budget_statuses(
                await self._store.get_budgets(), expenses, month, self._warning_ratio
            ),
            distribution=expense_distribution(summary),
            auto_settled=auto_settled,
            rolled_over=rolled_over,
        )


class EntryFlow:
    """
    Orchestrates adding records from form input.

    Each method returns the saved record (None when validation failed)
    together with the ValidationResult, so the UI can show every issue.
    """

    def __init__(
        self,
        store: ReconcilingStore,
        validator: Optional[EntryValidator] = None,
        warning_ratio: float = 0.8,
    ):
        self._store = store
        self._validator = validator or EntryValidator()
        self._warning_ratio = warning_ratio

    @property
    def validator(self) -> EntryValidator:
        return self._validator

    async def add_obligation(
        self,
        kind: ObligationKind,
        name: str,
        amount: Any,
        start: Optional[date],
        end: Optional[date] = None,
        due_day: Optional[int] = None,
    ) -> tuple[Optional[RecurringObligation], ValidationResult]:
        result = self._validator.validate_obligation(name, amount, start, end, due_day)
        if not result.is_valid:
            return None, result

        saved = await self._store.add_obligation(kind, RecurringObligation(
            name=name,
            amount=Decimal(str(amount)),
            start=start,
            end=end,
            due_day=due_day,
        ))
        return saved, result

    async def add_expense(
        self,
        expense_date: Optional[date],
        category: str,
        amount: Any,
        note: Optional[str] = None,
        payment_method: Any = PaymentMethod.CASH,
    ) -> tuple[Optional[DailyExpense], ValidationResult]:
        """Save a daily expense, then warn if its category budget is running out."""
        result = self._validator.validate_daily_expense(
            expense_date, category, amount, payment_method
        )
        if not result.is_valid:
            return None, result

        saved = await self._store.add_expense(DailyExpense(
            date=expense_date,
            category=category,
            note=note or None,
            amount=Decimal(str(amount)),
            payment_method=PaymentMethod(payment_method),
        ))
        await self._check_budget(saved.category, saved.month)
        return saved, result

    async def _check_budget(self, category: str, month: str) -> None:
        status = check_budget_warning(
            category,
            await self._store.get_budgets(),
            await self._store.get_expenses(month),
            month,
            self._warning_ratio,
        )
        if status is not None:
            level = "danger" if status.percentage >= 100 else "warning"
            self._store.notifier.notify(budget_warning_message(status), level)

    async def add_external_expense(
        self,
        expense_date: Optional[date],
        category: str,
        amount: Any,
        note: Optional[str] = None,
        paid: bool = False,
    ) -> tuple[Optional[ExternalExpense], ValidationResult]:
        result = self._validator.validate_external_expense(expense_date, category, amount)
        if not result.is_valid:
            return None, result

        saved = await self._store.add_external_expense(ExternalExpense(
            date=expense_date,
            category=category,
            note=note or None,
            amount=Decimal(str(amount)),
            paid=paid,
        ))
        return saved, result

    async def save_budget(
        self,
        category: str,
        limit: Any,
    ) -> tuple[Optional[Budget], ValidationResult]:
        result = self._validator.validate_budget(category, limit)
        if not result.is_valid:
            return None, result

        saved = await self._store.save_budget(
            Budget(category=category, limit=Decimal(str(limit)))
        )
        return saved, result


def create_remote_store() -> Optional[RemoteStoreInterface]:
    """Google Sheets remote store, or None when it is not configured."""
    try:
        return GoogleSheetsRemoteStore()
    except Exception as e:
        # Not configured - run local-only
        logger.warning("remote_store_not_configured", error=str(e))
        return None


def create_app_components(
    use_remote: bool = True,
    notifier: Optional[Notifier] = None,
    audit_logger: Optional[AuditLogger] = None,
    remote: Optional[RemoteStoreInterface] = None,
) -> tuple[ReconcilingStore, ConnectivityMonitor, MonthViewFlow, EntryFlow]:
    """
    Factory function to create all application components.

    Args:
        use_remote: Whether to connect the Google Sheets remote store.
                    Set to False to run purely on the local store.
        notifier: Where user notifications go (defaults to the log)
        audit_logger: Audit logger (defaults to the shared one)
        remote: Remote store to use instead of Google Sheets

    Returns:
        (store, connectivity_monitor, month_view_flow, entry_flow)
    """
    app_settings = get_settings().app
    configure_logging(debug=app_settings.debug_mode)

    if remote is None and use_remote:
        remote = create_remote_store()

    local_path = app_settings.local_store_file
    local_path.parent.mkdir(parents=True, exist_ok=True)
    local = JsonFileLocalStore(local_path)

    monitor = ConnectivityMonitor(online=app_settings.start_online)
    store = ReconcilingStore(
        remote=remote,
        local=local,
        online=app_settings.start_online,
        timeout=app_settings.remote_timeout_seconds,
        audit_logger=audit_logger or get_audit_logger(),
        notifier=notifier,
    )
    store.attach(monitor)

    month_view_flow = MonthViewFlow(store, warning_ratio=app_settings.budget_warning_ratio)
    entry_flow = EntryFlow(store, warning_ratio=app_settings.budget_warning_ratio)

    logger.info(
        "app_components_created",
        remote=type(remote).__name__ if remote else None,
        local_store=str(local_path),
    )
    return store, monitor, month_view_flow, entry_flow


async def probe_remote(
    store: ReconcilingStore,
    monitor: ConnectivityMonitor,
    timeout: Optional[float] = None,
) -> bool:
    """Check the store's remote backend and report the outcome to the monitor."""
    remote = store.remote
    if remote is None:
        return False
    return await monitor.probe(
        lambda: remote.list_documents(Collections.SETTINGS),
        timeout=timeout,
    )
