"""
Monthly Aggregator

DESIGN DECISION: The arithmetic is a PURE function (compute_summary) over
records that have already been loaded. MonthlyAggregator only loads the
records from the store and runs the two automatic actions that write:

AUTO-SETTLE: every due, unpaid obligation whose due date has arrived is
             marked paid. Never marks anything unpaid.
ROLLOVER:    every obligation left unpaid last month becomes an unpaid
             external expense dated the 1st of this month. Idempotent:
             an external expense with the same note in this month blocks
             a second copy.

Cash mode is passed in explicitly (via UserSettings) rather than read
from global state, so the same records can be summarized either way.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

import structlog

from src.audit.logger import AuditLogger, get_audit_logger
from src.models.audit import AuditEventBuilder
from src.models.finance import (
    DailyExpense,
    ExternalExpense,
    MonthlySummary,
    ObligationKind,
    RecurringObligation,
    UserSettings,
)
from src.recurrence.temporal import (
    days_until_due,
    due_for_month,
    first_day,
    previous_month,
)
from src.services.ledger import PaymentLedger
from src.services.storage.reconciling import ReconcilingStore


logger = structlog.get_logger(__name__)

ROLLOVER_CATEGORY = "Rollover arrears"


def rollover_note(item: RecurringObligation, from_month: str) -> str:
    return f"{item.name} ({from_month})"


def _recurring_total(
    kind: ObligationKind,
    items: Iterable[RecurringObligation],
    month: str,
    ledger: PaymentLedger,
    cash_mode: bool,
) -> Decimal:
    total = Decimal("0")
    for item in items:
        due = due_for_month(item, month)
        if due is None:
            continue
        if cash_mode and not ledger.is_paid(kind, item.id, month):
            continue
        total += due
    return total


def compute_summary(
    month: str,
    settings: UserSettings,
    installments: Iterable[RecurringObligation],
    bills: Iterable[RecurringObligation],
    expenses: Iterable[DailyExpense],
    external: Iterable[ExternalExpense],
    ledger: PaymentLedger,
) -> MonthlySummary:
    """
    Income, expense components and savings for one month.

    In cash mode unpaid obligations and unpaid external expenses count
    as zero; daily expenses always count.
    """
    cash_mode = settings.cash_mode
    return MonthlySummary(
        month=month,
        income=settings.salary,
        installments_total=_recurring_total(
            ObligationKind.INSTALLMENT, installments, month, ledger, cash_mode
        ),
        bills_total=_recurring_total(
            ObligationKind.BILL, bills, month, ledger, cash_mode
        ),
        daily_expense_total=sum(
            (e.amount for e in expenses if e.month == month), Decimal("0")
        ),
        external_total=sum(
            (
                e.amount for e in external
                if e.month == month and (e.paid or not cash_mode)
            ),
            Decimal("0"),
        ),
        saving_target=settings.saving_target,
    )


class MonthlyAggregator:
    """Loads a month's records and derives its summary and automatic actions."""

    def __init__(
        self,
        store: ReconcilingStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit = audit_logger or get_audit_logger()

    @property
    def ledger(self) -> PaymentLedger:
        return self._store.ledger

    async def _obligations(self) -> list[tuple[ObligationKind, RecurringObligation]]:
        pairs = []
        for kind in (ObligationKind.INSTALLMENT, ObligationKind.BILL):
            pairs += [(kind, item) for item in await self._store.get_obligations(kind)]
        return pairs

    async def summarize(self, month: str, settings: UserSettings) -> MonthlySummary:
        return compute_summary(
            month=month,
            settings=settings,
            installments=await self._store.get_installments(),
            bills=await self._store.get_bills(),
            expenses=await self._store.get_expenses(month),
            external=await self._store.get_external_expenses(month),
            ledger=self.ledger,
        )

    async def auto_deduct_if_due(self, month: str, today: Optional[date] = None) -> int:
        """
        Mark due, unpaid obligations whose due date has arrived as paid.

        Returns the number of obligations settled.
        """
        settled = []
        for kind, item in await self._obligations():
            if not item.id or not due_for_month(item, month):
                continue
            if self.ledger.is_paid(kind, item.id, month):
                continue
            if days_until_due(item, month, today=today) <= 0:
                await self._store.set_payment_status(kind, item.id, month, True)
                settled.append(item.id)

        if settled:
            logger.info("auto_settled", month=month, count=len(settled))
            await self._audit.log(AuditEventBuilder.auto_settled(month, settled))
            self._store.notifier.notify(
                f"Automatically settled {len(settled)} item(s)", "success"
            )
        return len(settled)

    async def rollover_arrears(self, month: str) -> list[ExternalExpense]:
        """
        Carry last month's unpaid obligations into this month.

        Returns the external expenses created by this call.
        """
        prev = previous_month(month)
        existing_notes = {
            e.note for e in await self._store.get_external_expenses(month)
        }

        created = []
        for kind, item in await self._obligations():
            due = due_for_month(item, prev)
            if not item.id or not due:
                continue
            if self.ledger.is_paid(kind, item.id, prev):
                continue

            note = rollover_note(item, prev)
            if note in existing_notes:
                continue

            record = await self._store.add_external_expense(ExternalExpense(
                date=first_day(month),
                category=ROLLOVER_CATEGORY,
                note=note,
                amount=due,
                paid=False,
            ))
            existing_notes.add(note)
            created.append(record)

        if created:
            logger.info("rollover_created", month=month, count=len(created))
            await self._audit.log(
                AuditEventBuilder.rollover_created(month, [r.note for r in created])
            )
            self._store.notifier.notify(
                f"Rolled over {len(created)} overdue item(s)", "warning"
            )
        return created
