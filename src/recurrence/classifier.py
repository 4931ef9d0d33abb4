"""
Recurrence Classifier

Decides how a recurring obligation looks in a given month: how much is
due, whether it is paid, how urgent it is, and where it sorts.

Sort order is a display contract: most urgent unresolved items first,
then by effective due day, then by name. The name makes the key total,
so two distinct items never tie ambiguously.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from src.models.finance import (
    ObligationKind,
    ObligationView,
    RecurringObligation,
    StatusTag,
)
from src.recurrence.temporal import (
    current_month,
    days_until_due,
    due_amount_for_month,
    effective_due_day,
)
from src.services.ledger import PaymentLedger


DUE_SOON_DAYS = 3

STATUS_PRIORITY = {
    StatusTag.OVERDUE: 0,
    StatusTag.DUE_SOON: 1,
    StatusTag.PENDING: 2,
    StatusTag.UPCOMING: 2,
    StatusTag.PAID: 4,
    StatusTag.NOT_DUE: 5,
}


def status_of(
    paid: bool,
    due_amount: Decimal,
    item: RecurringObligation,
    month: str,
    today: Optional[date] = None,
) -> StatusTag:
    """Status tag for an item in a month; the first matching rule wins."""
    if not due_amount:
        return StatusTag.NOT_DUE
    if paid:
        return StatusTag.PAID

    this_month = current_month(today)
    if month < this_month:
        return StatusTag.OVERDUE
    if month > this_month:
        return StatusTag.UPCOMING

    days = days_until_due(item, month, today=today)
    if days < 0:
        return StatusTag.OVERDUE
    if days <= DUE_SOON_DAYS:
        return StatusTag.DUE_SOON
    return StatusTag.PENDING


def sort_key(
    kind: ObligationKind,
    item: RecurringObligation,
    month: str,
    ledger: PaymentLedger,
    today: Optional[date] = None,
) -> tuple[int, int, str]:
    """(priority, effective due day, name) for ascending display order."""
    due_amount = due_amount_for_month(item, month)
    paid = ledger.is_paid(kind, item.id, month)
    status = status_of(paid, due_amount, item, month, today=today)
    return (
        STATUS_PRIORITY[status],
        effective_due_day(item, month),
        item.name or "",
    )


def classify(
    kind: ObligationKind,
    item: RecurringObligation,
    month: str,
    ledger: PaymentLedger,
    today: Optional[date] = None,
) -> ObligationView:
    """Bundle due amount, paid state, status and sort key for one item."""
    due_amount = due_amount_for_month(item, month)
    paid = ledger.is_paid(kind, item.id, month)
    status = status_of(paid, due_amount, item, month, today=today)
    return ObligationView(
        kind=kind,
        item=item,
        month=month,
        due_amount=due_amount,
        paid=paid,
        status=status,
        days_until_due=days_until_due(item, month, today=today),
        sort_key=(
            STATUS_PRIORITY[status],
            effective_due_day(item, month),
            item.name or "",
        ),
    )


def sort_obligations(
    kind: ObligationKind,
    items: Iterable[RecurringObligation],
    month: str,
    ledger: PaymentLedger,
    today: Optional[date] = None,
) -> list[ObligationView]:
    """Classify items and return them in display order."""
    views = [classify(kind, item, month, ledger, today=today) for item in items]
    return sorted(views, key=lambda view: view.sort_key)
