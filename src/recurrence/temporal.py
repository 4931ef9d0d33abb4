"""
Temporal Rules

Pure month arithmetic for recurring obligations. Months are "YYYY-MM"
strings, which compare correctly as strings; an unbounded recurrence
window ends at the sentinel month "9999-12" so callers never special-case
a missing end date.

Every function that depends on the current date takes an optional
`today` so it can be pinned in tests.
"""

import calendar
import re
from datetime import date
from decimal import Decimal
from typing import Optional, Union

from src.models.finance import RecurringObligation


MAX_MONTH = "9999-12"

_MONTH_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def parse_month(yyyymm: str) -> tuple[int, int]:
    """
    Split a "YYYY-MM" string into (year, month).

    Raises:
        ValueError: If the string is not a valid month
    """
    match = _MONTH_RE.match(yyyymm or "")
    if not match:
        raise ValueError(f"Invalid month: {yyyymm!r} (expected YYYY-MM)")
    return int(match.group(1)), int(match.group(2))


def format_month(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def month_of(value: Union[date, str]) -> str:
    """Month of a date or ISO date string."""
    if isinstance(value, date):
        return value.isoformat()[:7]
    return str(value)[:7]


def current_month(today: Optional[date] = None) -> str:
    today = today or date.today()
    return month_of(today)


def shift_month(yyyymm: str, delta: int) -> str:
    """Move a month forward (delta > 0) or back (delta < 0)."""
    year, month = parse_month(yyyymm)
    index = year * 12 + (month - 1) + delta
    return format_month(index // 12, index % 12 + 1)


def previous_month(yyyymm: str) -> str:
    """The month before, rolling January back to December."""
    year, month = parse_month(yyyymm)
    if month == 1:
        return format_month(year - 1, 12)
    return format_month(year, month - 1)


def first_day(yyyymm: str) -> date:
    year, month = parse_month(yyyymm)
    return date(year, month, 1)


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def is_within_recurrence_window(
    start: Union[date, str],
    end: Optional[Union[date, str]],
    target_month: str,
) -> bool:
    """True iff month(start) <= target_month <= month(end or forever)."""
    end_month = month_of(end) if end else MAX_MONTH
    return month_of(start) <= target_month <= end_month


def due_for_month(item: RecurringObligation, target_month: str) -> Optional[Decimal]:
    """
    Amount due in target_month, or None when the item is not due.

    None (not zero) is the internal "not due" signal.
    """
    if is_within_recurrence_window(item.start, item.end, target_month):
        return item.amount
    return None


def due_amount_for_month(item: RecurringObligation, target_month: str) -> Decimal:
    """Amount due in target_month, with 0 meaning not due."""
    due = due_for_month(item, target_month)
    return due if due is not None else Decimal("0")


def effective_due_day(item: RecurringObligation, target_month: str) -> int:
    """Configured due day clamped to the month's length; last day if unset."""
    year, month = parse_month(target_month)
    last = last_day_of_month(year, month)
    return min(item.due_day or last, last)


def due_date(item: RecurringObligation, target_month: str) -> date:
    year, month = parse_month(target_month)
    return date(year, month, effective_due_day(item, target_month))


def days_until_due(
    item: RecurringObligation,
    target_month: str,
    today: Optional[date] = None,
) -> int:
    """
    Calendar days from today to the item's due date in target_month.

    Negative means overdue, 0 means due today.
    """
    today = today or date.today()
    return (due_date(item, target_month) - today).days
