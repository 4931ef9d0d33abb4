"""Recurrence rules and classification for recurring obligations."""

from src.recurrence.classifier import (
    DUE_SOON_DAYS,
    classify,
    sort_key,
    sort_obligations,
    status_of,
)
from src.recurrence.temporal import (
    current_month,
    days_until_due,
    due_amount_for_month,
    due_for_month,
    effective_due_day,
    is_within_recurrence_window,
    last_day_of_month,
    month_of,
    parse_month,
    previous_month,
    shift_month,
)

__all__ = [
    "DUE_SOON_DAYS",
    "classify",
    "current_month",
    "days_until_due",
    "due_amount_for_month",
    "due_for_month",
    "effective_due_day",
    "is_within_recurrence_window",
    "last_day_of_month",
    "month_of",
    "parse_month",
    "previous_month",
    "shift_month",
    "sort_key",
    "sort_obligations",
    "status_of",
]
