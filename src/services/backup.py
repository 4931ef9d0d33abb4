"""
Export and Backup

CSV export of daily expenses for spreadsheets, and a JSON backup of the
local dataset. The backup covers the collection mirrors, settings and the
payment ledger; the outbox is deliberately left out so a restored backup
never replays somebody else's pending writes.

Import only overwrites the keys present in the backup. Keys missing from
it keep their current value.
"""

import csv
import io
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

import structlog

from src.models.finance import DailyExpense
from src.services.storage.interface import LocalKeys, LocalStoreInterface
from src.services.storage.local_cache import LocalCache


logger = structlog.get_logger(__name__)

CSV_HEADER = ["date", "category", "note", "payment_method", "amount"]

# Lets spreadsheet apps detect UTF-8
UTF8_BOM = "\ufeff"

BACKUP_VERSION = 1


def _matches(expense: DailyExpense, search: Optional[str]) -> bool:
    if not search:
        return True
    needle = search.strip().lower()
    return needle in expense.category.lower() or needle in (expense.note or "").lower()


def export_expenses_csv(
    expenses: Iterable[DailyExpense],
    month: Optional[str] = None,
    search: Optional[str] = None,
) -> str:
    """
    Daily expenses as CSV text with every field quoted.

    Args:
        expenses: Expenses to export
        month: Only export this "YYYY-MM" month (all months when None)
        search: Case-insensitive filter on category and note
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)

    for expense in expenses:
        if month and expense.month != month:
            continue
        if not _matches(expense, search):
            continue
        writer.writerow([
            expense.date.isoformat(),
            expense.category,
            expense.note or "",
            expense.payment_method.value,
            str(expense.amount),
        ])

    return UTF8_BOM + buffer.getvalue()


def export_backup(local_store: LocalStoreInterface) -> dict[str, Any]:
    """Snapshot of every backed-up local key that currently holds data."""
    cache = LocalCache(local_store)
    data = {}
    for key in LocalKeys.all_keys():
        if local_store.get_item(key) is not None:
            data[key] = cache.read_json(key, None)

    return {
        "version": BACKUP_VERSION,
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }


def import_backup(local_store: LocalStoreInterface, backup: dict[str, Any]) -> list[str]:
    """
    Restore keys from a backup produced by export_backup.

    Unknown keys are ignored. Returns the keys that were written.

    Raises:
        ValueError: If the backup has no "data" object
    """
    data = backup.get("data")
    if not isinstance(data, dict):
        raise ValueError("Backup file has no data section")

    cache = LocalCache(local_store)
    allowed = set(LocalKeys.all_keys())
    written = []
    for key, value in data.items():
        if key not in allowed:
            logger.warning("backup_key_ignored", key=key)
            continue
        cache.write_json(key, value)
        written.append(key)

    logger.info("backup_imported", keys=written)
    return written
