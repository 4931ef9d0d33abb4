"""
Payment Ledger

Paid/unpaid state for (kind, item, month) triples, kept as one JSON
object in the local store under "pf_paid":

    {"bill:abc123:2024-03": true, "installment:xyz:2024-03": false}

Unpaid is the default: a key that was never written reads as False.
There is no delete; entries of removed items are harmless leftovers.
"""

from typing import Union

from src.models.finance import ObligationKind, PaymentKind, PaymentRecord
from src.services.storage.interface import LocalKeys, LocalStoreInterface
from src.services.storage.local_cache import LocalCache


KindLike = Union[PaymentKind, ObligationKind, str]


def ledger_key(kind: KindLike, item_id: str, month: str) -> str:
    kind_value = kind.value if hasattr(kind, "value") else str(kind)
    return f"{kind_value}:{item_id}:{month}"


class PaymentLedger:
    """Read/write access to the persisted paid-map."""

    def __init__(self, store: LocalStoreInterface):
        self._cache = LocalCache(store)

    def _paid_map(self) -> dict[str, bool]:
        stored = self._cache.read_json(LocalKeys.PAID, {})
        return stored if isinstance(stored, dict) else {}

    def is_paid(self, kind: KindLike, item_id: str, month: str) -> bool:
        return bool(self._paid_map().get(ledger_key(kind, item_id, month), False))

    def set_paid(self, kind: KindLike, item_id: str, month: str, value: bool) -> None:
        paid_map = self._paid_map()
        paid_map[ledger_key(kind, item_id, month)] = bool(value)
        self._cache.write_json(LocalKeys.PAID, paid_map)

    def has_entry(self, kind: KindLike, item_id: str, month: str) -> bool:
        """Whether a value was ever written for this triple."""
        return ledger_key(kind, item_id, month) in self._paid_map()

    def records(self) -> list[PaymentRecord]:
        """All entries with a well-formed key, as PaymentRecords."""
        records = []
        for key, paid in self._paid_map().items():
            kind, _, rest = key.partition(":")
            item_id, _, month = rest.rpartition(":")
            try:
                records.append(
                    PaymentRecord(kind=kind, item_id=item_id, month=month, paid=bool(paid))
                )
            except ValueError:
                continue
        return records
