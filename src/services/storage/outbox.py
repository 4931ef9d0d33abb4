"""
Outbox of Pending Remote Writes

Operations are kept in enqueue order in the local store under
"pf_outbox", so writes made offline survive a restart. A drain takes a
snapshot, replays it, and then removes exactly the snapshotted operations;
anything enqueued while the drain was running waits for the next one.
"""

from typing import Iterable
from uuid import UUID

import structlog
from pydantic import ValidationError

from src.models.sync import PendingOperation
from src.services.storage.interface import LocalKeys, LocalStoreInterface
from src.services.storage.local_cache import LocalCache


logger = structlog.get_logger(__name__)


class Outbox:
    """Persistent FIFO of PendingOperations."""

    def __init__(self, store: LocalStoreInterface):
        self._cache = LocalCache(store)
        self._operations: list[PendingOperation] = self._load()

    def _load(self) -> list[PendingOperation]:
        stored = self._cache.read_json(LocalKeys.OUTBOX, [])
        if not isinstance(stored, list):
            return []
        operations = []
        for raw in stored:
            try:
                operations.append(PendingOperation.model_validate(raw))
            except ValidationError as e:
                logger.error("outbox_entry_dropped", error=str(e))
        return operations

    def _save(self) -> None:
        self._cache.write_json(
            LocalKeys.OUTBOX,
            [op.model_dump(mode="json") for op in self._operations],
        )

    def __len__(self) -> int:
        return len(self._operations)

    def append(self, operation: PendingOperation) -> int:
        """Add an operation; returns the new queue length."""
        self._operations.append(operation)
        self._save()
        return len(self._operations)

    def snapshot(self) -> list[PendingOperation]:
        """Current operations in enqueue order."""
        return list(self._operations)

    def remove(self, operations: Iterable[PendingOperation]) -> None:
        """Drop the given operations, keeping any enqueued since."""
        done: set[UUID] = {op.operation_id for op in operations}
        self._operations = [
            op for op in self._operations if op.operation_id not in done
        ]
        self._save()
