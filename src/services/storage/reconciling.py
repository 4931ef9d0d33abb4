"""
Reconciling Store

DESIGN DECISION: This is the only component that writes to either store.
Every operation follows one of three paths:

ONLINE:  call the remote store, then mirror the result into the local
         cache (upsert by id).
OFFLINE: skip the remote call, apply the change to the local cache and
         queue a PendingOperation in the outbox.
FAILED:  the remote call raised or timed out while nominally online.
         The change is applied locally so the UI reflects the user's
         intent, but it is NOT queued: reaching the remote store then
         needs an explicit retry by the user.

When the remote store becomes reachable again the outbox is drained in
enqueue order. A failed replay is logged and dropped; the drained batch
is always removed, whether or not every replay succeeded.

GUARANTEES:
- Public operations never raise for storage problems
- Every read has a terminal fallback (cached data, empty list, defaults)
- Deletes always remove the local record

KNOWN LIMITATIONS (accepted):
- Replaying an offline create makes a new remote document; the local
  "temp_" record is not re-keyed to it and stays in the local mirror.
- Failed online writes are not retried automatically.
"""

import asyncio
import time
from collections import defaultdict
from typing import Any, Awaitable, Optional, TypeVar
from uuid import uuid4

import structlog
from pydantic import BaseModel, ValidationError

from src.audit.logger import AuditLogger, get_audit_logger
from src.models.audit import AuditEventBuilder
from src.models.finance import (
    Budget,
    DailyExpense,
    ExternalExpense,
    ObligationKind,
    PaymentKind,
    PaymentRecord,
    RecurringObligation,
    UserSettings,
    normalize_category,
)
from src.models.sync import DrainResult, PendingOperation, PendingOperationKind
from src.services.connectivity import ConnectivityMonitor
from src.services.ledger import KindLike, PaymentLedger
from src.services.notifications import LogNotifier, Notifier
from src.services.storage.interface import (
    SETTINGS_DOCUMENT_ID,
    Collections,
    LocalStoreInterface,
    RemoteStoreInterface,
    RemoteUnavailableError,
)
from src.services.storage.local_cache import LocalCache
from src.services.storage.outbox import Outbox


logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

TEMP_ID_PREFIX = "temp_"

OBLIGATION_COLLECTIONS = {
    ObligationKind.INSTALLMENT: Collections.INSTALLMENTS,
    ObligationKind.BILL: Collections.BILLS,
}

# Identity fields live outside the document payload
_IDENTITY_FIELDS = ("id", "is_local")


def new_temp_id() -> str:
    """Time-based id for records created without the remote store."""
    return f"{TEMP_ID_PREFIX}{int(time.time() * 1000)}_{uuid4().hex[:6]}"


def is_temp_id(document_id: Optional[str]) -> bool:
    return bool(document_id) and document_id.startswith(TEMP_ID_PREFIX)


def _payload(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if k not in _IDENTITY_FIELDS}


class ReconcilingStore:
    """
    Dual-write data access over a remote store and a local mirror.

    The online flag is owned here and flipped by a ConnectivityMonitor
    (see attach). With no remote store configured the store runs
    local-only: every write takes the FAILED path, nothing is queued.
    """

    def __init__(
        self,
        remote: Optional[RemoteStoreInterface],
        local: LocalStoreInterface,
        online: bool = True,
        timeout: Optional[float] = None,
        audit_logger: Optional[AuditLogger] = None,
        notifier: Optional[Notifier] = None,
    ):
        self._remote = remote
        self._local = local
        self._cache = LocalCache(local)
        self._outbox = Outbox(local)
        self._ledger = PaymentLedger(local)
        self._online = online
        self._timeout = timeout
        self._audit = audit_logger or get_audit_logger()
        self._notifier = notifier or LogNotifier()
        # One lock per collection serializes writes (and replays) against it
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._drain_lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def online(self) -> bool:
        return self._online

    @property
    def remote(self) -> Optional[RemoteStoreInterface]:
        return self._remote

    @property
    def ledger(self) -> PaymentLedger:
        return self._ledger

    @property
    def local_store(self) -> LocalStoreInterface:
        return self._local

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    def pending_operations(self) -> list[PendingOperation]:
        """Operations waiting for the next drain, in enqueue order."""
        return self._outbox.snapshot()

    def attach(self, monitor: ConnectivityMonitor) -> None:
        """Follow a connectivity monitor; subscribe once at startup."""
        self._online = monitor.online
        monitor.subscribe(self.on_connectivity_changed)

    async def on_connectivity_changed(self, online: bool) -> None:
        """Toggle the online flag; going online drains the outbox."""
        was_online = self._online
        self._online = online
        await self._audit.log(AuditEventBuilder.connectivity_changed(online))
        if online and not was_online:
            await self.sync_pending_operations()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _call(self, awaitable: Awaitable[Any]) -> Any:
        """
        Await a remote call, bounded by the configured timeout.

        Raises:
            RemoteUnavailableError: If the call did not finish in time
        """
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError:
            raise RemoteUnavailableError(
                f"Remote call did not finish within {self._timeout}s"
            )

    async def _enqueue(self, operation: PendingOperation) -> None:
        queue_length = self._outbox.append(operation)
        await self._audit.log_operation_queued(
            collection=operation.collection,
            operation=operation.kind.value,
            entity_id=operation.document_id,
            queue_length=queue_length,
        )

    def _parse(self, model: type[ModelT], documents: list[dict[str, Any]]) -> list[ModelT]:
        """Validate documents, skipping (and logging) malformed ones."""
        parsed = []
        for document in documents:
            try:
                parsed.append(model.model_validate(document))
            except ValidationError as e:
                logger.warning(
                    "malformed_document_skipped",
                    model=model.__name__,
                    document_id=document.get("id"),
                    error=str(e),
                )
        return parsed

    # -------------------------------------------------------------------------
    # Generic primitives
    # -------------------------------------------------------------------------

    async def create(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        """Create a document; returns it with its (possibly temporary) id."""
        payload = _payload(data)
        async with self._locks[collection]:
            if self._remote is not None and self._online:
                try:
                    document = await self._call(
                        self._remote.create_document(collection, payload)
                    )
                except Exception as e:
                    await self._audit.log_remote_failure(collection, "create", e)
                else:
                    self._cache.upsert(collection, document)
                    await self._audit.log(
                        AuditEventBuilder.record_created(collection, document["id"], local=False)
                    )
                    return document

            document = {**payload, "id": new_temp_id(), "is_local": True}
            self._cache.upsert(collection, document)
            await self._audit.log(
                AuditEventBuilder.record_created(collection, document["id"], local=True)
            )
            if self._remote is not None and not self._online:
                await self._enqueue(PendingOperation.create(collection, payload))
            return document

    async def read(self, collection: str, document_id: Optional[str] = None) -> Any:
        """
        Read one document (or None) or, without an id, the whole collection.

        Online reads refresh the local mirror; offline and failed reads
        serve it.
        """
        if self._remote is not None and self._online:
            try:
                if document_id is not None:
                    document = await self._call(
                        self._remote.get_document(collection, document_id)
                    )
                    if document is not None:
                        self._cache.upsert(collection, document)
                    return document

                documents = await self._call(self._remote.list_documents(collection))
                self._cache.upsert_many(collection, documents)
                return documents
            except Exception as e:
                await self._audit.log_remote_failure(collection, "read", e, document_id)

        if document_id is not None:
            return self._cache.read_document(collection, document_id)
        return self._cache.read_collection(collection)

    async def update(
        self,
        collection: str,
        document_id: str,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        """Merge fields into a document; returns the locally merged result."""
        payload = _payload(data)
        async with self._locks[collection]:
            local_only = True
            if self._remote is not None and self._online:
                try:
                    await self._call(
                        self._remote.update_document(collection, document_id, payload)
                    )
                    local_only = False
                except Exception as e:
                    await self._audit.log_remote_failure(collection, "update", e, document_id)
            elif self._remote is not None:
                await self._enqueue(
                    PendingOperation.update(collection, document_id, payload)
                )

            merged = self._cache.merge(collection, document_id, payload)
            await self._audit.log(
                AuditEventBuilder.record_updated(collection, document_id, local=local_only)
            )
            return merged

    async def delete(self, collection: str, document_id: str) -> bool:
        """Delete a document. Always removes the local copy; always True."""
        async with self._locks[collection]:
            local_only = True
            if self._remote is not None and self._online:
                try:
                    await self._call(
                        self._remote.delete_document(collection, document_id)
                    )
                    local_only = False
                except Exception as e:
                    await self._audit.log_remote_failure(collection, "delete", e, document_id)
            elif self._remote is not None:
                await self._enqueue(PendingOperation.delete(collection, document_id))

            self._cache.remove(collection, document_id)
            await self._audit.log(
                AuditEventBuilder.record_deleted(collection, document_id, local=local_only)
            )
            return True

    async def set(
        self,
        collection: str,
        document_id: str,
        data: dict[str, Any],
        merge: bool = True,
    ) -> dict[str, Any]:
        """Upsert a document under a fixed id (settings, payment records)."""
        payload = _payload(data)
        async with self._locks[collection]:
            if self._remote is not None and self._online:
                try:
                    await self._call(
                        self._remote.set_document(collection, document_id, payload, merge=merge)
                    )
                except Exception as e:
                    await self._audit.log_remote_failure(collection, "set", e, document_id)
            elif self._remote is not None:
                await self._enqueue(
                    PendingOperation.set(collection, document_id, payload, merge=merge)
                )

            if merge:
                return self._cache.merge(collection, document_id, payload)
            document = {**payload, "id": document_id}
            self._cache.upsert(collection, document)
            return document

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    async def _replay(self, operation: PendingOperation) -> None:
        remote = self._remote
        if operation.kind == PendingOperationKind.CREATE:
            await self._call(remote.create_document(operation.collection, operation.payload))
        elif operation.kind == PendingOperationKind.UPDATE:
            await self._call(
                remote.update_document(
                    operation.collection, operation.document_id, operation.payload
                )
            )
        elif operation.kind == PendingOperationKind.DELETE:
            await self._call(
                remote.delete_document(operation.collection, operation.document_id)
            )
        elif operation.kind == PendingOperationKind.SET:
            await self._call(
                remote.set_document(
                    operation.collection,
                    operation.document_id,
                    operation.payload,
                    merge=operation.merge,
                )
            )

    async def sync_pending_operations(self) -> DrainResult:
        """
        Replay the outbox against the remote store, oldest first.

        A drain that is already running is not re-entered. Operations
        enqueued during this drain are left for the next one.
        """
        if self._drain_lock.locked():
            return DrainResult(skipped=True)

        async with self._drain_lock:
            batch = self._outbox.snapshot()
            if not batch or self._remote is None:
                return DrainResult()

            logger.info("sync_started", pending=len(batch))
            result = DrainResult(attempted=len(batch))
            try:
                for operation in batch:
                    try:
                        async with self._locks[operation.collection]:
                            await self._replay(operation)
                        result.succeeded += 1
                    except Exception as e:
                        result.failed += 1
                        await self._audit.log_replay_failed(
                            collection=operation.collection,
                            operation=operation.kind.value,
                            entity_id=operation.document_id,
                            error=e,
                        )
            finally:
                self._outbox.remove(batch)

            await self._audit.log_sync_completed(
                attempted=result.attempted,
                succeeded=result.succeeded,
                failed=result.failed,
            )
            if result.failed:
                self._notifier.notify(
                    f"Synced {result.succeeded} of {result.attempted} pending changes; "
                    f"{result.failed} could not be sent",
                    "warning",
                )
            else:
                self._notifier.notify("Data synced successfully", "success")
            return result

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    async def get_settings(self) -> UserSettings:
        """User settings, falling back to the local copy, then to defaults."""
        document = await self.read(Collections.SETTINGS, SETTINGS_DOCUMENT_ID)
        if document is None:
            document = self._cache.read_document(Collections.SETTINGS, SETTINGS_DOCUMENT_ID)
        if document is None:
            return UserSettings()
        try:
            return UserSettings.model_validate(document)
        except ValidationError as e:
            logger.warning("malformed_settings", error=str(e))
            return UserSettings()

    async def save_settings(self, settings: UserSettings) -> UserSettings:
        await self.set(
            Collections.SETTINGS,
            SETTINGS_DOCUMENT_ID,
            settings.model_dump(mode="json"),
            merge=True,
        )
        return settings

    # -------------------------------------------------------------------------
    # Installments and bills
    # -------------------------------------------------------------------------

    async def get_obligations(self, kind: ObligationKind) -> list[RecurringObligation]:
        documents = await self.read(OBLIGATION_COLLECTIONS[kind]) or []
        return self._parse(RecurringObligation, documents)

    async def add_obligation(
        self,
        kind: ObligationKind,
        obligation: RecurringObligation,
    ) -> RecurringObligation:
        document = await self.create(OBLIGATION_COLLECTIONS[kind], obligation.to_document())
        return RecurringObligation.model_validate(document)

    async def update_obligation(
        self,
        kind: ObligationKind,
        obligation_id: str,
        obligation: RecurringObligation,
    ) -> RecurringObligation:
        document = await self.update(
            OBLIGATION_COLLECTIONS[kind], obligation_id, obligation.to_document()
        )
        return RecurringObligation.model_validate(document)

    async def delete_obligation(self, kind: ObligationKind, obligation_id: str) -> bool:
        return await self.delete(OBLIGATION_COLLECTIONS[kind], obligation_id)

    async def get_installments(self) -> list[RecurringObligation]:
        return await self.get_obligations(ObligationKind.INSTALLMENT)

    async def get_bills(self) -> list[RecurringObligation]:
        return await self.get_obligations(ObligationKind.BILL)

    async def add_installment(self, installment: RecurringObligation) -> RecurringObligation:
        return await self.add_obligation(ObligationKind.INSTALLMENT, installment)

    async def add_bill(self, bill: RecurringObligation) -> RecurringObligation:
        return await self.add_obligation(ObligationKind.BILL, bill)

    # -------------------------------------------------------------------------
    # Daily expenses
    # -------------------------------------------------------------------------

    async def get_expenses(self, month: Optional[str] = None) -> list[DailyExpense]:
        """Daily expenses, optionally for one month, newest first."""
        expenses = self._parse(DailyExpense, await self.read(Collections.EXPENSES) or [])
        if month:
            expenses = [e for e in expenses if e.month == month]
        return sorted(expenses, key=lambda e: e.date, reverse=True)

    async def add_expense(self, expense: DailyExpense) -> DailyExpense:
        document = await self.create(Collections.EXPENSES, expense.to_document())
        return DailyExpense.model_validate(document)

    async def update_expense(self, expense_id: str, expense: DailyExpense) -> DailyExpense:
        document = await self.update(Collections.EXPENSES, expense_id, expense.to_document())
        return DailyExpense.model_validate(document)

    async def delete_expense(self, expense_id: str) -> bool:
        return await self.delete(Collections.EXPENSES, expense_id)

    # -------------------------------------------------------------------------
    # External expenses
    # -------------------------------------------------------------------------

    async def get_external_expenses(self, month: Optional[str] = None) -> list[ExternalExpense]:
        """External expenses, optionally for one month, newest first."""
        expenses = self._parse(ExternalExpense, await self.read(Collections.EXTERNAL) or [])
        if month:
            expenses = [e for e in expenses if e.month == month]
        return sorted(expenses, key=lambda e: e.date, reverse=True)

    async def add_external_expense(self, expense: ExternalExpense) -> ExternalExpense:
        document = await self.create(Collections.EXTERNAL, expense.to_document())
        return ExternalExpense.model_validate(document)

    async def update_external_expense(
        self,
        expense_id: str,
        expense: ExternalExpense,
    ) -> ExternalExpense:
        document = await self.update(Collections.EXTERNAL, expense_id, expense.to_document())
        return ExternalExpense.model_validate(document)

    async def delete_external_expense(self, expense_id: str) -> bool:
        return await self.delete(Collections.EXTERNAL, expense_id)

    async def toggle_external_paid(self, expense_id: str) -> Optional[ExternalExpense]:
        """Flip the paid flag of an external expense; None if it doesn't exist."""
        for expense in await self.get_external_expenses():
            if expense.id == expense_id:
                flipped = expense.model_copy(update={"paid": not expense.paid})
                return await self.update_external_expense(expense_id, flipped)
        return None

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def get_budgets(self) -> list[Budget]:
        return self._parse(Budget, await self.read(Collections.BUDGETS) or [])

    async def save_budget(self, budget: Budget) -> Budget:
        """Create a budget, or update the one with the same category."""
        wanted = normalize_category(budget.category)
        for existing in await self.get_budgets():
            if existing.normalized_category == wanted:
                document = await self.update(
                    Collections.BUDGETS, existing.id, budget.to_document()
                )
                return Budget.model_validate(document)

        document = await self.create(Collections.BUDGETS, budget.to_document())
        return Budget.model_validate(document)

    async def delete_budget(self, budget_id: str) -> bool:
        return await self.delete(Collections.BUDGETS, budget_id)

    # -------------------------------------------------------------------------
    # Payment status
    # -------------------------------------------------------------------------

    async def set_payment_status(
        self,
        kind: KindLike,
        item_id: str,
        month: str,
        paid: bool,
    ) -> bool:
        """Record paid/unpaid for (kind, item, month) in the ledger and remotely."""
        record = PaymentRecord(kind=PaymentKind(kind), item_id=item_id, month=month, paid=paid)
        self._ledger.set_paid(record.kind, item_id, month, paid)
        await self.set(
            Collections.PAYMENTS,
            record.document_id,
            record.model_dump(mode="json"),
            merge=True,
        )
        await self._audit.log_payment_status(record.kind.value, item_id, month, paid)
        return True

    async def get_payment_status(self, kind: KindLike, item_id: str, month: str) -> bool:
        """Paid flag, preferring the remote record when one is reachable."""
        record = PaymentRecord(kind=PaymentKind(kind), item_id=item_id, month=month)
        if self._remote is not None and self._online:
            document = await self.read(Collections.PAYMENTS, record.document_id)
            if document is not None and "paid" in document:
                return bool(document["paid"])
        return self._ledger.is_paid(record.kind, item_id, month)

    async def toggle_payment_status(self, kind: KindLike, item_id: str, month: str) -> bool:
        """Flip the paid flag; returns the new value."""
        new_value = not self._ledger.is_paid(kind, item_id, month)
        await self.set_payment_status(kind, item_id, month, new_value)
        return new_value
