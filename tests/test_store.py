"""
Tests for the reconciling store.

Covers the three write paths (online, offline, failed), read fallbacks,
outbox draining and the convenience wrappers.
"""

import asyncio
import json
import time

import pytest
from datetime import date
from decimal import Decimal

from src.models.finance import (
    Budget,
    DailyExpense,
    ExternalExpense,
    ObligationKind,
    PaymentKind,
    UserSettings,
)
from src.models.sync import PendingOperation, PendingOperationKind
from src.services.connectivity import ConnectivityMonitor
from src.services.storage import (
    Collections,
    InMemoryLocalStore,
    InMemoryRemoteStore,
    LocalKeys,
    ReconcilingStore,
    StorageError,
    is_temp_id,
)
from src.services.storage.google_sheets import GoogleSheetsRemoteStore


def expense(day=date(2024, 3, 5), category="Food", amount="20", note=None):
    return DailyExpense(date=day, category=category, amount=Decimal(amount), note=note)


class SlowRemoteStore(InMemoryRemoteStore):
    """Remote store whose creates take a while."""

    def __init__(self, delay: float):
        super().__init__()
        self._delay = delay

    async def create_document(self, collection, data):
        await asyncio.sleep(self._delay)
        return await super().create_document(collection, data)


class BlockingSheetsClient:
    """Sheets client that hangs in a blocking call, like a stalled HTTP request."""

    def __init__(self, delay: float):
        self._delay = delay

    def get_collection_sheet(self, collection):
        time.sleep(self._delay)
        raise StorageError("sheet unavailable")


class RecordingSetRemote(InMemoryRemoteStore):
    """Remote store that records the merge flag of every set."""

    def __init__(self):
        super().__init__()
        self.set_calls = []

    async def set_document(self, collection, document_id, data, merge=False):
        self.set_calls.append((collection, document_id, merge))
        await super().set_document(collection, document_id, data, merge=merge)


class TestOnlinePath:
    """Writes go to the remote store and are mirrored locally."""

    @pytest.mark.asyncio
    async def test_create_uses_remote_id(self, store, remote_store, local_store):
        created = await store.create(Collections.BILLS, {"name": "Water"})

        assert not is_temp_id(created["id"])
        assert created["created_at"].endswith("+00:00")
        assert remote_store.count(Collections.BILLS) == 1
        assert created["id"] in local_store.get_item(LocalKeys.for_collection(Collections.BILLS))
        assert store.pending_operations() == []

    @pytest.mark.asyncio
    async def test_read_refreshes_local_mirror(self, make_store, remote_store, local_store):
        await remote_store.create_document(Collections.BILLS, {"name": "Power"})
        store = make_store(remote=remote_store)

        documents = await store.read(Collections.BILLS)

        assert [d["name"] for d in documents] == ["Power"]
        assert "Power" in local_store.get_item("pf_bills")

    @pytest.mark.asyncio
    async def test_update_and_delete(self, store, remote_store):
        created = await store.create(Collections.BILLS, {"name": "Water", "amount": "10"})

        merged = await store.update(Collections.BILLS, created["id"], {"amount": "12"})
        assert merged["amount"] == "12"
        assert merged["name"] == "Water"
        remote = await remote_store.get_document(Collections.BILLS, created["id"])
        assert remote["amount"] == "12"

        assert await store.delete(Collections.BILLS, created["id"]) is True
        assert remote_store.count(Collections.BILLS) == 0
        assert await store.read(Collections.BILLS) == []

    @pytest.mark.asyncio
    async def test_read_single_document(self, store):
        created = await store.create(Collections.BILLS, {"name": "Water"})
        assert (await store.read(Collections.BILLS, created["id"]))["name"] == "Water"
        assert await store.read(Collections.BILLS, "missing") is None


class TestOfflinePath:
    """Writes are applied locally and queued for later."""

    @pytest.mark.asyncio
    async def test_create_gets_temp_id_and_is_queued(self, make_store, remote_store):
        store = make_store(remote=remote_store, online=False)

        created = await store.create(Collections.EXPENSES, {"category": "Food"})

        assert is_temp_id(created["id"])
        assert created["is_local"] is True
        assert remote_store.count(Collections.EXPENSES) == 0
        pending = store.pending_operations()
        assert len(pending) == 1
        assert pending[0].kind == PendingOperationKind.CREATE
        assert "id" not in pending[0].payload

    @pytest.mark.asyncio
    async def test_update_and_delete_are_queued_in_order(self, make_store, remote_store):
        store = make_store(remote=remote_store, online=False)

        await store.update(Collections.BILLS, "b1", {"amount": "5"})
        await store.delete(Collections.BILLS, "b2")

        kinds = [op.kind for op in store.pending_operations()]
        assert kinds == [PendingOperationKind.UPDATE, PendingOperationKind.DELETE]

    @pytest.mark.asyncio
    async def test_reads_are_served_locally(self, make_store, remote_store):
        store = make_store(remote=remote_store, online=False)
        await store.create(Collections.BILLS, {"name": "Water"})

        documents = await store.read(Collections.BILLS)

        assert [d["name"] for d in documents] == ["Water"]

    @pytest.mark.asyncio
    async def test_outbox_survives_restart(self, make_store, remote_store, local_store):
        store = make_store(remote=remote_store, online=False)
        await store.create(Collections.BILLS, {"name": "Water"})

        restarted = make_store(remote=remote_store, online=False)

        assert len(restarted.pending_operations()) == 1


class TestFailurePath:
    """Remote failures degrade to local data and are not queued."""

    @pytest.mark.asyncio
    async def test_failed_create_applies_locally_without_queueing(self, make_store, failing_remote):
        store = make_store(remote=failing_remote)

        created = await store.create(Collections.BILLS, {"name": "Water"})

        assert is_temp_id(created["id"])
        assert store.pending_operations() == []
        assert [d["name"] for d in await store.read(Collections.BILLS)] == ["Water"]

    @pytest.mark.asyncio
    async def test_failed_update_and_delete_apply_locally(self, make_store, failing_remote):
        store = make_store(remote=failing_remote)
        created = await store.create(Collections.BILLS, {"name": "Water"})

        merged = await store.update(Collections.BILLS, created["id"], {"name": "Water & sewer"})
        assert merged["name"] == "Water & sewer"
        assert await store.delete(Collections.BILLS, created["id"]) is True
        assert await store.read(Collections.BILLS) == []
        assert store.pending_operations() == []

    @pytest.mark.asyncio
    async def test_failure_is_audited(self, make_store, failing_remote, audit_logger):
        store = make_store(remote=failing_remote)
        await store.read(Collections.BILLS)

        events = audit_logger.recent_events()
        assert events[0].event_type.value == "remote_call_failed"

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, make_store, audit_logger):
        store = make_store(remote=SlowRemoteStore(delay=1), timeout=0.01)

        created = await store.create(Collections.BILLS, {"name": "Water"})

        assert is_temp_id(created["id"])
        assert store.pending_operations() == []
        failures = [
            e for e in audit_logger.recent_events()
            if e.event_type.value == "remote_call_failed"
        ]
        assert "did not finish within 0.01s" in failures[0].error_message

    @pytest.mark.asyncio
    async def test_timeout_bounds_blocking_sheets_calls(self, make_store):
        remote = GoogleSheetsRemoteStore(client=BlockingSheetsClient(delay=0.5))
        store = make_store(remote=remote, timeout=0.05)

        started = time.monotonic()
        created = await store.create(Collections.BILLS, {"name": "Water"})
        elapsed = time.monotonic() - started

        assert elapsed < 0.3
        assert is_temp_id(created["id"])
        assert store.pending_operations() == []

    @pytest.mark.asyncio
    async def test_no_remote_is_local_only(self, make_store):
        store = make_store(remote=None)

        created = await store.create(Collections.BILLS, {"name": "Water"})

        assert is_temp_id(created["id"])
        assert store.pending_operations() == []
        assert len(await store.read(Collections.BILLS)) == 1

    @pytest.mark.asyncio
    async def test_corrupt_local_json_falls_back(self, failing_remote):
        local = InMemoryLocalStore({"pf_bills": "[{broken", "pf_settings": "nope"})
        store = ReconcilingStore(remote=failing_remote, local=local)

        assert await store.read(Collections.BILLS) == []
        assert await store.get_settings() == UserSettings()


class TestDrain:
    """Replay of the outbox once the remote store is reachable."""

    @pytest.mark.asyncio
    async def test_offline_create_replays_once(self, make_store, remote_store, notifier):
        store = make_store(remote=remote_store, online=False)
        await store.create(Collections.EXPENSES, {"category": "Food"})

        monitor = ConnectivityMonitor(online=False)
        store.attach(monitor)
        await monitor.became_reachable()

        assert store.online is True
        assert remote_store.count(Collections.EXPENSES) == 1
        assert store.pending_operations() == []
        assert notifier.messages[-1] == ("Data synced successfully", "success")

    @pytest.mark.asyncio
    async def test_queue_is_emptied_even_when_replay_fails(self, make_store, failing_remote, notifier):
        store = make_store(remote=failing_remote, online=False)
        await store.create(Collections.EXPENSES, {"category": "Food"})
        await store.update(Collections.EXPENSES, "e1", {"amount": "3"})

        await store.on_connectivity_changed(True)

        assert store.pending_operations() == []
        assert [call[0] for call in failing_remote.calls] == ["create", "update"]
        assert notifier.messages[-1][1] == "warning"

    @pytest.mark.asyncio
    async def test_set_replays_with_its_merge_flag(self, make_store):
        remote = RecordingSetRemote()
        store = make_store(remote=remote, online=False)
        await store.set(Collections.SETTINGS, "user_settings", {"salary": "10"}, merge=False)
        await store.set(Collections.PAYMENTS, "bill_b1_2024-03", {"paid": True})

        assert [op.merge for op in store.pending_operations()] == [False, True]

        await store.on_connectivity_changed(True)

        assert remote.set_calls == [
            (Collections.SETTINGS, "user_settings", False),
            (Collections.PAYMENTS, "bill_b1_2024-03", True),
        ]

    @pytest.mark.asyncio
    async def test_replayed_create_keeps_local_temp_record(self, make_store, remote_store):
        store = make_store(remote=remote_store, online=False)
        temp = await store.add_expense(expense())

        await store.on_connectivity_changed(True)
        online = await store.get_expenses()
        await store.on_connectivity_changed(False)
        offline = await store.get_expenses()

        assert len(online) == 1
        assert not is_temp_id(online[0].id)
        assert sorted(is_temp_id(e.id) for e in offline) == [False, True]
        assert temp.id in {e.id for e in offline}

    @pytest.mark.asyncio
    async def test_drain_result_counts(self, make_store, remote_store):
        offline = make_store(remote=remote_store, online=False)
        await offline.create(Collections.BILLS, {"name": "A"})
        # Updating a document the remote never had fails on replay
        await offline.update(Collections.BILLS, "ghost", {"name": "B"})
        await offline.set(Collections.SETTINGS, "user_settings", {"salary": "10"})

        # A store started later picks the outbox up from the local store
        result = await make_store(remote=remote_store).sync_pending_operations()

        assert (result.attempted, result.succeeded, result.failed) == (3, 2, 1)
        assert (await remote_store.get_document(Collections.SETTINGS, "user_settings"))["salary"] == "10"

    @pytest.mark.asyncio
    async def test_operations_replay_in_enqueue_order(self, make_store, remote_store):
        await remote_store.set_document(Collections.BILLS, "b1", {"name": "Water"})
        store = make_store(remote=remote_store, online=False)
        await store.update(Collections.BILLS, "b1", {"name": "First"})
        await store.update(Collections.BILLS, "b1", {"name": "Second"})

        await store.on_connectivity_changed(True)

        assert (await remote_store.get_document(Collections.BILLS, "b1"))["name"] == "Second"

    @pytest.mark.asyncio
    async def test_empty_drain_does_not_notify(self, store, notifier):
        result = await store.sync_pending_operations()
        assert result.attempted == 0
        assert notifier.messages == []

    @pytest.mark.asyncio
    async def test_concurrent_drain_is_skipped(self, make_store):
        remote = SlowRemoteStore(delay=0.05)
        offline = make_store(remote=remote, online=False)
        await offline.create(Collections.BILLS, {"name": "A"})
        store = make_store(remote=remote)

        first, second = await asyncio.gather(
            store.sync_pending_operations(),
            store.sync_pending_operations(),
        )

        assert first.attempted == 1
        assert second.skipped is True
        assert remote.count(Collections.BILLS) == 1

    @pytest.mark.asyncio
    async def test_operation_enqueued_mid_drain_waits(self, make_store):
        remote = SlowRemoteStore(delay=0.05)
        offline = make_store(remote=remote, online=False)
        await offline.create(Collections.BILLS, {"name": "A"})
        store = make_store(remote=remote)

        drain = asyncio.create_task(store.sync_pending_operations())
        await asyncio.sleep(0.01)
        # Going offline again while the drain is replaying
        await store.on_connectivity_changed(False)
        await store.create(Collections.EXPENSES, {"category": "Late"})
        result = await drain

        assert result.attempted == 1
        remaining = store.pending_operations()
        assert len(remaining) == 1
        assert remaining[0].collection == Collections.EXPENSES

    @pytest.mark.asyncio
    async def test_going_offline_does_not_drain(self, make_store, remote_store):
        store = make_store(remote=remote_store, online=False)
        await store.create(Collections.BILLS, {"name": "A"})

        await store.on_connectivity_changed(False)

        assert len(store.pending_operations()) == 1


class TestWrappers:
    """Typed convenience methods."""

    @pytest.mark.asyncio
    async def test_settings_default_and_save(self, store, remote_store):
        assert await store.get_settings() == UserSettings()

        await store.save_settings(UserSettings(salary=Decimal("5000"), cash_mode=True))

        loaded = await store.get_settings()
        assert loaded.salary == Decimal("5000")
        assert loaded.cash_mode is True
        assert await remote_store.get_document(Collections.SETTINGS, "user_settings") is not None

    @pytest.mark.asyncio
    async def test_settings_saved_offline_are_queued_as_set(self, make_store, remote_store):
        store = make_store(remote=remote_store, online=False)
        await store.save_settings(UserSettings(salary=Decimal("10")))

        assert (await store.get_settings()).salary == Decimal("10")
        assert store.pending_operations()[0].kind == PendingOperationKind.SET

    @pytest.mark.asyncio
    async def test_obligations_by_kind(self, store, make_obligation):
        await store.add_installment(make_obligation(name="Car"))
        await store.add_bill(make_obligation(name="Water"))

        assert [i.name for i in await store.get_installments()] == ["Car"]
        assert [b.name for b in await store.get_bills()] == ["Water"]

    @pytest.mark.asyncio
    async def test_update_obligation(self, store, make_obligation):
        saved = await store.add_bill(make_obligation(name="Water", amount="10"))
        updated = await store.update_obligation(
            ObligationKind.BILL, saved.id, make_obligation(name="Water", amount="15")
        )
        assert updated.id == saved.id
        assert updated.amount == Decimal("15")
        assert await store.delete_obligation(ObligationKind.BILL, saved.id) is True
        assert await store.get_bills() == []

    @pytest.mark.asyncio
    async def test_expenses_filtered_and_newest_first(self, store):
        await store.add_expense(expense(day=date(2024, 3, 1), note="a"))
        await store.add_expense(expense(day=date(2024, 3, 20), note="b"))
        await store.add_expense(expense(day=date(2024, 4, 2), note="c"))

        march = await store.get_expenses("2024-03")

        assert [e.note for e in march] == ["b", "a"]
        assert len(await store.get_expenses()) == 3

    @pytest.mark.asyncio
    async def test_malformed_documents_are_skipped(self, store, remote_store):
        await remote_store.create_document(Collections.EXPENSES, {"category": "No date"})
        await store.add_expense(expense())

        assert len(await store.get_expenses()) == 1

    @pytest.mark.asyncio
    async def test_toggle_external_paid(self, store):
        saved = await store.add_external_expense(
            ExternalExpense(date=date(2024, 3, 1), category="Car", amount=Decimal("300"))
        )

        toggled = await store.toggle_external_paid(saved.id)

        assert toggled.paid is True
        assert (await store.get_external_expenses("2024-03"))[0].paid is True
        assert await store.toggle_external_paid("missing") is None

    @pytest.mark.asyncio
    async def test_budget_upsert_by_category(self, store):
        first = await store.save_budget(Budget(category="Food", limit=Decimal("100")))
        second = await store.save_budget(Budget(category=" food ", limit=Decimal("250")))

        budgets = await store.get_budgets()
        assert len(budgets) == 1
        assert second.id == first.id
        assert budgets[0].limit == Decimal("250")

    @pytest.mark.asyncio
    async def test_payment_status(self, store, remote_store):
        await store.set_payment_status(PaymentKind.BILL, "b1", "2024-03", True)

        assert await store.get_payment_status("bill", "b1", "2024-03") is True
        assert store.ledger.is_paid("bill", "b1", "2024-03") is True
        document = await remote_store.get_document(Collections.PAYMENTS, "bill_b1_2024-03")
        assert document["paid"] is True

    @pytest.mark.asyncio
    async def test_toggle_payment_status(self, store):
        assert await store.toggle_payment_status("installment", "i1", "2024-03") is True
        assert await store.toggle_payment_status("installment", "i1", "2024-03") is False
        assert store.ledger.is_paid("installment", "i1", "2024-03") is False

    @pytest.mark.asyncio
    async def test_payment_status_offline_uses_ledger(self, make_store, remote_store):
        store = make_store(remote=remote_store, online=False)
        await store.set_payment_status("bill", "b1", "2024-03", True)

        assert await store.get_payment_status("bill", "b1", "2024-03") is True
        assert store.pending_operations()[0].document_id == "bill_b1_2024-03"


class TestOutboxPersistence:
    """The outbox lives in the local store."""

    def test_invalid_entries_are_dropped(self):
        valid = PendingOperation.create("bills", {"name": "A"}).model_dump(mode="json")
        local = InMemoryLocalStore({
            LocalKeys.OUTBOX: (
                '[{"kind": "update", "collection": "bills"}, '
                + json.dumps(valid) + "]"
            ),
        })

        store = ReconcilingStore(remote=InMemoryRemoteStore(), local=local, online=False)

        assert len(store.pending_operations()) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
