"""
Shared fixtures.

No real Google Sheets calls in tests: the remote store is the in-memory
implementation, or a double that fails every call.
"""

from datetime import date
from decimal import Decimal

import pytest

from src.audit.logger import AuditLogger
from src.models.finance import RecurringObligation
from src.services.notifications import CollectingNotifier
from src.services.storage import (
    InMemoryLocalStore,
    InMemoryRemoteStore,
    ReconcilingStore,
    StorageError,
)


class FailingRemoteStore(InMemoryRemoteStore):
    """Remote store whose every call raises, as if the backend were down."""

    def __init__(self):
        super().__init__()
        self.calls = []

    async def create_document(self, collection, data):
        self.calls.append(("create", collection, None))
        raise StorageError("remote down")

    async def get_document(self, collection, document_id):
        self.calls.append(("get", collection, document_id))
        raise StorageError("remote down")

    async def list_documents(self, collection):
        self.calls.append(("list", collection, None))
        raise StorageError("remote down")

    async def update_document(self, collection, document_id, data):
        self.calls.append(("update", collection, document_id))
        raise StorageError("remote down")

    async def delete_document(self, collection, document_id):
        self.calls.append(("delete", collection, document_id))
        raise StorageError("remote down")

    async def set_document(self, collection, document_id, data, merge=False):
        self.calls.append(("set", collection, document_id))
        raise StorageError("remote down")


@pytest.fixture
def local_store():
    return InMemoryLocalStore()


@pytest.fixture
def remote_store():
    return InMemoryRemoteStore()


@pytest.fixture
def failing_remote():
    return FailingRemoteStore()


@pytest.fixture
def notifier():
    return CollectingNotifier()


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def make_store(local_store, notifier, audit_logger):
    """Build a ReconcilingStore over the shared local store."""
    def _make(remote=None, online=True, timeout=None):
        return ReconcilingStore(
            remote=remote,
            local=local_store,
            online=online,
            timeout=timeout,
            audit_logger=audit_logger,
            notifier=notifier,
        )
    return _make


@pytest.fixture
def store(make_store, remote_store):
    """Online store backed by the in-memory remote."""
    return make_store(remote=remote_store)


@pytest.fixture
def make_obligation():
    """Factory for recurring obligations with sensible defaults."""
    def _make(
        name="Car loan",
        amount="100",
        start=date(2024, 1, 1),
        end=None,
        due_day=None,
        id=None,
    ) -> RecurringObligation:
        return RecurringObligation(
            id=id,
            name=name,
            amount=Decimal(amount),
            start=start,
            end=end,
            due_day=due_day,
        )
    return _make
