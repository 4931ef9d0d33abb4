"""
In-Memory Storage Implementations

Used by the test suite and when no remote store is configured for a
quick local session. Same semantics as the real backends: ids are
assigned on create, timestamps are stamped on every write, and returned
documents are copies so callers cannot mutate stored state.
"""

import copy
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from src.services.storage.interface import (
    LocalStoreInterface,
    NotFoundError,
    RemoteStoreInterface,
)


class InMemoryRemoteStore(RemoteStoreInterface):
    """Dict-backed remote document store."""

    def __init__(self):
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}

    def _collection(self, name: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(name, {})

    async def create_document(
        self,
        collection: str,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        document_id = uuid4().hex
        now = datetime.now(timezone.utc).isoformat()
        document = {**copy.deepcopy(data), "created_at": now, "updated_at": now}
        self._collection(collection)[document_id] = document
        return {"id": document_id, **copy.deepcopy(document)}

    async def get_document(
        self,
        collection: str,
        document_id: str,
    ) -> Optional[dict[str, Any]]:
        document = self._collection(collection).get(document_id)
        if document is None:
            return None
        return {"id": document_id, **copy.deepcopy(document)}

    async def list_documents(self, collection: str) -> list[dict[str, Any]]:
        return [
            {"id": document_id, **copy.deepcopy(document)}
            for document_id, document in self._collection(collection).items()
        ]

    async def update_document(
        self,
        collection: str,
        document_id: str,
        data: dict[str, Any],
    ) -> None:
        documents = self._collection(collection)
        if document_id not in documents:
            raise NotFoundError(f"Document not found: {collection}/{document_id}")
        documents[document_id].update(copy.deepcopy(data))
        documents[document_id]["updated_at"] = datetime.now(timezone.utc).isoformat()

    async def delete_document(self, collection: str, document_id: str) -> None:
        self._collection(collection).pop(document_id, None)

    async def set_document(
        self,
        collection: str,
        document_id: str,
        data: dict[str, Any],
        merge: bool = False,
    ) -> None:
        documents = self._collection(collection)
        now = datetime.now(timezone.utc).isoformat()
        if merge and document_id in documents:
            documents[document_id].update(copy.deepcopy(data))
        else:
            documents[document_id] = {**copy.deepcopy(data), "created_at": now}
        documents[document_id]["updated_at"] = now

    def count(self, collection: str) -> int:
        """Number of documents in a collection."""
        return len(self._collection(collection))


class InMemoryLocalStore(LocalStoreInterface):
    """Dict-backed local key-value store."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value
