"""
Local Mirror of the Remote Collections

Each collection is mirrored under one local key as a JSON array of
documents. Upserts replace the document with the same id or append it.

Unreadable JSON is never fatal: it is logged and replaced by the
documented default for the key (an empty list for collections, an empty
object for maps), so every read path has a terminal fallback.
"""

import json
from typing import Any, Optional

import structlog

from src.audit.logger import get_audit_logger
from src.models.audit import AuditEventBuilder
from src.services.storage.interface import LocalKeys, LocalStoreInterface


logger = structlog.get_logger(__name__)


class LocalCache:
    """JSON helpers over a LocalStoreInterface."""

    def __init__(self, store: LocalStoreInterface):
        self._store = store

    @property
    def store(self) -> LocalStoreInterface:
        return self._store

    def read_json(self, key: str, default: Any) -> Any:
        """Parse the JSON under key, or return default if absent or corrupt."""
        raw = self._store.get_item(key)
        if raw is None or raw == "":
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            get_audit_logger().record(
                AuditEventBuilder.corrupt_local_data(key, str(e))
            )
            return default

    def write_json(self, key: str, value: Any) -> None:
        self._store.set_item(key, json.dumps(value, ensure_ascii=False, default=str))

    # -------------------------------------------------------------------------
    # Collection mirrors
    # -------------------------------------------------------------------------

    def read_collection(self, collection: str) -> list[dict[str, Any]]:
        stored = self.read_json(LocalKeys.for_collection(collection), [])
        if isinstance(stored, dict):
            return [stored]
        if not isinstance(stored, list):
            logger.error("corrupt_local_data", key=LocalKeys.for_collection(collection))
            return []
        return [doc for doc in stored if isinstance(doc, dict)]

    def read_document(self, collection: str, document_id: str) -> Optional[dict[str, Any]]:
        for document in self.read_collection(collection):
            if document.get("id") == document_id:
                return document
        return None

    def upsert(self, collection: str, document: dict[str, Any]) -> None:
        """Replace the cached document with the same id, or append it."""
        documents = self.read_collection(collection)
        for index, existing in enumerate(documents):
            if existing.get("id") == document.get("id"):
                documents[index] = document
                break
        else:
            documents.append(document)
        self.write_json(LocalKeys.for_collection(collection), documents)

    def upsert_many(self, collection: str, incoming: list[dict[str, Any]]) -> None:
        documents = self.read_collection(collection)
        positions = {doc.get("id"): index for index, doc in enumerate(documents)}
        for document in incoming:
            index = positions.get(document.get("id"))
            if index is None:
                positions[document.get("id")] = len(documents)
                documents.append(document)
            else:
                documents[index] = document
        self.write_json(LocalKeys.for_collection(collection), documents)

    def merge(
        self,
        collection: str,
        document_id: str,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        """Merge fields into the cached document (creating it if missing)."""
        existing = self.read_document(collection, document_id) or {}
        merged = {**existing, **data, "id": document_id}
        self.upsert(collection, merged)
        return merged

    def remove(self, collection: str, document_id: str) -> None:
        documents = [
            doc for doc in self.read_collection(collection)
            if doc.get("id") != document_id
        ]
        self.write_json(LocalKeys.for_collection(collection), documents)
