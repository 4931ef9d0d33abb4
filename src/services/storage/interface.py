"""
Abstract Storage Interfaces

DESIGN DECISION: We define abstract interfaces for both stores.
This allows us to:
1. Swap Google Sheets for another document store later
2. Use in-memory storage for testing
3. Keep the reconciliation logic decoupled from either backend

There are two collaborators:
- The REMOTE store of record: a document store addressed by
  (collection, id). Async, may be slow or unreachable.
- The LOCAL durable store: a string key-value store holding a JSON
  mirror of each collection. Sync, always available.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


# Collections in the remote store
class Collections:
    SETTINGS = "settings"
    INSTALLMENTS = "installments"
    BILLS = "bills"
    EXPENSES = "expenses"
    EXTERNAL = "external"
    BUDGETS = "budgets"
    PAYMENTS = "payments"

    ALL = (SETTINGS, INSTALLMENTS, BILLS, EXPENSES, EXTERNAL, BUDGETS, PAYMENTS)


# Fixed keys in the local store
class LocalKeys:
    SETTINGS = "pf_settings"
    PAID = "pf_paid"
    OUTBOX = "pf_outbox"

    COLLECTIONS = {
        Collections.INSTALLMENTS: "pf_inst",
        Collections.BILLS: "pf_bills",
        Collections.EXPENSES: "pf_exps",
        Collections.EXTERNAL: "pf_one",
        Collections.BUDGETS: "pf_budgets",
        Collections.PAYMENTS: "pf_payments",
    }

    @classmethod
    def for_collection(cls, collection: str) -> str:
        """Local key holding the mirror of a collection."""
        if collection == Collections.SETTINGS:
            return cls.SETTINGS
        return cls.COLLECTIONS.get(collection, f"pf_{collection}")

    @classmethod
    def all_keys(cls) -> list[str]:
        return [cls.SETTINGS, cls.PAID, *cls.COLLECTIONS.values()]


SETTINGS_DOCUMENT_ID = "user_settings"


class RemoteStoreInterface(ABC):
    """
    Abstract interface for the remote document store.

    Documents are plain JSON-compatible dicts. Returned documents always
    include their "id". Any method may raise StorageError (or a subclass)
    when the backend cannot be reached.
    """

    @abstractmethod
    async def create_document(
        self,
        collection: str,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Create a document with a store-assigned id.

        The store stamps created_at and updated_at.

        Returns:
            The stored document, including "id"
        """
        pass

    @abstractmethod
    async def get_document(
        self,
        collection: str,
        document_id: str,
    ) -> Optional[dict[str, Any]]:
        """
        Retrieve a document by id.

        Returns:
            The document if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_documents(self, collection: str) -> list[dict[str, Any]]:
        """List every document of a collection."""
        pass

    @abstractmethod
    async def update_document(
        self,
        collection: str,
        document_id: str,
        data: dict[str, Any],
    ) -> None:
        """
        Merge fields into an existing document and bump updated_at.

        Raises:
            NotFoundError: If the document doesn't exist
        """
        pass

    @abstractmethod
    async def delete_document(self, collection: str, document_id: str) -> None:
        """Delete a document. Deleting a missing document is not an error."""
        pass

    @abstractmethod
    async def set_document(
        self,
        collection: str,
        document_id: str,
        data: dict[str, Any],
        merge: bool = False,
    ) -> None:
        """
        Upsert a document under a caller-chosen id.

        Args:
            merge: Keep fields of an existing document that data doesn't set
        """
        pass


class LocalStoreInterface(ABC):
    """
    Abstract interface for the local durable key-value store.

    Values are strings (JSON text); a missing key reads as None.
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class RemoteUnavailableError(StorageError):
    """A remote call did not finish within the configured timeout."""
    pass
