"""
Storage Services Package

Provides abstract interfaces for the remote and local stores, concrete
implementations (Google Sheets, JSON file, in-memory), and the
ReconcilingStore that keeps the two in step.
"""

from src.services.storage.interface import (
    SETTINGS_DOCUMENT_ID,
    Collections,
    ConnectionError,
    LocalKeys,
    LocalStoreInterface,
    NotFoundError,
    RemoteStoreInterface,
    RemoteUnavailableError,
    StorageError,
)
from src.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
)
from src.services.storage.local_file import JsonFileLocalStore
from src.services.storage.memory import InMemoryLocalStore, InMemoryRemoteStore
from src.services.storage.outbox import Outbox
from src.services.storage.reconciling import ReconcilingStore, is_temp_id

__all__ = [
    # Interfaces
    "LocalStoreInterface",
    "RemoteStoreInterface",
    "Collections",
    "LocalKeys",
    "SETTINGS_DOCUMENT_ID",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "RemoteUnavailableError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
    "InMemoryLocalStore",
    "InMemoryRemoteStore",
    "JsonFileLocalStore",
    # Reconciliation
    "Outbox",
    "ReconcilingStore",
    "is_temp_id",
]
