"""Services package."""

# Storage first; the reconciling store imports the ledger.
from src.services.storage import (
    Collections,
    ConnectionError,
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
    InMemoryLocalStore,
    InMemoryRemoteStore,
    JsonFileLocalStore,
    LocalStoreInterface,
    NotFoundError,
    ReconcilingStore,
    RemoteStoreInterface,
    RemoteUnavailableError,
    StorageError,
)
from src.services.connectivity import ConnectivityMonitor
from src.services.ledger import PaymentLedger, ledger_key
from src.services.notifications import CollectingNotifier, LogNotifier, Notifier

__all__ = [
    # Connectivity and notifications
    "CollectingNotifier",
    "ConnectivityMonitor",
    "LogNotifier",
    "Notifier",
    # Payment ledger
    "PaymentLedger",
    "ledger_key",
    # Storage services
    "Collections",
    "ConnectionError",
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
    "InMemoryLocalStore",
    "InMemoryRemoteStore",
    "JsonFileLocalStore",
    "LocalStoreInterface",
    "NotFoundError",
    "ReconcilingStore",
    "RemoteStoreInterface",
    "RemoteUnavailableError",
    "StorageError",
]
