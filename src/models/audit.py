"""
Audit Models for Household Ledger

Every write, fallback and sync step is recorded as an audit event.
This provides:
1. Traceability of what reached the remote store and what stayed local
2. Debugging information when the store degrades to local-only
3. A visible history of automatic actions (auto-settle, rollover)

DESIGN DECISION: Audit events are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Persistence
    RECORD_CREATED = "record_created"
    RECORD_UPDATED = "record_updated"
    RECORD_DELETED = "record_deleted"
    REMOTE_CALL_FAILED = "remote_call_failed"

    # Outbox
    OPERATION_QUEUED = "operation_queued"
    SYNC_COMPLETED = "sync_completed"
    REPLAY_FAILED = "replay_failed"

    # Connectivity
    WENT_ONLINE = "went_online"
    WENT_OFFLINE = "went_offline"

    # Payment status
    PAYMENT_STATUS_UPDATED = "payment_status_updated"
    AUTO_SETTLED = "auto_settled"
    ROLLOVER_CREATED = "rollover_created"

    # System events
    CORRUPT_LOCAL_DATA = "corrupt_local_data"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - which collection/document is this about?
    collection: Optional[str] = Field(
        default=None,
        description="Collection name (e.g., 'bills', 'expenses')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Document id, temporary or store-assigned"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "collection": self.collection,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_created("bills", doc_id, local=False)
        event = AuditEventBuilder.remote_call_failed("bills", "create", error)
    """

    @staticmethod
    def record_created(collection: str, entity_id: str, local: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            collection=collection,
            entity_id=entity_id,
            description=f"Record created in {collection}"
            + (" (local only)" if local else ""),
            details={"local": local},
        )

    @staticmethod
    def record_updated(collection: str, entity_id: str, local: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_UPDATED,
            collection=collection,
            entity_id=entity_id,
            description=f"Record updated in {collection}"
            + (" (local only)" if local else ""),
            details={"local": local},
        )

    @staticmethod
    def record_deleted(collection: str, entity_id: str, local: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            collection=collection,
            entity_id=entity_id,
            description=f"Record deleted from {collection}"
            + (" (local only)" if local else ""),
            details={"local": local},
        )

    @staticmethod
    def remote_call_failed(
        collection: str,
        operation: str,
        error_message: str,
        entity_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_CALL_FAILED,
            severity=AuditSeverity.WARNING,
            collection=collection,
            entity_id=entity_id,
            description=f"Remote {operation} failed on {collection}; using local data",
            details={"operation": operation},
            error_message=error_message,
        )

    @staticmethod
    def operation_queued(
        collection: str,
        operation: str,
        entity_id: Optional[str],
        queue_length: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_QUEUED,
            collection=collection,
            entity_id=entity_id,
            description=f"Queued {operation} on {collection} for sync",
            details={"operation": operation, "queue_length": queue_length},
        )

    @staticmethod
    def sync_completed(attempted: int, succeeded: int, failed: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_COMPLETED,
            severity=AuditSeverity.WARNING if failed else AuditSeverity.INFO,
            description=f"Synced {succeeded} of {attempted} pending operations",
            details={
                "attempted": attempted,
                "succeeded": succeeded,
                "failed": failed,
            },
        )

    @staticmethod
    def replay_failed(
        collection: str,
        operation: str,
        entity_id: Optional[str],
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPLAY_FAILED,
            severity=AuditSeverity.ERROR,
            collection=collection,
            entity_id=entity_id,
            description=f"Dropped pending {operation} on {collection} after replay failure",
            details={"operation": operation},
            error_message=error_message,
        )

    @staticmethod
    def connectivity_changed(online: bool) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.WENT_ONLINE if online else AuditEventType.WENT_OFFLINE
            ),
            description="Remote store reachable" if online else "Remote store unreachable",
        )

    @staticmethod
    def payment_status_updated(
        kind: str,
        item_id: str,
        month: str,
        paid: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_STATUS_UPDATED,
            collection="payments",
            entity_id=item_id,
            description=f"Marked {kind} {item_id} as {'paid' if paid else 'unpaid'} for {month}",
            details={"kind": kind, "month": month, "paid": paid},
        )

    @staticmethod
    def auto_settled(month: str, item_ids: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTO_SETTLED,
            description=f"Auto-settled {len(item_ids)} obligations for {month}",
            details={"month": month, "item_ids": item_ids},
        )

    @staticmethod
    def rollover_created(month: str, notes: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROLLOVER_CREATED,
            severity=AuditSeverity.WARNING,
            collection="external",
            description=f"Rolled {len(notes)} unpaid obligations into {month}",
            details={"month": month, "notes": notes},
        )

    @staticmethod
    def corrupt_local_data(key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CORRUPT_LOCAL_DATA,
            severity=AuditSeverity.ERROR,
            description=f"Local data under {key} was unreadable; using default",
            details={"key": key},
            error_message=error_message,
        )
