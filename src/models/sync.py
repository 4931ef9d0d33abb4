"""
Outbox Models

DESIGN DECISION: Writes made while the remote store is unreachable are
captured as PendingOperation records (the outbox) and replayed in enqueue
order once connectivity returns. The operation kind is an explicit tag,
so replay is a single dispatch instead of retry logic scattered across
call sites.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, model_validator


class PendingOperationKind(str, Enum):
    """What the replay should do against the remote store."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    # Upsert under a fixed id, for singleton and composite-key documents
    SET = "set"


class PendingOperation(BaseModel):
    """
    A remote write that could not be performed when it was requested.

    Consumed exactly once by a drain; a failed replay is dropped, not retried.
    """

    operation_id: UUID = Field(default_factory=uuid4)
    kind: PendingOperationKind
    collection: str = Field(..., min_length=1)
    document_id: Optional[str] = Field(
        default=None,
        description="Target document for update/delete/set"
    )
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Document data for create/update/set"
    )
    merge: bool = Field(
        default=True,
        description="Merge-write semantics for set operations"
    )
    enqueued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def validate_target(self) -> "PendingOperation":
        """Everything except create addresses an existing document."""
        if self.kind != PendingOperationKind.CREATE and not self.document_id:
            raise ValueError(f"{self.kind.value} operation requires a document_id")
        return self

    @classmethod
    def create(cls, collection: str, payload: dict[str, Any]) -> "PendingOperation":
        return cls(kind=PendingOperationKind.CREATE, collection=collection, payload=payload)

    @classmethod
    def update(
        cls, collection: str, document_id: str, payload: dict[str, Any]
    ) -> "PendingOperation":
        return cls(
            kind=PendingOperationKind.UPDATE,
            collection=collection,
            document_id=document_id,
            payload=payload,
        )

    @classmethod
    def delete(cls, collection: str, document_id: str) -> "PendingOperation":
        return cls(
            kind=PendingOperationKind.DELETE,
            collection=collection,
            document_id=document_id,
        )

    @classmethod
    def set(
        cls,
        collection: str,
        document_id: str,
        payload: dict[str, Any],
        merge: bool = True,
    ) -> "PendingOperation":
        return cls(
            kind=PendingOperationKind.SET,
            collection=collection,
            document_id=document_id,
            payload=payload,
            merge=merge,
        )


class DrainResult(BaseModel):
    """Outcome of one outbox drain."""

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: bool = Field(
        default=False,
        description="True when another drain was already running"
    )
