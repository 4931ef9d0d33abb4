"""
Audit Logger

DESIGN DECISION: Every write, fallback and sync step is logged.
This provides:
1. Traceability of what reached the remote store and what stayed local
2. Debugging capability when the store silently degrades
3. A recent-events feed the dashboard can show

The audit logger:
- Never raises (logging must not break a write path)
- Keeps a bounded in-memory buffer of recent events
"""

import logging
from collections import deque
from typing import Optional

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(debug: bool = False) -> None:
    """Route stdlib logging (and therefore structlog) to stderr."""
    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if debug else logging.INFO,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events to the structured local log and remembers the most
    recent ones for display.
    """

    def __init__(self, max_recent: int = 200):
        self._logger = structlog.get_logger("audit")
        self._recent: deque[AuditEvent] = deque(maxlen=max_recent)

    def record(self, event: AuditEvent) -> None:
        """Log an audit event synchronously."""
        self._recent.append(event)
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be written; never raises.
        """
        try:
            self.record(event)
            return True
        except Exception as e:
            self._logger.error(
                "audit_log_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    def recent_events(self, limit: int = 50) -> list[AuditEvent]:
        """Most recent events, newest first."""
        return list(reversed(self._recent))[:limit]

    async def log_remote_failure(
        self,
        collection: str,
        operation: str,
        error: Exception,
        entity_id: Optional[str] = None,
    ) -> None:
        """Log a remote call that failed and was served locally."""
        await self.log(
            AuditEventBuilder.remote_call_failed(
                collection=collection,
                operation=operation,
                error_message=str(error) or type(error).__name__,
                entity_id=entity_id,
            )
        )

    async def log_operation_queued(
        self,
        collection: str,
        operation: str,
        entity_id: Optional[str],
        queue_length: int,
    ) -> None:
        """Log an operation added to the outbox."""
        await self.log(
            AuditEventBuilder.operation_queued(
                collection=collection,
                operation=operation,
                entity_id=entity_id,
                queue_length=queue_length,
            )
        )

    async def log_replay_failed(
        self,
        collection: str,
        operation: str,
        entity_id: Optional[str],
        error: Exception,
    ) -> None:
        """Log a pending operation dropped after a failed replay."""
        await self.log(
            AuditEventBuilder.replay_failed(
                collection=collection,
                operation=operation,
                entity_id=entity_id,
                error_message=str(error) or type(error).__name__,
            )
        )

    async def log_sync_completed(
        self,
        attempted: int,
        succeeded: int,
        failed: int,
    ) -> None:
        """Log the end of an outbox drain."""
        await self.log(
            AuditEventBuilder.sync_completed(
                attempted=attempted,
                succeeded=succeeded,
                failed=failed,
            )
        )

    async def log_payment_status(
        self,
        kind: str,
        item_id: str,
        month: str,
        paid: bool,
    ) -> None:
        """Log a paid/unpaid toggle."""
        await self.log(
            AuditEventBuilder.payment_status_updated(
                kind=kind,
                item_id=item_id,
                month=month,
                paid=paid,
            )
        )


_default_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Process-wide audit logger used when none is injected."""
    global _default_audit_logger
    if _default_audit_logger is None:
        _default_audit_logger = AuditLogger()
    return _default_audit_logger
