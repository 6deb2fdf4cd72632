"""
Audit Logger

DESIGN DECISION: Every change to the ledgers is logged.
This provides:
1. A trail for every posting and deletion at the counter
2. Debugging capability when a persist fails
3. An end-of-day record that survives deleted transactions

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from cashbook.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from cashbook.models.ledger import LedgerEntry
from cashbook.services.storage import AuditStorageInterface


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


_LOG_METHODS = {
    AuditSeverity.DEBUG: "debug",
    AuditSeverity.INFO: "info",
    AuditSeverity.WARNING: "warning",
    AuditSeverity.ERROR: "error",
    AuditSeverity.CRITICAL: "critical",
}


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (Google Sheets AuditLog tab, if configured)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("cashbook.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_method = getattr(self._logger, _LOG_METHODS[event.severity])
        log_method("audit_event", **event.to_log_dict())

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_processed(
        self,
        transaction_number: int,
        transaction_type: str,
        entries: list[LedgerEntry],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a posted transaction with its entries."""
        event = AuditEventBuilder.transaction_processed(
            transaction_number=transaction_number,
            transaction_type=transaction_type,
            entries=[entry.to_log_dict() for entry in entries],
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_rejected(
        self,
        transaction_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a transaction that failed validation."""
        event = AuditEventBuilder.transaction_rejected(
            transaction_type=transaction_type,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_deleted(
        self,
        transaction_number: int,
        entries: list[LedgerEntry],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a deletion. An empty entry list means nothing matched."""
        if entries:
            event = AuditEventBuilder.transaction_deleted(
                transaction_number=transaction_number,
                entries=[entry.to_log_dict() for entry in entries],
                correlation_id=correlation_id,
            )
        else:
            event = AuditEventBuilder.delete_nothing_found(
                transaction_number=transaction_number,
                correlation_id=correlation_id,
            )
        await self.log(event)

    async def log_ledger_order_changed(
        self,
        ledger: str,
        entry_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.ledger_order_changed(
            ledger=ledger,
            entry_count=entry_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_all_credits_order_changed(
        self,
        entry_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.all_credits_order_changed(
            entry_count=entry_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_ledgers_reset(
        self,
        entry_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a full reset of every ledger."""
        event = AuditEventBuilder.ledgers_reset(
            entry_count=entry_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_state_loaded(
        self,
        entry_count: int,
        next_transaction_number: int,
    ) -> None:
        event = AuditEventBuilder.state_loaded(
            entry_count=entry_count,
            next_transaction_number=next_transaction_number,
        )
        await self.log(event)

    async def log_state_persisted(
        self,
        entry_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.state_persisted(
            entry_count=entry_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_persist_failed(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed persist. In-memory state is still authoritative."""
        event = AuditEventBuilder.persist_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_consistency_violation(
        self,
        ledger: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.consistency_violation(
            ledger=ledger,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a counter action (e.g., recording a
    transaction) and pass it through the persist that follows.
    """
    return uuid4()
