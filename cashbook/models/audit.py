"""
Audit Models for Cashbook

Every change to the ledgers is logged for audit purposes.
This provides:
1. Complete traceability of postings and deletions
2. Debugging information when a persist or invariant check fails
3. Accountability at the counter (who deleted what, and when)

DESIGN DECISION: Audit logs are append-only. We never delete or modify them,
even when the transaction they describe is later deleted from the ledgers.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Postings
    TRANSACTION_PROCESSED = "transaction_processed"
    TRANSACTION_REJECTED = "transaction_rejected"

    # Deletion
    TRANSACTION_DELETED = "transaction_deleted"
    DELETE_NOTHING_FOUND = "delete_nothing_found"

    # Display ordering
    LEDGER_ORDER_CHANGED = "ledger_order_changed"
    ALL_CREDITS_ORDER_CHANGED = "all_credits_order_changed"

    # Lifecycle
    LEDGERS_RESET = "ledgers_reset"
    STATE_LOADED = "state_loaded"
    STATE_PERSISTED = "state_persisted"
    PERSIST_FAILED = "persist_failed"

    # System events
    CONSISTENCY_VIOLATION = "consistency_violation"
    SYSTEM_ERROR = "system_error"


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

    entity_id is free text because the things we audit are identified
    by transaction numbers and ledger names, not UUIDs.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred"
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

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'ledger', 'registry')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Transaction number or ledger name this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., a post and its persist)"
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

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by someone at the counter?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_processed(7, "Cash In", entries, correlation_id)
        event = AuditEventBuilder.transaction_deleted(7, removed, correlation_id)
    """

    @staticmethod
    def transaction_processed(
        transaction_number: int,
        transaction_type: str,
        entries: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_PROCESSED,
            entity_type="transaction",
            entity_id=str(transaction_number),
            correlation_id=correlation_id,
            description=f"Transaction #{transaction_number:03d} posted: {transaction_type}",
            details={
                "transaction_type": transaction_type,
                "entries": entries,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_rejected(
        transaction_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"{transaction_type} rejected with {len(issues)} issues",
            details={
                "transaction_type": transaction_type,
                "issues": issues,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_number: int,
        entries: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            entity_id=str(transaction_number),
            correlation_id=correlation_id,
            description=(
                f"Transaction #{transaction_number:03d} deleted "
                f"({len(entries)} entries reversed)"
            ),
            details={
                "entries": entries,
            },
            is_user_action=True,
        )

    @staticmethod
    def delete_nothing_found(
        transaction_number: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DELETE_NOTHING_FOUND,
            entity_type="transaction",
            entity_id=str(transaction_number),
            correlation_id=correlation_id,
            description=f"Delete requested for #{transaction_number:03d} but no entries matched",
            is_user_action=True,
        )

    @staticmethod
    def ledger_order_changed(
        ledger: str,
        entry_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_ORDER_CHANGED,
            entity_type="ledger",
            entity_id=ledger,
            correlation_id=correlation_id,
            description=f"{ledger} ledger re-ordered ({entry_count} entries pinned)",
            details={"entry_count": entry_count},
            is_user_action=True,
        )

    @staticmethod
    def all_credits_order_changed(
        entry_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALL_CREDITS_ORDER_CHANGED,
            entity_type="registry",
            entity_id="all_credits",
            correlation_id=correlation_id,
            description=f"All-credits view re-ordered ({entry_count} entries pinned)",
            details={"entry_count": entry_count},
            is_user_action=True,
        )

    @staticmethod
    def ledgers_reset(
        entry_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGERS_RESET,
            severity=AuditSeverity.WARNING,
            entity_type="registry",
            correlation_id=correlation_id,
            description=f"All ledgers cleared ({entry_count} entries discarded)",
            details={"entry_count": entry_count},
            is_user_action=True,
        )

    @staticmethod
    def state_loaded(
        entry_count: int,
        next_transaction_number: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_LOADED,
            entity_type="registry",
            description=f"Ledger state loaded: {entry_count} entries",
            details={
                "entry_count": entry_count,
                "next_transaction_number": next_transaction_number,
            },
        )

    @staticmethod
    def state_persisted(
        entry_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_PERSISTED,
            severity=AuditSeverity.DEBUG,
            entity_type="registry",
            correlation_id=correlation_id,
            description=f"Ledger state persisted: {entry_count} entries",
            details={"entry_count": entry_count},
        )

    @staticmethod
    def persist_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSIST_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="registry",
            correlation_id=correlation_id,
            description="Ledger state could not be persisted",
            error_message=error_message,
        )

    @staticmethod
    def consistency_violation(
        ledger: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONSISTENCY_VIOLATION,
            severity=AuditSeverity.CRITICAL,
            entity_type="ledger",
            entity_id=ledger,
            correlation_id=correlation_id,
            description=f"Invariant broken on {ledger} ledger",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
