"""
Abstract Storage Interface

DESIGN DECISION: The ledger core never talks to a backend directly. It
hands a complete LedgerState to whatever implements this interface. This
allows us to:
1. Keep Google Sheets as the shared store for the counter
2. Use in-memory storage for testing and offline use
3. Swap the backend without touching posting logic

The contract is deliberately coarse: load everything, persist everything.
The ledgers for one counter are small enough that incremental sync isn't
worth its failure modes.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from cashbook.models.audit import AuditEvent
from cashbook.models.ledger import LedgerEntry, LedgerState


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger state storage.

    Any storage implementation (Google Sheets, in-memory, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def load_state(self) -> Optional[LedgerState]:
        """
        Load the full persisted ledger state.

        Returns:
            The stored state, or None if nothing has been saved yet

        Raises:
            StorageError: If the backend can't be read
        """
        pass

    @abstractmethod
    async def load_entries(self) -> list[LedgerEntry]:
        """
        Load only the stored entries, in posting order.

        Returns:
            Every stored entry (empty list if none)
        """
        pass

    @abstractmethod
    async def persist_state(self, state: LedgerState) -> bool:
        """
        Replace the stored state with this one.

        Args:
            state: Snapshot exported from the registry

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., a posting and its persist).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'transaction', 'ledger')
            entity_id: Transaction number or ledger name

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
