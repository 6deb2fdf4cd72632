"""
In-Memory Storage

Used by the test-suite and when the counter runs without Google Sheets
configured. State is deep-copied on the way in and out, so nothing the
caller does afterwards can reach into what was "saved".
"""

from typing import Optional
from uuid import UUID

from cashbook.models.audit import AuditEvent
from cashbook.models.ledger import LedgerEntry, LedgerState
from cashbook.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Keeps the last persisted LedgerState in a variable."""

    def __init__(self, initial_state: Optional[LedgerState] = None):
        self._state: Optional[LedgerState] = (
            initial_state.model_copy(deep=True) if initial_state else None
        )
        self.persist_count = 0

    async def load_state(self) -> Optional[LedgerState]:
        if self._state is None:
            return None
        return self._state.model_copy(deep=True)

    async def load_entries(self) -> list[LedgerEntry]:
        if self._state is None:
            return []
        return list(self._state.model_copy(deep=True).entries)

    async def persist_state(self, state: LedgerState) -> bool:
        self._state = state.model_copy(deep=True)
        self.persist_count += 1
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event.model_copy(deep=True))
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == str(entity_id)
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return sorted(self._events, key=lambda e: e.timestamp, reverse=True)[:limit]
