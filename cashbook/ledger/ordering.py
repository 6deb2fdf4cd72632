"""
Manual Display Ordering

Staff can drag entries into a custom order on screen. That order is a
display projection only:

    projection = [pinned entries, in override order]
               + [everything else, ascending by transaction number]

DESIGN DECISION: The stored entry list is never re-arranged. The override
is a list of entry ids layered on top of the numeric order, so balances
and deletes never depend on what anyone dragged where. Entries added after
the override was captured always trail.
"""

from typing import Iterable, Optional
from uuid import UUID

from cashbook.models.ledger import LedgerEntry


def numeric_order(entries: Iterable[LedgerEntry]) -> list[LedgerEntry]:
    """Oldest first. sorted() is stable, so ties keep posting order."""
    return sorted(entries, key=lambda entry: entry.transaction_number)


class OrderingPolicy:
    """
    One manual-order override plus the projection that applies it.

    Each Ledger owns one, and the registry owns a separate one for the
    cross-ledger "all credits" view.
    """

    def __init__(self, entry_ids: Optional[Iterable[UUID]] = None):
        self._entry_ids: list[UUID] = []
        if entry_ids:
            self.replace(entry_ids)

    @property
    def entry_ids(self) -> list[UUID]:
        return list(self._entry_ids)

    @property
    def is_set(self) -> bool:
        return bool(self._entry_ids)

    def replace(self, entry_ids: Iterable[UUID]) -> None:
        """Swap in a new override. Repeated ids keep their first position."""
        seen: set[UUID] = set()
        ordered: list[UUID] = []
        for entry_id in entry_ids:
            if entry_id not in seen:
                seen.add(entry_id)
                ordered.append(entry_id)
        self._entry_ids = ordered

    def purge(self, entry_ids: Iterable[UUID]) -> None:
        """Forget ids of entries that no longer exist."""
        doomed = set(entry_ids)
        if doomed:
            self._entry_ids = [i for i in self._entry_ids if i not in doomed]

    def clear(self) -> None:
        self._entry_ids = []

    def project(self, entries: Iterable[LedgerEntry]) -> list[LedgerEntry]:
        """
        Apply the override to a set of entries.

        Ids in the override that don't match any entry are skipped.
        """
        base = numeric_order(entries)
        if not self._entry_ids:
            return base

        by_id = {entry.entry_id: entry for entry in base}
        pinned = [by_id[i] for i in self._entry_ids if i in by_id]
        pinned_ids = {entry.entry_id for entry in pinned}
        trailing = [entry for entry in base if entry.entry_id not in pinned_ids]
        return pinned + trailing
