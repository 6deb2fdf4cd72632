"""
Ledger Registry

Owns the four ledgers, the shared transaction-number counter and the
manual order for the cross-ledger "all credits" view.

DESIGN DECISION: The registry is an ordinary object that is constructed
once and passed to whoever needs it - there is no module-level instance.
Tests build a fresh one per case; the app builds one at startup.

CONCURRENCY: One re-entrant lock guards everything. Multi-step writes
(allocate + post, delete across ledgers, reset) run entirely inside it,
and so do reads, so nobody ever sees a credit without its debit or a
balance without its entry. No I/O ever happens while the lock is held:
persistence works on the LedgerState returned by export_state().
"""

import threading
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterable, Iterator, Optional
from uuid import UUID

from cashbook.ledger.errors import ConsistencyViolation
from cashbook.ledger.ledger import ZERO, Ledger
from cashbook.ledger.ordering import OrderingPolicy
from cashbook.models.ledger import (
    EntryDirection,
    LedgerEntry,
    LedgerKind,
    LedgerSnapshot,
    LedgerState,
)


class LedgerRegistry:
    """
    Process-wide ledger state, explicitly constructed and injected.

    The counter starts at 1, only ever increments, and never hands out a
    number twice - not even after that transaction is deleted.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._ledgers: dict[LedgerKind, Ledger] = {
            kind: Ledger(kind) for kind in LedgerKind
        }
        self._next_transaction_number = 1
        self._all_credits_ordering = OrderingPolicy()

    @contextmanager
    def exclusive(self) -> Iterator["LedgerRegistry"]:
        """
        Hold the registry lock for a multi-step operation.

        Re-entrant, so registry methods can be called inside the block.
        """
        with self._lock:
            yield self

    # -------------------------------------------------------------------------
    # Transaction numbers
    # -------------------------------------------------------------------------

    def allocate_transaction_number(self) -> int:
        """Return the current counter value, then increment it."""
        with self._lock:
            number = self._next_transaction_number
            self._next_transaction_number += 1
            return number

    def peek_next_transaction_number(self) -> int:
        """The number the next allocation will return (no increment)."""
        with self._lock:
            return self._next_transaction_number

    # -------------------------------------------------------------------------
    # Ledger lookup
    # -------------------------------------------------------------------------

    def ledger(self, kind: LedgerKind) -> Ledger:
        """
        The live Ledger object.

        Callers outside the core should prefer get_ledger(), which returns
        a snapshot that can't be mutated behind the lock's back.
        """
        return self._ledgers[kind]

    def ledger_by_name(self, name: Optional[str]) -> Ledger:
        """Case-insensitive lookup. Unrecognised names resolve to Others."""
        return self._ledgers[LedgerKind.from_name(name)]

    def get_ledger(self, kind: LedgerKind) -> LedgerSnapshot:
        with self._lock:
            return self._ledgers[kind].snapshot()

    def get_all_ledgers(self) -> dict[LedgerKind, LedgerSnapshot]:
        with self._lock:
            return {kind: ledger.snapshot() for kind, ledger in self._ledgers.items()}

    # -------------------------------------------------------------------------
    # Posting (TransactionProcessor only)
    # -------------------------------------------------------------------------

    def post_entry(
        self,
        kind: LedgerKind,
        direction: EntryDirection,
        transaction_number: int,
        transaction_type: str,
        amount: Decimal,
        notes: str = "",
    ) -> LedgerEntry:
        """
        Post one entry to one ledger.

        This is the posting primitive behind TransactionProcessor, which
        calls it inside exclusive() together with the number allocation.
        Nothing else should call it.
        """
        with self._lock:
            ledger = self._ledgers[kind]
            if direction is EntryDirection.CREDIT:
                return ledger.post_credit(transaction_number, transaction_type, amount, notes)
            return ledger.post_debit(transaction_number, transaction_type, amount, notes)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def total_balance(self) -> Decimal:
        with self._lock:
            return sum((ledger.balance for ledger in self._ledgers.values()), ZERO)

    def all_credits_ordered(self) -> list[LedgerEntry]:
        """
        Every credit across the four ledgers, in display order.

        Same projection as a single ledger, but with the registry's own
        override rather than any ledger's.
        """
        with self._lock:
            return self._all_credits_ordering.project(self._all_credits())

    def transaction_details(self, transaction_number: int) -> list[LedgerEntry]:
        """All entries sharing this number, any ledger, any direction."""
        with self._lock:
            details: list[LedgerEntry] = []
            for ledger in self._ledgers.values():
                details.extend(ledger.entries_for_transaction(transaction_number))
            return details

    def has_transaction(self, transaction_number: int) -> bool:
        with self._lock:
            return any(
                ledger.has_transaction(transaction_number)
                for ledger in self._ledgers.values()
            )

    def entry_count(self) -> int:
        with self._lock:
            return sum(len(ledger.entries) for ledger in self._ledgers.values())

    def _all_credits(self) -> list[LedgerEntry]:
        credits: list[LedgerEntry] = []
        for ledger in self._ledgers.values():
            credits.extend(e for e in ledger.entries if e.is_credit)
        return credits

    # -------------------------------------------------------------------------
    # Ordering commands
    # -------------------------------------------------------------------------

    def set_manual_order(self, kind: LedgerKind, entry_ids: Iterable[UUID]) -> list[UUID]:
        """
        Replace one ledger's display override.

        Ids that aren't entries of that ledger are dropped. Returns the
        override actually stored.
        """
        with self._lock:
            ledger = self._ledgers[kind]
            known = {entry.entry_id for entry in ledger.entries}
            ledger.set_manual_order(i for i in entry_ids if i in known)
            return ledger.manual_order

    def set_all_credits_order(self, entry_ids: Iterable[UUID]) -> list[UUID]:
        """Replace the all-credits override. Non-credit / unknown ids are dropped."""
        with self._lock:
            known = {entry.entry_id for entry in self._all_credits()}
            self._all_credits_ordering.replace(i for i in entry_ids if i in known)
            return self._all_credits_ordering.entry_ids

    # -------------------------------------------------------------------------
    # Deletion and reset
    # -------------------------------------------------------------------------

    def delete_transaction(self, transaction_number: int) -> bool:
        """
        Remove a whole transaction from every ledger at once.

        Runs in one critical section: every ledger is updated or none is
        observed half-way. Returns False (not an error) if nothing matched.
        """
        return bool(self.delete_transaction_entries(transaction_number))

    def delete_transaction_entries(self, transaction_number: int) -> list[LedgerEntry]:
        """Same as delete_transaction(), but returns what was removed."""
        with self._lock:
            removed: list[LedgerEntry] = []
            for ledger in self._ledgers.values():
                removed.extend(ledger.delete_by_transaction_number(transaction_number))
            self._all_credits_ordering.purge(entry.entry_id for entry in removed)
            return removed

    def reset(self) -> None:
        """Clear every ledger, balance and override; counter back to 1."""
        with self._lock:
            for ledger in self._ledgers.values():
                ledger.clear()
            self._all_credits_ordering.clear()
            self._next_transaction_number = 1

    # -------------------------------------------------------------------------
    # Persistence support
    # -------------------------------------------------------------------------

    def export_state(self) -> LedgerState:
        """Copy out everything the durable store needs."""
        with self._lock:
            entries: list[LedgerEntry] = []
            for ledger in self._ledgers.values():
                entries.extend(ledger.entries)
            return LedgerState(
                next_transaction_number=self._next_transaction_number,
                entries=entries,
                manual_orders={
                    kind: ledger.manual_order
                    for kind, ledger in self._ledgers.items()
                    if ledger.manual_order
                },
                all_credits_order=self._all_credits_ordering.entry_ids,
            )

    def load_state(self, state: LedgerState) -> None:
        """
        Replace the in-memory state with a persisted one.

        Balances are rebuilt from entries. The counter resumes above the
        highest number seen, even if the stored counter is behind.
        """
        seen: set[UUID] = set()
        for entry in state.entries:
            if entry.entry_id in seen:
                raise ConsistencyViolation(f"Duplicate entry id in stored state: {entry.entry_id}")
            seen.add(entry.entry_id)

        with self._lock:
            self.reset()
            for entry in state.entries:
                self._ledgers[entry.ledger].restore_entry(entry)
            for kind, entry_ids in state.manual_orders.items():
                self._ledgers[kind].set_manual_order(entry_ids)
            self._all_credits_ordering.replace(state.all_credits_order)

            highest = max((e.transaction_number for e in state.entries), default=0)
            self._next_transaction_number = max(state.next_transaction_number, highest + 1)
            self.verify()

    def verify(self) -> None:
        """Check every ledger's balance invariant. Raises ConsistencyViolation."""
        with self._lock:
            for ledger in self._ledgers.values():
                ledger.verify_balance()
