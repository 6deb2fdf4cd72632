"""
A single fund ledger (Cash, GCash, PayMaya or Others).

The ledger keeps its entries in posting order and a cached balance.
INVARIANT: balance == sum(credits) - sum(debits) after every mutation.

This class does no locking of its own. The LedgerRegistry owns all four
ledgers and serializes access to them.
"""

from decimal import Decimal
from typing import Iterable, Optional, Union
from uuid import UUID

from cashbook.ledger.errors import ConsistencyViolation
from cashbook.ledger.ordering import OrderingPolicy
from cashbook.models.ledger import (
    EntryDirection,
    LedgerEntry,
    LedgerKind,
    LedgerSnapshot,
)


ZERO = Decimal("0")


class Ledger:
    """
    Ordered entries plus a running balance for one LedgerKind.

    Amounts are trusted here: fee and sign checks happen upstream in the
    FeeCalculator and TransactionProcessor.
    """

    def __init__(self, kind: LedgerKind):
        self.kind = kind
        self._entries: list[LedgerEntry] = []
        self._balance: Decimal = ZERO
        self._ordering = OrderingPolicy()

    def __repr__(self) -> str:
        return f"Ledger({self.kind.value}, balance={self._balance}, entries={len(self._entries)})"

    # -------------------------------------------------------------------------
    # Posting
    # -------------------------------------------------------------------------

    def post_credit(
        self,
        transaction_number: int,
        transaction_type: str,
        amount: Decimal,
        notes: str = "",
    ) -> LedgerEntry:
        """Append a credit entry (money coming in) and raise the balance."""
        return self._post(
            EntryDirection.CREDIT, transaction_number, transaction_type, amount, notes
        )

    def post_debit(
        self,
        transaction_number: int,
        transaction_type: str,
        amount: Decimal,
        notes: str = "",
    ) -> LedgerEntry:
        """Append a debit entry (money going out) and lower the balance."""
        return self._post(
            EntryDirection.DEBIT, transaction_number, transaction_type, amount, notes
        )

    def _post(
        self,
        direction: EntryDirection,
        transaction_number: int,
        transaction_type: str,
        amount: Decimal,
        notes: str,
    ) -> LedgerEntry:
        entry = LedgerEntry(
            transaction_number=transaction_number,
            transaction_type=transaction_type,
            direction=direction,
            amount=amount,
            ledger=self.kind,
            notes=notes,
        )
        self._append(entry)
        return entry

    def restore_entry(self, entry: LedgerEntry) -> None:
        """
        Re-attach an entry loaded from storage.

        Only used while rebuilding state at startup.
        """
        if entry.ledger is not self.kind:
            raise ConsistencyViolation(
                f"Entry {entry.entry_id} belongs to {entry.ledger.value}, "
                f"not {self.kind.value}"
            )
        self._append(entry)

    def _append(self, entry: LedgerEntry) -> None:
        # Entry first, then balance: a failed append leaves the balance untouched.
        self._entries.append(entry)
        self._balance += entry.signed_amount

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    @property
    def balance(self) -> Decimal:
        return self._balance

    @property
    def entries(self) -> list[LedgerEntry]:
        """Entries in posting order (a copy)."""
        return list(self._entries)

    @property
    def credits_total(self) -> Decimal:
        return sum((e.amount for e in self._entries if e.is_credit), ZERO)

    @property
    def debits_total(self) -> Decimal:
        return sum((e.amount for e in self._entries if not e.is_credit), ZERO)

    @property
    def manual_order(self) -> list[UUID]:
        return self._ordering.entry_ids

    def entries_ordered(self) -> list[LedgerEntry]:
        """
        Entries for display.

        Manual order first (entry by entry), then anything not pinned in
        ascending transaction-number order. No override -> purely numeric.
        """
        return self._ordering.project(self._entries)

    def has_transaction(self, transaction_number: int) -> bool:
        return any(e.transaction_number == transaction_number for e in self._entries)

    def entries_for_transaction(self, transaction_number: int) -> list[LedgerEntry]:
        return [e for e in self._entries if e.transaction_number == transaction_number]

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            kind=self.kind,
            balance=self._balance,
            credits_total=self.credits_total,
            debits_total=self.debits_total,
            entries=self.entries_ordered(),
            manual_order=self._ordering.entry_ids,
        )

    # -------------------------------------------------------------------------
    # Ordering
    # -------------------------------------------------------------------------

    def set_manual_order(
        self,
        ordered_entries: Iterable[Union[LedgerEntry, UUID]],
    ) -> None:
        """
        Replace the display override with these entries, in this order.

        Entries left out are dropped from the override and trail by
        transaction number on the next read.
        """
        self._ordering.replace(
            item.entry_id if isinstance(item, LedgerEntry) else item
            for item in ordered_entries
        )

    def clear_manual_order(self) -> None:
        self._ordering.clear()

    # -------------------------------------------------------------------------
    # Removal
    # -------------------------------------------------------------------------

    def delete_by_transaction_number(self, transaction_number: int) -> list[LedgerEntry]:
        """
        Remove every entry with this transaction number.

        Each removal reverses its balance effect. Removed ids are purged
        from the manual order. Returns the removed entries (empty if none
        matched - that is not an error).
        """
        removed = self.entries_for_transaction(transaction_number)
        if not removed:
            return []

        self._entries = [
            e for e in self._entries if e.transaction_number != transaction_number
        ]
        for entry in removed:
            self._balance -= entry.signed_amount
        self._ordering.purge(entry.entry_id for entry in removed)
        return removed

    def clear(self) -> None:
        self._entries = []
        self._balance = ZERO
        self._ordering.clear()

    # -------------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------------

    def verify_balance(self) -> None:
        """
        Raise ConsistencyViolation if the cached balance drifted.

        Never corrects the balance - a mismatch means a bug.
        """
        expected = self.credits_total - self.debits_total
        if self._balance != expected:
            raise ConsistencyViolation(
                f"{self.kind.value} balance {self._balance} != "
                f"credits - debits {expected}"
            )

    def find_entry(self, entry_id: UUID) -> Optional[LedgerEntry]:
        for entry in self._entries:
            if entry.entry_id == entry_id:
                return entry
        return None
