"""
Tests for a single ledger and its manual display order.
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from cashbook.ledger import ConsistencyViolation, Ledger, OrderingPolicy
from cashbook.models.ledger import EntryDirection, LedgerEntry, LedgerKind


def _numbers(entries) -> list[int]:
    return [entry.transaction_number for entry in entries]


class TestLedgerPosting:
    """Tests for credits, debits and the balance invariant."""

    def test_empty_ledger(self):
        ledger = Ledger(LedgerKind.CASH)
        assert ledger.balance == Decimal("0")
        assert ledger.entries == []
        assert ledger.entries_ordered() == []

    def test_credit_and_debit_move_balance(self):
        ledger = Ledger(LedgerKind.GCASH)
        ledger.post_credit(1, "Cash Out", Decimal("1015"))
        ledger.post_debit(2, "Cash In", Decimal("500"))
        assert ledger.balance == Decimal("515")
        assert ledger.credits_total == Decimal("1015")
        assert ledger.debits_total == Decimal("500")

    def test_balance_can_go_negative(self):
        ledger = Ledger(LedgerKind.PAYMAYA)
        ledger.post_debit(1, "Cash In", Decimal("200"))
        assert ledger.balance == Decimal("-200")

    def test_posted_entry_belongs_to_ledger(self):
        ledger = Ledger(LedgerKind.OTHERS)
        entry = ledger.post_credit(3, "Misc Payment", Decimal("50"), notes="photocopy")
        assert entry.ledger is LedgerKind.OTHERS
        assert entry.direction is EntryDirection.CREDIT
        assert entry.notes == "photocopy"

    def test_entries_keep_posting_order(self):
        ledger = Ledger(LedgerKind.CASH)
        ledger.post_credit(2, "Cash In", Decimal("1"))
        ledger.post_credit(1, "Cash In", Decimal("1"))
        assert _numbers(ledger.entries) == [2, 1]

    def test_verify_balance_passes(self):
        ledger = Ledger(LedgerKind.CASH)
        ledger.post_credit(1, "Cash In", Decimal("10.50"))
        ledger.post_debit(2, "Cash Out", Decimal("0.25"))
        ledger.verify_balance()

    def test_verify_balance_detects_drift(self):
        ledger = Ledger(LedgerKind.CASH)
        ledger.post_credit(1, "Cash In", Decimal("10"))
        ledger._balance += Decimal("1")
        with pytest.raises(ConsistencyViolation):
            ledger.verify_balance()

    def test_restore_entry_rejects_other_ledger(self):
        entry = LedgerEntry(
            transaction_number=1,
            transaction_type="Cash In",
            direction=EntryDirection.CREDIT,
            amount=Decimal("10"),
            ledger=LedgerKind.GCASH,
        )
        with pytest.raises(ConsistencyViolation):
            Ledger(LedgerKind.CASH).restore_entry(entry)


class TestLedgerDeletion:
    """Tests for removing a transaction from one ledger."""

    def test_delete_reverses_balance(self):
        ledger = Ledger(LedgerKind.CASH)
        ledger.post_credit(1, "Cash In", Decimal("1015"))
        ledger.post_debit(2, "Cash Out", Decimal("300"))
        removed = ledger.delete_by_transaction_number(1)
        assert len(removed) == 1
        assert ledger.balance == Decimal("-300")
        assert not ledger.has_transaction(1)
        ledger.verify_balance()

    def test_delete_removes_every_matching_entry(self):
        ledger = Ledger(LedgerKind.OTHERS)
        ledger.post_credit(5, "Cash Out", Decimal("100"))
        ledger.post_debit(5, "Cash Out", Decimal("95"))
        removed = ledger.delete_by_transaction_number(5)
        assert len(removed) == 2
        assert ledger.balance == Decimal("0")

    def test_delete_missing_is_a_no_op(self):
        ledger = Ledger(LedgerKind.CASH)
        ledger.post_credit(1, "Cash In", Decimal("10"))
        assert ledger.delete_by_transaction_number(99) == []
        assert ledger.balance == Decimal("10")

    def test_delete_purges_manual_order(self):
        ledger = Ledger(LedgerKind.CASH)
        first = ledger.post_credit(1, "Cash In", Decimal("1"))
        second = ledger.post_credit(2, "Cash In", Decimal("1"))
        ledger.set_manual_order([second, first])
        ledger.delete_by_transaction_number(2)
        assert ledger.manual_order == [first.entry_id]

    def test_clear(self):
        ledger = Ledger(LedgerKind.CASH)
        entry = ledger.post_credit(1, "Cash In", Decimal("1"))
        ledger.set_manual_order([entry])
        ledger.clear()
        assert ledger.balance == Decimal("0")
        assert ledger.entries == []
        assert ledger.manual_order == []


class TestLedgerOrdering:
    """Tests for the display projection."""

    def test_default_is_ascending_number(self):
        ledger = Ledger(LedgerKind.CASH)
        for number in [3, 1, 2]:
            ledger.post_credit(number, "Cash In", Decimal("1"))
        assert _numbers(ledger.entries_ordered()) == [1, 2, 3]

    def test_full_override(self):
        ledger = Ledger(LedgerKind.CASH)
        e1 = ledger.post_credit(1, "Cash In", Decimal("1"))
        e2 = ledger.post_credit(2, "Cash In", Decimal("1"))
        e3 = ledger.post_credit(3, "Cash In", Decimal("1"))
        ledger.set_manual_order([e3, e1, e2])
        assert _numbers(ledger.entries_ordered()) == [3, 1, 2]

    def test_unpinned_entries_trail_in_numeric_order(self):
        ledger = Ledger(LedgerKind.CASH)
        e1 = ledger.post_credit(1, "Cash In", Decimal("1"))
        ledger.post_credit(2, "Cash In", Decimal("1"))
        e3 = ledger.post_credit(3, "Cash In", Decimal("1"))
        ledger.set_manual_order([e3, e1])
        ledger.post_credit(4, "Cash In", Decimal("1"))
        assert _numbers(ledger.entries_ordered()) == [3, 1, 2, 4]

    def test_override_does_not_touch_stored_order(self):
        ledger = Ledger(LedgerKind.CASH)
        e1 = ledger.post_credit(1, "Cash In", Decimal("1"))
        e2 = ledger.post_credit(2, "Cash In", Decimal("1"))
        ledger.set_manual_order([e2, e1])
        assert _numbers(ledger.entries) == [1, 2]

    def test_clear_manual_order(self):
        ledger = Ledger(LedgerKind.CASH)
        e1 = ledger.post_credit(1, "Cash In", Decimal("1"))
        e2 = ledger.post_credit(2, "Cash In", Decimal("1"))
        ledger.set_manual_order([e2, e1])
        ledger.clear_manual_order()
        assert _numbers(ledger.entries_ordered()) == [1, 2]

    def test_snapshot_uses_display_order(self):
        ledger = Ledger(LedgerKind.GCASH)
        e1 = ledger.post_credit(1, "Cash Out", Decimal("100"))
        e2 = ledger.post_debit(2, "Cash In", Decimal("40"))
        ledger.set_manual_order([e2.entry_id, e1.entry_id])
        snapshot = ledger.snapshot()
        assert snapshot.kind is LedgerKind.GCASH
        assert snapshot.balance == Decimal("60")
        assert _numbers(snapshot.entries) == [2, 1]
        assert snapshot.manual_order == [e2.entry_id, e1.entry_id]
        assert snapshot.entry_count == 2


class TestOrderingPolicy:
    """Tests for the override list itself."""

    def _entries(self, *numbers) -> list[LedgerEntry]:
        return [
            LedgerEntry(
                transaction_number=n,
                transaction_type="Cash In",
                direction=EntryDirection.CREDIT,
                amount=Decimal("1"),
                ledger=LedgerKind.CASH,
            )
            for n in numbers
        ]

    def test_no_override_is_numeric(self):
        entries = self._entries(2, 1)
        assert _numbers(OrderingPolicy().project(entries)) == [1, 2]

    def test_ties_keep_posting_order(self):
        first, second = self._entries(4, 4)
        projected = OrderingPolicy().project([first, second])
        assert [e.entry_id for e in projected] == [first.entry_id, second.entry_id]

    def test_duplicate_ids_keep_first_position(self):
        e1, e2 = self._entries(1, 2)
        policy = OrderingPolicy([e2.entry_id, e1.entry_id, e2.entry_id])
        assert policy.entry_ids == [e2.entry_id, e1.entry_id]

    def test_unknown_ids_are_skipped(self):
        e1, e2 = self._entries(1, 2)
        policy = OrderingPolicy([uuid4(), e2.entry_id])
        assert _numbers(policy.project([e1, e2])) == [2, 1]

    def test_purge(self):
        e1, e2 = self._entries(1, 2)
        policy = OrderingPolicy([e2.entry_id, e1.entry_id])
        policy.purge([e2.entry_id])
        assert policy.entry_ids == [e1.entry_id]
        assert policy.is_set

    def test_entry_ids_is_a_copy(self):
        e1, = self._entries(1)
        policy = OrderingPolicy([e1.entry_id])
        policy.entry_ids.clear()
        assert policy.entry_ids == [e1.entry_id]
