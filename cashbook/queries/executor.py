"""
Ledger Query Engine

DESIGN DECISION: Reports are computed from the live registry, never from
cached totals. Every figure in a summary can be traced back to the entries
it was summed from.

There is no as-of-date query. The ledgers hold current state only; the
end-of-day report is simply the summary taken at closing time.
"""

from decimal import Decimal
from typing import Optional

from cashbook.ledger.registry import LedgerRegistry
from cashbook.models.ledger import LedgerEntry, LedgerKind, format_currency
from cashbook.models.transaction import (
    LedgerSummary,
    LedgerTotals,
    TransactionType,
    TransactionTypeTotals,
)


class LedgerQueryExecutor:
    """
    Read-only reports over a LedgerRegistry.

    GUARANTEES:
    - All figures come from one consistent snapshot
    - Totals are Decimal, never float
    """

    def __init__(self, registry: LedgerRegistry):
        self._registry = registry

    def summary(self) -> LedgerSummary:
        """Per-ledger and per-type totals as of now."""
        snapshots = self._registry.get_all_ledgers()

        ledgers = [
            LedgerTotals(
                kind=kind,
                credits_total=snapshot.credits_total,
                debits_total=snapshot.debits_total,
                balance=snapshot.balance,
                entry_count=snapshot.entry_count,
            )
            for kind, snapshot in snapshots.items()
        ]

        entries = [entry for snapshot in snapshots.values() for entry in snapshot.entries]

        return LedgerSummary(
            ledgers=ledgers,
            by_transaction_type=self._totals_by_type(entries),
            total_balance=sum((t.balance for t in ledgers), Decimal("0")),
            transaction_count=len({entry.transaction_number for entry in entries}),
        )

    def _totals_by_type(self, entries: list[LedgerEntry]) -> list[TransactionTypeTotals]:
        groups: dict[str, list[LedgerEntry]] = {}
        for entry in entries:
            groups.setdefault(entry.transaction_type, []).append(entry)

        # Known types first in menu order, then anything else by name
        known = [t.value for t in TransactionType]
        ordered_keys = [k for k in known if k in groups]
        ordered_keys += sorted(k for k in groups if k not in known)

        totals = []
        for key in ordered_keys:
            group = groups[key]
            totals.append(TransactionTypeTotals(
                transaction_type=key,
                transaction_count=len({e.transaction_number for e in group}),
                credits_total=sum((e.amount for e in group if e.is_credit), Decimal("0")),
                debits_total=sum((e.amount for e in group if not e.is_credit), Decimal("0")),
            ))
        return totals

    def list_transactions(
        self,
        transaction_type: Optional[TransactionType] = None,
        ledger: Optional[LedgerKind] = None,
    ) -> list[dict]:
        """
        Transactions grouped by number, oldest first.

        Filters match if ANY entry of the transaction matches.
        """
        snapshots = self._registry.get_all_ledgers()
        grouped: dict[int, list[LedgerEntry]] = {}
        for snapshot in snapshots.values():
            for entry in snapshot.entries:
                grouped.setdefault(entry.transaction_number, []).append(entry)

        results = []
        for number in sorted(grouped):
            entries = grouped[number]
            if transaction_type and not any(
                e.transaction_type == transaction_type.value for e in entries
            ):
                continue
            if ledger and not any(e.ledger is ledger for e in entries):
                continue
            results.append(self._transaction_to_dict(number, entries))
        return results

    def _transaction_to_dict(self, number: int, entries: list[LedgerEntry]) -> dict:
        """Convert one transaction's entries to a dictionary for results."""
        first = entries[0]
        return {
            "transaction_number": number,
            "label": first.transaction_label,
            "transaction_type": first.transaction_type,
            "display_date": first.display_date,
            "display_time": first.display_time,
            "notes": first.notes,
            "entries": [
                {
                    "ledger": e.ledger.value,
                    "direction": e.direction.value,
                    "amount": e.amount,
                }
                for e in entries
            ],
        }

    @staticmethod
    def format_report(summary: LedgerSummary, currency_symbol: str = "₱") -> str:
        """Plain-text end-of-day report."""
        def money(amount: Decimal) -> str:
            return format_currency(amount, currency_symbol)

        lines = [
            f"End of day report ({summary.generated_at:%m/%d/%Y %H:%M})",
            f"Transactions: {summary.transaction_count}",
            "",
            "Ledgers:",
        ]
        for totals in summary.ledgers:
            lines.append(
                f"  {totals.kind.value:<8} in {money(totals.credits_total):>14}"
                f"  out {money(totals.debits_total):>14}"
                f"  balance {money(totals.balance):>14}"
            )
        lines.append(f"  {'Total':<8} balance {money(summary.total_balance)}")

        if summary.by_transaction_type:
            lines.append("")
            lines.append("By service:")
            for totals in summary.by_transaction_type:
                lines.append(
                    f"  {totals.transaction_type:<24} x{totals.transaction_count:<4}"
                    f" net {money(totals.net)}"
                )

        return "\n".join(lines)
