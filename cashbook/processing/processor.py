"""
Transaction Processor

Turns one counter transaction into ledger entries:
1. Validate the request (no transaction number is spent on bad input)
2. Allocate the next transaction number
3. Post one credit and at most one debit, all carrying that number

Steps 2 and 3 run in ONE registry critical section, so no other thread
can observe a number without its entries, or a credit without its debit.

DESIGN DECISION: Routing is a table keyed by the closed TransactionType
enum. Adding a type without a route fails the routing-table test instead
of silently posting nothing.
"""

from decimal import Decimal
from typing import Callable, NamedTuple, Optional, Union

from pydantic import ValidationError

from cashbook.ledger.errors import TransactionValidationError
from cashbook.ledger.registry import LedgerRegistry
from cashbook.models.ledger import EntryDirection, LedgerEntry, LedgerKind
from cashbook.models.transaction import TransactionRequest, TransactionType


# Load source that is a physical SIM rather than a wallet; its float is
# tracked in Others.
RELOADER_SIM = "Reloader SIM"


class Posting(NamedTuple):
    """One planned ledger movement (not yet applied)."""
    ledger: LedgerKind
    direction: EntryDirection
    amount: Decimal


# =============================================================================
# ROUTES
# =============================================================================

def _credit_ledger(request: TransactionRequest) -> LedgerKind:
    """
    Cash unless the 'paid with' box is ticked and a method was given.

    A ticked box with no method still credits Cash, not Others; the
    validator raises a warning for that case.
    """
    if request.is_paid_with_checked and request.paid_with:
        return LedgerKind.from_name(request.paid_with)
    return LedgerKind.CASH


def _route_cash_in(request: TransactionRequest) -> list[Posting]:
    return [
        Posting(_credit_ledger(request), EntryDirection.CREDIT, request.customer_pays),
        Posting(LedgerKind.from_name(request.source_of_funds), EntryDirection.DEBIT, request.amount),
    ]


def _route_mobile_loading(request: TransactionRequest) -> list[Posting]:
    if request.source_of_funds.casefold() == RELOADER_SIM.casefold():
        load_source = LedgerKind.OTHERS
    else:
        load_source = LedgerKind.from_name(request.source_of_funds)
    return [
        Posting(_credit_ledger(request), EntryDirection.CREDIT, request.customer_pays),
        Posting(load_source, EntryDirection.DEBIT, request.amount),
    ]


def _route_bill_payment(request: TransactionRequest) -> list[Posting]:
    """Skyro and Home Credit: customer pays us, we pay the lender."""
    return [
        Posting(_credit_ledger(request), EntryDirection.CREDIT, request.customer_pays),
        Posting(LedgerKind.from_name(request.source_of_funds), EntryDirection.DEBIT, request.amount),
    ]


def _route_cash_out(request: TransactionRequest) -> list[Posting]:
    return [
        Posting(LedgerKind.from_name(request.source_of_funds), EntryDirection.CREDIT, request.customer_pays),
        Posting(LedgerKind.CASH, EntryDirection.DEBIT, request.amount),
    ]


def _route_misc_payment(request: TransactionRequest) -> list[Posting]:
    return [
        Posting(LedgerKind.from_name(request.source_of_funds), EntryDirection.CREDIT, request.amount),
    ]


ROUTES: dict[TransactionType, Callable[[TransactionRequest], list[Posting]]] = {
    TransactionType.CASH_IN: _route_cash_in,
    TransactionType.MOBILE_LOADING: _route_mobile_loading,
    TransactionType.SKYRO_PAYMENT: _route_bill_payment,
    TransactionType.HOME_CREDIT_PAYMENT: _route_bill_payment,
    TransactionType.CASH_OUT: _route_cash_out,
    TransactionType.MISC_PAYMENT: _route_misc_payment,
}


def _summarize_errors(error: ValidationError) -> list[dict]:
    return [
        {
            "field": ".".join(str(part) for part in err["loc"]) or "request",
            "issue_type": err["type"],
            "message": err["msg"],
            "severity": "error",
        }
        for err in error.errors()
    ]


# =============================================================================
# PROCESSOR
# =============================================================================

class TransactionProcessor:
    """
    Posts transactions to an injected LedgerRegistry.

    Usage:
        processor = TransactionProcessor(registry)
        number = processor.process_transaction("Cash In", 1000, 1015, "GCash")
    """

    def __init__(self, registry: LedgerRegistry):
        self._registry = registry

    @property
    def registry(self) -> LedgerRegistry:
        return self._registry

    @staticmethod
    def build_request(
        transaction_type: Union[str, TransactionType],
        amount,
        customer_pays,
        source_of_funds: str = "",
        paid_with: Optional[str] = None,
        is_paid_with_checked: bool = False,
        notes: str = "",
    ) -> TransactionRequest:
        """
        Validate raw counter input into a TransactionRequest.

        Raises:
            TransactionValidationError: bad type, or negative / non-numeric amounts
        """
        try:
            return TransactionRequest(
                transaction_type=transaction_type,
                amount=amount,
                customer_pays=customer_pays,
                source_of_funds=source_of_funds or "",
                paid_with=paid_with,
                is_paid_with_checked=is_paid_with_checked,
                notes=notes or "",
            )
        except ValidationError as e:
            issues = _summarize_errors(e)
            messages = "; ".join(f"{i['field']}: {i['message']}" for i in issues)
            raise TransactionValidationError(
                f"Invalid transaction: {messages}", issues=issues
            ) from e

    @staticmethod
    def plan_postings(request: TransactionRequest) -> list[Posting]:
        """
        Where the money would go, without touching any ledger.

        Credit first, then the debit if the type has one.
        """
        return ROUTES[request.transaction_type](request)

    def process_transaction(
        self,
        transaction_type: Union[str, TransactionType],
        amount,
        customer_pays,
        source_of_funds: str = "",
        paid_with: Optional[str] = None,
        is_paid_with_checked: bool = False,
        notes: str = "",
    ) -> int:
        """
        Validate, number and post one transaction.

        Returns:
            The transaction number assigned

        Raises:
            TransactionValidationError: input rejected; nothing was posted
                and no number was consumed
        """
        request = self.build_request(
            transaction_type,
            amount,
            customer_pays,
            source_of_funds,
            paid_with,
            is_paid_with_checked,
            notes,
        )
        number, _ = self.process(request)
        return number

    def process(self, request: TransactionRequest) -> tuple[int, list[LedgerEntry]]:
        """Post an already-validated request. Returns (number, entries posted)."""
        postings = self.plan_postings(request)
        label = request.transaction_type.value

        with self._registry.exclusive():
            number = self._registry.allocate_transaction_number()
            entries = [
                self._registry.post_entry(
                    posting.ledger,
                    posting.direction,
                    number,
                    label,
                    posting.amount,
                    request.notes,
                )
                for posting in postings
            ]
        return number, entries
