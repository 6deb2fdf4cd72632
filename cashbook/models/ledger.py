"""
Ledger Data Models for Cashbook

These models define the records that flow through the bookkeeping core:
1. Which ledger (fund category) money sits in
2. Which direction an entry moves that ledger's balance
3. The immutable entry record itself
4. Read-only snapshots and the full persisted state

DESIGN DECISION: Entries are immutable once created. Correcting a mistake
means deleting the whole transaction and posting it again, never editing
an amount in place. This keeps the balance invariant trivially auditable.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class LedgerKind(str, Enum):
    """
    The four cash-equivalent ledgers.

    DESIGN DECISION: Payment methods arrive as free text from the counter
    ("gcash", "Bank Transfer", "Reloader SIM"). Anything we don't recognise
    lands in OTHERS instead of being rejected, so a transaction is never lost
    because of a spelling variant.
    """
    CASH = "Cash"
    GCASH = "GCash"
    PAYMAYA = "PayMaya"
    OTHERS = "Others"

    @classmethod
    def from_name(cls, value: Optional[str]) -> "LedgerKind":
        """Resolve a payment-method string, case-insensitively. Unknown -> OTHERS."""
        if isinstance(value, LedgerKind):
            return value
        normalized = (value or "").strip().upper()
        for kind in cls:
            if kind.name == normalized or kind.value.upper() == normalized:
                return kind
        return cls.OTHERS

    @classmethod
    def is_known_name(cls, value: Optional[str]) -> bool:
        """True if the name resolves to a ledger without the OTHERS fallback."""
        normalized = (value or "").strip().upper()
        return any(
            kind.name == normalized or kind.value.upper() == normalized
            for kind in cls
        )


class EntryDirection(str, Enum):
    """Credit increases a ledger's balance; debit decreases it."""
    CREDIT = "credit"
    DEBIT = "debit"

    @property
    def sign(self) -> int:
        return 1 if self is EntryDirection.CREDIT else -1


# =============================================================================
# ENTRY MODEL
# =============================================================================

def format_display_date(moment: datetime) -> str:
    """M/D/YYYY without zero padding, e.g. 3/7/2025."""
    return f"{moment.month}/{moment.day}/{moment.year}"


def format_display_time(moment: datetime) -> str:
    """24-hour HH:MM:SS."""
    return moment.strftime("%H:%M:%S")


def format_currency(amount: Decimal, symbol: str = "₱") -> str:
    """Round to two places for display only; stored amounts are untouched."""
    rounded = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol}{abs(rounded):,.2f}"


class LedgerEntry(BaseModel):
    """
    A single credit or debit posted to exactly one ledger.

    CRITICAL: The entry is frozen. Its ledger, direction and amount are
    fixed at creation; the owning Ledger's balance is derived from them.

    display_date / display_time are stamped once from created_at and
    stored with the entry so they never drift when re-rendered.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    # Identity
    entry_id: UUID = Field(
        default_factory=uuid4,
        description="Globally unique entry identifier"
    )

    # Grouping
    transaction_number: int = Field(
        ...,
        ge=1,
        description="Shared by every entry of one logical transaction"
    )
    transaction_type: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Transaction type label, e.g. 'Cash In'"
    )

    # Money
    direction: EntryDirection
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Non-negative amount; the direction carries the sign"
    )
    ledger: LedgerKind = Field(
        ...,
        description="Owning ledger, immutable"
    )

    notes: str = Field(
        default="",
        max_length=1000,
    )

    # Timestamps
    created_at: datetime = Field(
        default_factory=datetime.now,
        description="When the entry was posted (local time)"
    )
    display_date: str = ""
    display_time: str = ""

    @model_validator(mode="before")
    @classmethod
    def stamp_display_fields(cls, data: Any) -> Any:
        """Derive display date/time from created_at when not supplied."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        created_at = data.get("created_at")
        if created_at is None:
            created_at = datetime.now()
        elif isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        data["created_at"] = created_at
        if not data.get("display_date"):
            data["display_date"] = format_display_date(created_at)
        if not data.get("display_time"):
            data["display_time"] = format_display_time(created_at)
        return data

    @property
    def is_credit(self) -> bool:
        return self.direction is EntryDirection.CREDIT

    @property
    def signed_amount(self) -> Decimal:
        """Effect of this entry on its ledger's balance."""
        return self.amount if self.is_credit else -self.amount

    @property
    def transaction_label(self) -> str:
        """Zero-padded number shown on the counter, e.g. #007."""
        return f"#{self.transaction_number:03d}"

    def display_amount(self, symbol: str = "₱") -> str:
        return format_currency(self.amount, symbol)

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "entry_id": str(self.entry_id),
            "transaction_number": self.transaction_number,
            "transaction_type": self.transaction_type,
            "direction": self.direction.value,
            "amount": str(self.amount),
            "ledger": self.ledger.value,
            "notes": self.notes,
            "created_at": self.created_at.isoformat(),
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [entry_id, transaction_number, transaction_type, direction, amount,
         ledger, notes, created_at, display_date, display_time]
        """
        return [
            str(self.entry_id),
            str(self.transaction_number),
            self.transaction_type,
            self.direction.value,
            str(self.amount),
            self.ledger.value,
            self.notes,
            self.created_at.isoformat(),
            self.display_date,
            self.display_time,
        ]


# =============================================================================
# SNAPSHOTS AND PERSISTED STATE
# =============================================================================

class LedgerSnapshot(BaseModel):
    """
    Read-only copy of one ledger, handed to callers outside the registry.

    Entries are already in display order (manual order, then numeric).
    """
    model_config = ConfigDict(frozen=True)

    kind: LedgerKind
    balance: Decimal
    credits_total: Decimal
    debits_total: Decimal
    entries: list[LedgerEntry] = Field(default_factory=list)
    manual_order: list[UUID] = Field(default_factory=list)

    @property
    def entry_count(self) -> int:
        return len(self.entries)


class LedgerState(BaseModel):
    """
    Everything needed to rebuild the registry after a restart.

    This is what the durable store saves and loads. Balances are NOT
    stored - they are recomputed from entries on load.
    """

    next_transaction_number: int = Field(
        default=1,
        ge=1,
        description="Next number the counter will hand out"
    )
    entries: list[LedgerEntry] = Field(
        default_factory=list,
        description="Every entry across all ledgers, in posting order"
    )
    manual_orders: dict[LedgerKind, list[UUID]] = Field(
        default_factory=dict,
        description="Per-ledger display overrides"
    )
    all_credits_order: list[UUID] = Field(
        default_factory=list,
        description="Display override for the cross-ledger credits view"
    )
    saved_at: datetime = Field(
        default_factory=datetime.now,
    )

    def entries_for(self, kind: LedgerKind) -> list[LedgerEntry]:
        return [entry for entry in self.entries if entry.ledger is kind]
