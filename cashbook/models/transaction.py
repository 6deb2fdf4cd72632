"""
Transaction Models for Cashbook

These models describe a transaction before it touches the ledgers:
what kind it is, how its fee is applied, the validated request the
processor consumes, and what the caller gets back.

DESIGN DECISION: Transaction types are a closed enum. The counter screens
used to dispatch on raw strings, where a typo silently posted nothing.
Here an unknown type fails validation before any ledger is touched.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from cashbook.models.ledger import LedgerEntry, LedgerKind


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Services offered at the counter."""
    CASH_IN = "Cash In"
    CASH_OUT = "Cash Out"
    MOBILE_LOADING = "Mobile Loading Service"
    SKYRO_PAYMENT = "Skyro Payment"
    HOME_CREDIT_PAYMENT = "Home Credit Payment"
    MISC_PAYMENT = "Misc Payment"

    @classmethod
    def parse(cls, value: "str | TransactionType") -> "TransactionType":
        """
        Accept the display label or enum name, case-insensitively.

        Raises ValueError for anything else.
        """
        if isinstance(value, TransactionType):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Transaction type must be text, got {type(value).__name__}")
        normalized = value.strip().upper()
        for member in cls:
            if member.value.upper() == normalized or member.name == normalized:
                return member
        raise ValueError(f"Unknown transaction type: {value!r}")

    @property
    def is_cash_transfer(self) -> bool:
        """Cash In / Cash Out use the bracket table and allow every fee option."""
        return self in (TransactionType.CASH_IN, TransactionType.CASH_OUT)


class FeeOption(str, Enum):
    """How the service fee affects what the customer hands over."""
    ADD_TO_AMOUNT = "add_to_amount"
    DEDUCT_FROM_AMOUNT = "deduct_from_amount"
    FREE = "free"

    @classmethod
    def parse(cls, value: "str | FeeOption") -> "FeeOption":
        """
        Accept the value, enum name or display label, case-insensitively.

        Raises ValueError for anything else.
        """
        if isinstance(value, FeeOption):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Fee option must be text, got {type(value).__name__}")
        normalized = value.strip().upper()
        for member in cls:
            if normalized in (member.value.upper(), member.name, member.label.upper()):
                return member
        raise ValueError(f"Unknown fee option: {value!r}")

    @property
    def label(self) -> str:
        return _FEE_OPTION_LABELS[self]


_FEE_OPTION_LABELS = {
    FeeOption.ADD_TO_AMOUNT: "Add Fee",
    FeeOption.DEDUCT_FROM_AMOUNT: "Deduct Fee",
    FeeOption.FREE: "Free",
}


# =============================================================================
# FEES
# =============================================================================

class FeeQuote(BaseModel):
    """
    Result of the fee policy for one transaction.

    fee_option is the EFFECTIVE option: types with a locked option
    (e.g. Misc Payment is always free) report the forced value, not
    whatever the caller selected.
    """
    model_config = ConfigDict(frozen=True)

    transaction_type: TransactionType
    base_amount: Decimal = Field(..., ge=0)
    fee_option: FeeOption
    fee: Decimal = Field(..., ge=0)
    customer_pays: Decimal = Field(
        ...,
        ge=0,
        description="What the customer hands over"
    )
    customer_receives: Decimal = Field(
        ...,
        description="What the customer gets (base minus a deducted fee)"
    )


# =============================================================================
# PROCESSOR INPUT / OUTPUT
# =============================================================================

class TransactionRequest(BaseModel):
    """
    Validated input for the TransactionProcessor.

    Building this model is the processor's first step: a negative or
    non-numeric amount, or an unknown type, fails here, before any
    transaction number is allocated.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    transaction_type: TransactionType
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Base amount moved (what leaves the debit ledger)"
    )
    customer_pays: Decimal = Field(
        ...,
        ge=0,
        description="What the customer pays (credited)"
    )
    source_of_funds: str = Field(
        default="",
        max_length=100,
        description="Transfer-to / load source / payment method, by type"
    )
    paid_with: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Alternate credit ledger when the 'paid with' box is ticked"
    )
    is_paid_with_checked: bool = False
    notes: str = Field(
        default="",
        max_length=1000,
    )

    @field_validator("transaction_type", mode="before")
    @classmethod
    def parse_transaction_type(cls, v):
        return TransactionType.parse(v)


class TransactionReceipt(BaseModel):
    """What the caller gets back after recording a transaction."""

    transaction_number: int
    quote: FeeQuote
    entries: list[LedgerEntry] = Field(default_factory=list)
    persisted: bool = Field(
        default=False,
        description="Did the durable store accept the new state?"
    )
    warnings: list[str] = Field(default_factory=list)

    @property
    def transaction_label(self) -> str:
        return f"#{self.transaction_number:03d}"


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (amount present and positive, source given)
    Stage 2: Semantic validation (required notes, quote consistency, limits)
    """

    validation_id: UUID = Field(
        default_factory=uuid4,
    )
    validated_at: datetime = Field(
        default_factory=datetime.now
    )

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")


# =============================================================================
# REPORTING MODELS
# =============================================================================

class LedgerTotals(BaseModel):
    """Current totals for one ledger."""

    kind: LedgerKind
    credits_total: Decimal = Decimal("0")
    debits_total: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    entry_count: int = 0


class TransactionTypeTotals(BaseModel):
    """Current totals for one transaction type across all ledgers."""

    transaction_type: str
    transaction_count: int = 0
    credits_total: Decimal = Decimal("0")
    debits_total: Decimal = Decimal("0")

    @property
    def net(self) -> Decimal:
        """Credits minus debits, i.e. what this service has netted the counter."""
        return self.credits_total - self.debits_total


class LedgerSummary(BaseModel):
    """
    Current-state report across all ledgers.

    There is no as-of-date variant: this always reflects the ledgers now.
    """

    generated_at: datetime = Field(default_factory=datetime.now)
    ledgers: list[LedgerTotals] = Field(default_factory=list)
    by_transaction_type: list[TransactionTypeTotals] = Field(default_factory=list)
    total_balance: Decimal = Decimal("0")
    transaction_count: int = 0

    def ledger(self, kind: LedgerKind) -> Optional[LedgerTotals]:
        for totals in self.ledgers:
            if totals.kind is kind:
                return totals
        return None
