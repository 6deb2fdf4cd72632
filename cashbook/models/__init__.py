"""
Data Models Package

This package contains all Pydantic models used in Cashbook.
All data flowing through the ledger core must conform to these schemas.
"""

from cashbook.models.ledger import (
    EntryDirection,
    LedgerEntry,
    LedgerKind,
    LedgerSnapshot,
    LedgerState,
    format_currency,
)
from cashbook.models.transaction import (
    FeeOption,
    FeeQuote,
    LedgerSummary,
    LedgerTotals,
    TransactionReceipt,
    TransactionRequest,
    TransactionType,
    TransactionTypeTotals,
    ValidationIssue,
    ValidationResult,
)
from cashbook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "EntryDirection",
    "LedgerEntry",
    "LedgerKind",
    "LedgerSnapshot",
    "LedgerState",
    "format_currency",
    # Transaction models
    "FeeOption",
    "FeeQuote",
    "LedgerSummary",
    "LedgerTotals",
    "TransactionReceipt",
    "TransactionRequest",
    "TransactionType",
    "TransactionTypeTotals",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
