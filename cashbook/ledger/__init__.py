"""
Ledger Core

The four fund ledgers, the registry that owns them, and the manual
display ordering layered on top.
"""

from cashbook.ledger.errors import (
    ConsistencyViolation,
    LedgerError,
    TransactionValidationError,
)
from cashbook.ledger.ledger import Ledger
from cashbook.ledger.ordering import OrderingPolicy, numeric_order
from cashbook.ledger.registry import LedgerRegistry

__all__ = [
    "ConsistencyViolation",
    "Ledger",
    "LedgerError",
    "LedgerRegistry",
    "OrderingPolicy",
    "TransactionValidationError",
    "numeric_order",
]
