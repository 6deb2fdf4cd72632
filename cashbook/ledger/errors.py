"""
Ledger error taxonomy.

Deleting a transaction that doesn't exist is NOT an error - it returns
False. Only bad input and broken invariants raise.
"""

from typing import Optional


class LedgerError(Exception):
    """Base exception for the ledger core."""
    pass


class TransactionValidationError(LedgerError, ValueError):
    """
    Input rejected before any ledger was touched.

    Raised for negative or non-numeric amounts, unknown transaction types,
    and requests that fail the two-stage validator.
    """

    def __init__(self, message: str, issues: Optional[list[dict]] = None):
        super().__init__(message)
        self.issues = issues or []


class ConsistencyViolation(LedgerError):
    """
    An internal invariant is broken (e.g. balance != entry sum).

    Unreachable in a correct implementation. Never caught and corrected.
    """
    pass
