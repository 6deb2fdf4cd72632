"""Transaction routing and posting."""

from cashbook.processing.processor import (
    RELOADER_SIM,
    ROUTES,
    Posting,
    TransactionProcessor,
)

__all__ = ["RELOADER_SIM", "ROUTES", "Posting", "TransactionProcessor"]
