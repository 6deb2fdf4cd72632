"""Ledger reporting package."""

from cashbook.queries.executor import LedgerQueryExecutor

__all__ = ["LedgerQueryExecutor"]
