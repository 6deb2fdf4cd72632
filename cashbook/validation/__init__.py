"""Two-stage validation for counter transactions."""

from cashbook.validation.validator import TransactionValidator

__all__ = ["TransactionValidator"]
