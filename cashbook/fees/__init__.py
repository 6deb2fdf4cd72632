"""
Fees Package

Service fee schedules and quoting.
"""

from cashbook.fees.calculator import FeeCalculator, to_amount

__all__ = ["FeeCalculator", "to_amount"]
