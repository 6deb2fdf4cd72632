"""
Cashbook - Source Package

The bookkeeping core for a small money-services counter: four cash
ledgers (Cash, GCash, PayMaya, Others), a shared transaction counter,
service fee schedules and an audit trail.

DESIGN PRINCIPLES:
1. Validate first, post second
2. Fail early, fail visibly
3. No silent corrections
4. Every change must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Cashbook Team"
