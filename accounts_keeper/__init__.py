"""
Accounts Keeper - Source Package

A small bookkeeping assistant for personal and small-business accounts:
accounts, receipts, payments and installment (EMI) schedules.

DESIGN PRINCIPLES:
1. Every document belongs to exactly one user
2. Every write is followed by a reload (no local patching)
3. Multi-document writes go through one atomic batch
4. Failures are surfaced to the caller, never silently dropped
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Accounts Keeper Team"
