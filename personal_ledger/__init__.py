"""
Personal Ledger - Source Package

A double-entry bookkeeping engine for a single user's personal
accounts: cash boxes, bank accounts, and the vouchers moving money
between them.

DESIGN PRINCIPLES:
1. Balances are derived, never stored
2. Every change is a new immutable snapshot
3. Reject invalid input, never silently correct it
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "2.0.0"
__author__ = "Personal Ledger Team"
