"""
Domain Errors for Personal Ledger

Every rejected ledger operation raises one of these.

DESIGN DECISION: Errors are raised, never clamped or silently corrected.
A rejected operation leaves the ledger exactly as it was, so the caller
can fix the input and retry.
"""

from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationError(LedgerError):
    """
    Caller-supplied data violates a ledger invariant.

    Carries the computed debit/credit totals when the failure is an
    unbalanced voucher, and the list of issues when a whole document
    (import) was rejected.
    """

    def __init__(
        self,
        message: str,
        total_dr: Optional[Decimal] = None,
        total_cr: Optional[Decimal] = None,
        issues: Optional[list] = None,
    ):
        super().__init__(message)
        self.message = message
        self.total_dr = total_dr
        self.total_cr = total_cr
        self.issues = issues or []


class NotFoundError(LedgerError):
    """Referenced account or transaction does not exist."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity.capitalize()} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(LedgerError):
    """Requested deletion would break a structural constraint."""
    pass
