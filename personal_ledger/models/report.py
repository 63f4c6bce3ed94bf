"""
Report and Result Models for Personal Ledger

Everything the read side hands back to callers:
statements, dashboard summaries, and operation results.
These are computed values, never persisted.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


class ReportFilter(BaseModel):
    """
    Statement filter.

    Without `account_id` the report lists every line of every posted
    voucher and carries no running balance.
    """

    account_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def validate_range(self) -> "ReportFilter":
        """Reject an inverted date range."""
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self


class ReportRow(BaseModel):
    """One statement row, produced from one transaction line."""

    line_id: str
    transaction_id: str
    voucher_no: int
    date: date
    narration: str
    account_id: str
    account_name: Optional[str] = None
    dr: Decimal
    cr: Decimal
    balance: Optional[Decimal] = Field(
        default=None,
        description="Running balance (account-filtered reports only)"
    )


class Report(BaseModel):
    """A chronological statement with footer totals."""

    filter: ReportFilter
    rows: list[ReportRow] = Field(default_factory=list)
    opening_balance: Decimal = Decimal("0")
    total_dr: Decimal = Decimal("0")
    total_cr: Decimal = Decimal("0")
    final_balance: Decimal = Decimal("0")

    @property
    def is_account_statement(self) -> bool:
        return self.filter.account_id is not None


class LedgerSummary(BaseModel):
    """Dashboard figures derived from current balances."""

    total_cash: Decimal = Decimal("0")
    total_bank: Decimal = Decimal("0")
    total_balance: Decimal = Decimal("0")
    account_count: int = 0
    posted_count: int = 0
    draft_count: int = 0
    balances_by_type: dict[str, Decimal] = Field(default_factory=dict)


class OperationResult(BaseModel):
    """
    Outcome of a session-level mutation.

    `persisted=False` means the change is live in memory but the snapshot
    write failed. The change is NOT rolled back.
    """

    success: bool = True
    message: str
    persisted: bool = True
    value: Any = None
    completed_at: datetime = Field(default_factory=datetime.utcnow)
