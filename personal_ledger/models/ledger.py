"""
Core Data Models for Personal Ledger

These models define the double-entry data model:
1. Account - something that carries a balance (cash box, bank account)
2. TransactionLine - one debit-or-credit entry against one account
3. Transaction - a numbered voucher of balanced lines
4. LedgerState - the whole ledger, persisted as one snapshot

DESIGN DECISION: All records are frozen. A change to the ledger is a new
LedgerState built with model_copy(), never an in-place field write.
Readers holding an old snapshot can never observe a half-applied change.

DESIGN DECISION: Field names are snake_case in Python and camelCase on
the wire, so exported documents keep the familiar shape
(openingBalance, voucherNo, accountId, ...).
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# Shared config for every persisted record
LEDGER_MODEL_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
    str_strip_whitespace=True,
)


# =============================================================================
# ACCOUNTS
# =============================================================================

class Account(BaseModel):
    """
    A ledger account.

    `serial` is the display order and is allocated once at creation.
    It is never reused and never changes on edit.
    """
    model_config = LEDGER_MODEL_CONFIG

    id: str = Field(
        ...,
        description="Opaque unique identifier"
    )
    serial: int = Field(
        ...,
        ge=1,
        description="Allocation order, used for display ordering"
    )
    name: str = Field(
        ...,
        description="Display label"
    )
    type: str = Field(
        default="",
        description="Free-text classification (e.g. Cash, Bank)"
    )
    narration: str = Field(
        default="",
        description="Optional description"
    )
    opening_balance: Decimal = Field(
        default=Decimal("0"),
        description="Balance before any transaction is applied"
    )


class AccountCreate(BaseModel):
    """Input for creating an account. `id` and `serial` are assigned."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str
    type: str = ""
    narration: str = ""
    opening_balance: Decimal = Decimal("0")


class AccountUpdate(BaseModel):
    """
    Partial account update.

    Only the mutable fields exist here. Anything else passed in
    (id, serial) is dropped, so identity can't change through an edit.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    name: Optional[str] = None
    type: Optional[str] = None
    narration: Optional[str] = None
    opening_balance: Optional[Decimal] = None


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionLine(BaseModel):
    """
    One debit-or-credit entry.

    At most one of dr/cr is non-zero. An empty `id` is filled in when
    the owning transaction is saved.
    """
    model_config = LEDGER_MODEL_CONFIG

    id: str = ""
    account_id: str
    narration: str = ""
    dr: Decimal = Decimal("0")
    cr: Decimal = Decimal("0")


class Transaction(BaseModel):
    """
    A voucher.

    `id` is the storage key and never changes. `voucher_no` is the
    user-facing number and may be chosen by the caller.
    Drafts (posted=False) are ignored by balances and reports.
    """
    model_config = LEDGER_MODEL_CONFIG

    id: str
    voucher_no: int = Field(..., ge=1)
    date: date
    narration: str = ""
    lines: tuple[TransactionLine, ...] = ()
    posted: bool = False
    timestamp: datetime = Field(
        ...,
        description="Creation / last modification instant"
    )

    @property
    def total_dr(self) -> Decimal:
        return sum((line.dr for line in self.lines), Decimal("0"))

    @property
    def total_cr(self) -> Decimal:
        return sum((line.cr for line in self.lines), Decimal("0"))


class TransactionDraft(BaseModel):
    """
    Input for saving a transaction.

    With `id` set this updates an existing transaction; without it a new
    one is created. `voucher_no` defaults to the next free number on
    create and to the existing number on update.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    id: Optional[str] = None
    voucher_no: Optional[int] = Field(default=None, ge=1)
    date: date
    narration: str = ""
    lines: list[TransactionLine] = Field(default_factory=list)
    posted: bool = False


# =============================================================================
# LEDGER STATE
# =============================================================================

class PostedSnapshot(BaseModel):
    """Cash/bank totals captured the last time a voucher was posted."""
    model_config = LEDGER_MODEL_CONFIG

    timestamp: datetime
    bank: Decimal
    cash: Decimal


class LedgerMeta(BaseModel):
    """Sequence counters and bookkeeping for the ledger."""
    model_config = LEDGER_MODEL_CONFIG

    next_account_serial: int = Field(default=1, ge=1)
    next_voucher_no: int = Field(default=1, ge=1)
    last_posted_snapshot: Optional[PostedSnapshot] = None
    save_count: int = Field(default=0, ge=0)


class LedgerState(BaseModel):
    """
    The whole ledger.

    This is the single source of truth and the unit of persistence.
    """
    model_config = LEDGER_MODEL_CONFIG

    accounts: tuple[Account, ...] = ()
    transactions: tuple[Transaction, ...] = ()
    meta: LedgerMeta = Field(default_factory=LedgerMeta)

    def get_account(self, account_id: str) -> Optional[Account]:
        for account in self.accounts:
            if account.id == account_id:
                return account
        return None

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        for transaction in self.transactions:
            if transaction.id == transaction_id:
                return transaction
        return None

    def account_in_use(self, account_id: str) -> bool:
        """Is the account referenced by any line, draft or posted?"""
        return any(
            line.account_id == account_id
            for transaction in self.transactions
            for line in transaction.lines
        )

    def to_document(self) -> dict:
        """Serialize to the camelCase JSON document shape."""
        return self.model_dump(mode="json", by_alias=True)


class BackupMetadata(BaseModel):
    """Listing entry for one stored backup."""

    key: str
    timestamp: datetime
    kind: str = Field(
        default="manual",
        pattern="^(manual|auto)$"
    )
    accounts_count: int = Field(default=0, ge=0)
    transactions_count: int = Field(default=0, ge=0)
