"""
Voucher Editor

Working copy of a voucher while the user is entering it. The editor is
the only mutable object in the package: it holds lines being typed in
and turns them into an immutable TransactionDraft on save.

Rules applied while editing:
1. A positive debit clears the credit on the same line, and vice versa
2. A voucher never has fewer than 2 lines
3. Unparseable amount input counts as zero
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from personal_ledger.errors import NotFoundError, ValidationError
from personal_ledger.models.ledger import (
    LedgerState,
    Transaction,
    TransactionDraft,
    TransactionLine,
)
from personal_ledger.validation import MIN_LINES


AmountInput = Union[Decimal, int, float, str, None]

SIDES = ("dr", "cr")


def parse_amount(value: AmountInput) -> Decimal:
    """Turn user input into a non-negative amount; junk becomes 0."""
    if value is None:
        return Decimal("0")
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(str(value).strip() or "0")
    except InvalidOperation:
        return Decimal("0")
    if not amount.is_finite() or amount < 0:
        return Decimal("0")
    return amount


class TransactionEditor:
    """
    Edits one voucher's lines before it is saved.

    Usage:
        editor = TransactionEditor.new(state)
        editor.set_account(0, cash.id)
        editor.set_amount(0, "cr", "50")
        editor.set_account(1, bank.id)
        editor.set_amount(1, "dr", "50")
        manager.save_transaction(state, editor.to_draft(post=True))
    """

    def __init__(
        self,
        voucher_no: int,
        entry_date: date,
        narration: str = "",
        lines: Optional[list[TransactionLine]] = None,
        transaction_id: Optional[str] = None,
        default_account_id: str = "",
    ):
        self.transaction_id = transaction_id
        self.voucher_no = voucher_no
        self.date = entry_date
        self.narration = narration
        self._default_account_id = default_account_id
        self._lines = list(lines or [])
        while len(self._lines) < MIN_LINES:
            self._lines.append(self._blank_line())

    @classmethod
    def new(cls, state: LedgerState, entry_date: Optional[date] = None) -> "TransactionEditor":
        """
        Start a fresh voucher: next voucher number, two blank lines.

        Raises:
            ValidationError: If the ledger has no accounts yet
        """
        if not state.accounts:
            raise ValidationError("Create accounts first")
        return cls(
            voucher_no=state.meta.next_voucher_no,
            entry_date=entry_date or date.today(),
            default_account_id=state.accounts[0].id,
        )

    @classmethod
    def edit(cls, state: LedgerState, transaction_id: str) -> "TransactionEditor":
        """Open an existing voucher for editing."""
        transaction = state.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError("transaction", transaction_id)
        return cls.from_transaction(
            transaction,
            default_account_id=state.accounts[0].id if state.accounts else "",
        )

    @classmethod
    def from_transaction(
        cls,
        transaction: Transaction,
        default_account_id: str = "",
    ) -> "TransactionEditor":
        return cls(
            voucher_no=transaction.voucher_no,
            entry_date=transaction.date,
            narration=transaction.narration,
            lines=list(transaction.lines),
            transaction_id=transaction.id,
            default_account_id=default_account_id,
        )

    def _blank_line(self) -> TransactionLine:
        return TransactionLine(account_id=self._default_account_id)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._lines):
            raise IndexError(f"No line {index} (voucher has {len(self._lines)} lines)")

    # -------------------------------------------------------------------------
    # Lines
    # -------------------------------------------------------------------------

    @property
    def lines(self) -> tuple[TransactionLine, ...]:
        return tuple(self._lines)

    def add_line(self, account_id: Optional[str] = None) -> int:
        """Append a blank line; returns its index."""
        line = self._blank_line()
        if account_id is not None:
            line = line.model_copy(update={"account_id": account_id})
        self._lines.append(line)
        return len(self._lines) - 1

    def remove_line(self, index: int) -> None:
        """
        Remove a line.

        Raises:
            ValidationError: If the voucher would drop below 2 lines
        """
        self._check_index(index)
        if len(self._lines) <= MIN_LINES:
            raise ValidationError("At least 2 lines required")
        del self._lines[index]

    def set_account(self, index: int, account_id: str) -> None:
        self._check_index(index)
        self._lines[index] = self._lines[index].model_copy(update={"account_id": account_id})

    def set_line_narration(self, index: int, narration: str) -> None:
        self._check_index(index)
        self._lines[index] = self._lines[index].model_copy(update={"narration": narration})

    def set_amount(self, index: int, side: str, value: AmountInput) -> Decimal:
        """
        Set the debit or credit of a line.

        A positive amount zeroes the opposite side. Returns the amount
        actually stored.
        """
        if side not in SIDES:
            raise ValueError(f"Side must be 'dr' or 'cr', got {side!r}")
        self._check_index(index)

        amount = parse_amount(value)
        update = {side: amount}
        if amount > 0:
            update["cr" if side == "dr" else "dr"] = Decimal("0")
        self._lines[index] = self._lines[index].model_copy(update=update)
        return amount

    # -------------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------------

    @property
    def total_dr(self) -> Decimal:
        return sum((line.dr for line in self._lines), Decimal("0"))

    @property
    def total_cr(self) -> Decimal:
        return sum((line.cr for line in self._lines), Decimal("0"))

    @property
    def difference(self) -> Decimal:
        return self.total_dr - self.total_cr

    def is_balanced(self, tolerance: Decimal = Decimal("0.01")) -> bool:
        return abs(self.difference) <= tolerance

    def to_draft(self, post: bool = False) -> TransactionDraft:
        """Freeze the current edit into a draft ready to save."""
        return TransactionDraft(
            id=self.transaction_id,
            voucher_no=self.voucher_no,
            date=self.date,
            narration=self.narration,
            lines=list(self._lines),
            posted=post,
        )
