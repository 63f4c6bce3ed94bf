"""
Transaction Lifecycle Manager

DESIGN DECISION: Every operation is a pure state transition:

    (current LedgerState, input) -> (new LedgerState, affected record)

The manager never writes to the state it is given. A rejected operation
raises before anything is built, so the caller's state is untouched and
there is nothing to roll back.

Rules enforced here:
1. Account serials and voucher numbers only ever move forward
2. An account referenced by any line (draft or posted) can't be deleted
3. A voucher is committed whole or not at all (see LedgerValidator)

Ids and timestamps come from injected sources, so tests can make them
deterministic.
"""

import itertools
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol, Union
from uuid import uuid4

from personal_ledger.config import LedgerSettings, get_settings
from personal_ledger.errors import ConflictError, NotFoundError
from personal_ledger.models.ledger import (
    Account,
    AccountCreate,
    AccountUpdate,
    LedgerState,
    Transaction,
    TransactionDraft,
    TransactionLine,
)
from personal_ledger.models.validation import ValidationResult
from personal_ledger.validation import LedgerValidator, parse_input


class IdGenerator(Protocol):
    """Mints a new identifier with the given prefix."""

    def __call__(self, prefix: str) -> str: ...


class RandomIdGenerator:
    """Random ids, e.g. `acc_3f9c1a7b2e4d`."""

    def __init__(self, length: int = 12):
        self._length = length

    def __call__(self, prefix: str) -> str:
        return f"{prefix}{uuid4().hex[: self._length]}"


class SequentialIdGenerator:
    """Deterministic ids counting up per prefix: `acc_1`, `acc_2`, `tx_1`..."""

    def __init__(self, start: int = 1):
        self._counters = defaultdict(lambda: itertools.count(start))

    def __call__(self, prefix: str) -> str:
        return f"{prefix}{next(self._counters[prefix])}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class LedgerManager:
    """
    Validates and commits account and voucher changes.

    The manager holds no ledger state of its own; pass the current
    LedgerState in and keep the one that comes back.
    """

    def __init__(
        self,
        id_generator: Optional[IdGenerator] = None,
        clock: Optional[Callable[[], datetime]] = None,
        validator: Optional[LedgerValidator] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._settings = settings or get_settings().ledger
        self._new_id = id_generator or RandomIdGenerator()
        self._clock = clock or _utc_now
        self._validator = validator or LedgerValidator(self._settings.balance_tolerance)

    @property
    def validator(self) -> LedgerValidator:
        return self._validator

    def _unique_id(self, prefix: str, taken: set[str]) -> str:
        new_id = self._new_id(prefix)
        while new_id in taken:
            new_id = self._new_id(prefix)
        return new_id

    def _timestamp(self, previous: Optional[datetime] = None) -> datetime:
        """Current instant, strictly after `previous` when given."""
        now = _as_utc(self._clock())
        if previous is not None:
            previous = _as_utc(previous)
            if now <= previous:
                now = previous + timedelta(microseconds=1)
        return now

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    def create_account(
        self,
        state: LedgerState,
        details: Union[AccountCreate, dict],
    ) -> tuple[LedgerState, Account]:
        """
        Create an account with the next serial number.

        Raises:
            ValidationError: If the name is empty or the input is malformed
        """
        details = parse_input(AccountCreate, details)
        self._validator.validate_account_name(details.name)

        account = Account(
            id=self._unique_id(
                self._settings.account_id_prefix,
                {a.id for a in state.accounts},
            ),
            serial=state.meta.next_account_serial,
            name=details.name,
            type=details.type,
            narration=details.narration,
            opening_balance=details.opening_balance,
        )
        meta = state.meta.model_copy(
            update={"next_account_serial": state.meta.next_account_serial + 1}
        )
        new_state = state.model_copy(update={
            "accounts": state.accounts + (account,),
            "meta": meta,
        })
        return new_state, account

    def update_account(
        self,
        state: LedgerState,
        account_id: str,
        changes: Union[AccountUpdate, dict],
    ) -> tuple[LedgerState, Account]:
        """
        Merge changes into an account. `id` and `serial` never change.

        Raises:
            NotFoundError: If the account doesn't exist
            ValidationError: If the new name is empty
        """
        changes = parse_input(AccountUpdate, changes)

        existing = state.get_account(account_id)
        if existing is None:
            raise NotFoundError("account", account_id)

        update = changes.model_dump(exclude_none=True)
        if "name" in update:
            self._validator.validate_account_name(update["name"])

        updated = existing.model_copy(update=update)
        accounts = tuple(
            updated if account.id == account_id else account
            for account in state.accounts
        )
        return state.model_copy(update={"accounts": accounts}), updated

    def delete_account(
        self,
        state: LedgerState,
        account_id: str,
    ) -> tuple[LedgerState, Account]:
        """
        Remove an account no voucher refers to.

        Raises:
            NotFoundError: If the account doesn't exist
            ConflictError: If any line, draft or posted, uses the account
        """
        existing = state.get_account(account_id)
        if existing is None:
            raise NotFoundError("account", account_id)
        if state.account_in_use(account_id):
            raise ConflictError(
                f"Account in use: '{existing.name}' is referenced by transactions"
            )

        accounts = tuple(a for a in state.accounts if a.id != account_id)
        return state.model_copy(update={"accounts": accounts}), existing

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def _assign_line_ids(self, lines: list[TransactionLine]) -> tuple[TransactionLine, ...]:
        taken = {line.id for line in lines if line.id}
        result = []
        for line in lines:
            if not line.id:
                new_id = self._unique_id(self._settings.line_id_prefix, taken)
                taken.add(new_id)
                line = line.model_copy(update={"id": new_id})
            result.append(line)
        return tuple(result)

    def save_transaction(
        self,
        state: LedgerState,
        draft: Union[TransactionDraft, dict],
    ) -> tuple[LedgerState, Transaction]:
        """
        Create or update a voucher.

        With `draft.id` set the matching voucher is replaced; otherwise a
        new one is appended. On create, a voucher number at or above the
        counter moves the counter to `voucher_no + 1`; lower numbers
        (backdated entries) leave it alone.

        Raises:
            ValidationError: Fewer than 2 lines, totals off by more than
                             the tolerance, or a malformed line
            NotFoundError: Updating a voucher that doesn't exist
        """
        draft = parse_input(TransactionDraft, draft)

        if draft.id is not None:
            return self._update_transaction(state, draft)
        return self._create_transaction(state, draft)

    def _create_transaction(
        self,
        state: LedgerState,
        draft: TransactionDraft,
    ) -> tuple[LedgerState, Transaction]:
        self._validator.validate_lines(draft.lines, state)

        voucher_no = draft.voucher_no or state.meta.next_voucher_no
        transaction = Transaction(
            id=self._unique_id(
                self._settings.transaction_id_prefix,
                {tx.id for tx in state.transactions},
            ),
            voucher_no=voucher_no,
            date=draft.date,
            narration=draft.narration,
            lines=self._assign_line_ids(draft.lines),
            posted=draft.posted,
            timestamp=self._timestamp(),
        )

        next_voucher_no = state.meta.next_voucher_no
        if voucher_no >= next_voucher_no:
            next_voucher_no = voucher_no + 1

        new_state = state.model_copy(update={
            "transactions": state.transactions + (transaction,),
            "meta": state.meta.model_copy(update={"next_voucher_no": next_voucher_no}),
        })
        return new_state, transaction

    def _update_transaction(
        self,
        state: LedgerState,
        draft: TransactionDraft,
    ) -> tuple[LedgerState, Transaction]:
        existing = state.get_transaction(draft.id)
        if existing is None:
            raise NotFoundError("transaction", draft.id)

        self._validator.validate_lines(draft.lines, state)

        transaction = existing.model_copy(update={
            "voucher_no": draft.voucher_no or existing.voucher_no,
            "date": draft.date,
            "narration": draft.narration,
            "lines": self._assign_line_ids(draft.lines),
            "posted": draft.posted,
            "timestamp": self._timestamp(existing.timestamp),
        })
        transactions = tuple(
            transaction if tx.id == existing.id else tx
            for tx in state.transactions
        )
        return state.model_copy(update={"transactions": transactions}), transaction

    def delete_transaction(
        self,
        state: LedgerState,
        transaction_id: str,
    ) -> tuple[LedgerState, Transaction]:
        """
        Remove a voucher, posted or not.

        Raises:
            NotFoundError: If the voucher doesn't exist
        """
        existing = state.get_transaction(transaction_id)
        if existing is None:
            raise NotFoundError("transaction", transaction_id)

        transactions = tuple(tx for tx in state.transactions if tx.id != transaction_id)
        return state.model_copy(update={"transactions": transactions}), existing

    # =========================================================================
    # WHOLE LEDGER
    # =========================================================================

    def import_state(
        self,
        document: dict,
        strict: bool = True,
    ) -> tuple[LedgerState, ValidationResult]:
        """
        Parse and check a full replacement ledger.

        Returns (LedgerState, ValidationResult). With `strict=False` the
        document is only schema-checked and otherwise trusted as-is.

        Raises:
            ValidationError: Malformed document, or ledger rule violations
                             when strict
        """
        return self._validator.parse_document(document, strict=strict)
