"""
Shared fixtures for Personal Ledger tests.

Everything is deterministic: ids count up per prefix, clocks tick by a
fixed step, storage lives in memory unless a test asks for files.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from personal_ledger.config import LedgerSettings, StorageSettings
from personal_ledger.lifecycle import LedgerManager, SequentialIdGenerator
from personal_ledger.models.ledger import LedgerState, TransactionDraft, TransactionLine
from personal_ledger.orchestrator import LedgerSession
from personal_ledger.services.storage import InMemoryStore, LedgerStorage


DAY_1 = date(2024, 1, 1)
DAY_2 = date(2024, 1, 2)
DAY_3 = date(2024, 1, 3)


class TickingClock:
    """Returns a new instant on every call, `step` apart."""

    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.now = start or datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


def voucher(debit_account, credit_account, amount, on=DAY_1, posted=True, **extra):
    """Two-line draft moving `amount` from `credit_account` to `debit_account`."""
    amount = Decimal(str(amount))
    return TransactionDraft(
        date=on,
        narration=extra.pop("narration", "Transfer"),
        lines=[
            TransactionLine(account_id=credit_account, cr=amount),
            TransactionLine(account_id=debit_account, dr=amount),
        ],
        posted=posted,
        **extra,
    )


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def ledger_settings():
    return LedgerSettings(balance_tolerance=Decimal("0.01"))


@pytest.fixture
def storage_settings():
    return StorageSettings(
        snapshot_key="personal_ledger_react_v1",
        backup_prefix="ledger_backup_",
        max_backups=20,
        auto_backup_every=0,
    )


@pytest.fixture
def manager(clock, ledger_settings):
    return LedgerManager(
        id_generator=SequentialIdGenerator(),
        clock=clock,
        settings=ledger_settings,
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def storage(store, storage_settings, clock):
    return LedgerStorage(store, settings=storage_settings, clock=clock)


@pytest.fixture
def cash_and_bank(manager):
    """Ledger with Cash (opening 100.00) and Bank (opening 0.00)."""
    state = LedgerState()
    state, cash = manager.create_account(
        state, {"name": "Cash", "type": "Cash", "opening_balance": Decimal("100.00")}
    )
    state, bank = manager.create_account(
        state, {"name": "Bank", "type": "Bank", "opening_balance": Decimal("0.00")}
    )
    return state, cash, bank


@pytest.fixture
def session(storage, manager, clock):
    return LedgerSession(storage, manager=manager, clock=clock)
