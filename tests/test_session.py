"""
Integration tests for LedgerSession.

Flows run end to end against in-memory storage: commit, persist,
auto-backup, import, wipe and restore.
"""

import json
from decimal import Decimal

import pytest

from personal_ledger.audit import AuditLogger
from personal_ledger.config import StorageSettings
from personal_ledger.errors import ConflictError, NotFoundError, ValidationError
from personal_ledger.models.audit import AuditEventType
from personal_ledger.models.ledger import TransactionDraft
from personal_ledger.models.report import ReportFilter
from personal_ledger.orchestrator import LedgerSession, create_session
from personal_ledger.services.storage import (
    BackendUnavailableError,
    InMemoryStore,
    LedgerStorage,
)

from conftest import DAY_1, DAY_2, voucher


class FlakyStore(InMemoryStore):
    """Store whose writes fail while `broken` is set."""

    def __init__(self):
        super().__init__()
        self.broken = False

    def set(self, key: str, value: str) -> None:
        if self.broken:
            raise BackendUnavailableError("disk full")
        super().set(key, value)


def open_accounts(session):
    cash = session.create_account(
        {"name": "Cash", "type": "Cash", "opening_balance": Decimal("100.00")}
    ).value
    bank = session.create_account({"name": "Bank", "type": "Bank"}).value
    return cash, bank


class TestCommit:
    """Every change replaces the snapshot and is written out."""

    def test_changes_are_persisted(self, session, storage):
        cash, bank = open_accounts(session)
        result = session.save_transaction(voucher(bank.id, cash.id, "50"))

        assert result.success
        assert result.persisted
        assert result.message == "Transaction posted"
        assert storage.load_snapshot() == session.state

    def test_save_count_increments(self, session):
        open_accounts(session)
        assert session.state.meta.save_count == 2

    def test_reopen_resumes_state(self, session, storage, manager):
        cash, bank = open_accounts(session)
        session.save_transaction(voucher(bank.id, cash.id, "50"))

        reopened = LedgerSession.open(storage, manager=manager)
        assert reopened.state == session.state
        assert reopened.balances()[cash.id] == Decimal("50.00")

    def test_open_empty_storage(self, storage):
        session = LedgerSession.open(storage)
        assert session.state.accounts == ()

    def test_rejected_operation_keeps_state(self, session):
        cash, bank = open_accounts(session)
        session.save_transaction(voucher(bank.id, cash.id, "50", posted=False))
        before = session.state

        with pytest.raises(ConflictError):
            session.delete_account(bank.id)
        with pytest.raises(ValidationError):
            session.save_transaction(TransactionDraft(date=DAY_1, lines=[]))
        assert session.state is before

    def test_persist_failure_keeps_change(self, manager, clock, storage_settings):
        store = FlakyStore()
        storage = LedgerStorage(store, settings=storage_settings, clock=clock)
        session = LedgerSession(storage, manager=manager, clock=clock)
        cash, bank = open_accounts(session)

        store.broken = True
        result = session.save_transaction(voucher(bank.id, cash.id, "50"))

        assert result.success
        assert not result.persisted
        assert "not saved" in result.message
        assert len(session.state.transactions) == 1
        assert len(storage.load_snapshot().transactions) == 0


class TestTransactions:

    def test_posting_records_cash_and_bank(self, session):
        cash, bank = open_accounts(session)
        session.save_transaction(voucher(bank.id, cash.id, "30"))

        snapshot = session.state.meta.last_posted_snapshot
        assert snapshot.cash == Decimal("70.00")
        assert snapshot.bank == Decimal("30")

    def test_draft_leaves_posted_snapshot(self, session):
        cash, bank = open_accounts(session)
        result = session.save_transaction(voucher(bank.id, cash.id, "30", posted=False))

        assert result.message == "Draft saved"
        assert session.state.meta.last_posted_snapshot is None

    def test_delete_transaction(self, session):
        cash, bank = open_accounts(session)
        tx = session.save_transaction(voucher(bank.id, cash.id, "30")).value

        session.delete_transaction(tx.id)
        assert session.balances()[cash.id] == Decimal("100.00")
        with pytest.raises(NotFoundError):
            session.delete_transaction(tx.id)

    def test_voucher_editor_flow(self, session):
        cash, bank = open_accounts(session)
        editor = session.new_voucher(DAY_1)
        editor.set_account(0, cash.id)
        editor.set_amount(0, "cr", "25")
        editor.set_account(1, bank.id)
        editor.set_amount(1, "dr", "25")
        tx = session.save_transaction(editor.to_draft(post=True)).value

        editor = session.edit_voucher(tx.id)
        assert editor.voucher_no == tx.voucher_no

    def test_update_and_delete_account(self, session):
        cash, bank = open_accounts(session)
        result = session.update_account(bank.id, {"name": "Savings Bank"})
        assert result.value.name == "Savings Bank"

        session.delete_account(bank.id)
        assert session.state.get_account(bank.id) is None


class TestReadSide:

    def test_report_accepts_dict_filter(self, session):
        cash, bank = open_accounts(session)
        session.save_transaction(voucher(bank.id, cash.id, "50", on=DAY_1))
        session.save_transaction(voucher(bank.id, cash.id, "10", on=DAY_2))

        report = session.report({"account_id": cash.id, "start_date": DAY_2})
        assert report.opening_balance == Decimal("50.00")
        assert report == session.report(ReportFilter(account_id=cash.id, start_date=DAY_2))

    def test_summary(self, session):
        cash, bank = open_accounts(session)
        session.save_transaction(voucher(bank.id, cash.id, "50"))
        assert session.summary().total_balance == Decimal("100.00")


class TestAutoBackup:

    def test_backup_every_n_saves(self, store, manager, clock):
        settings = StorageSettings(auto_backup_every=3, max_backups=20)
        storage = LedgerStorage(store, settings=settings, clock=clock)
        session = LedgerSession(storage, manager=manager, clock=clock)

        open_accounts(session)
        assert storage.list_backups() == []
        session.create_account({"name": "Wallet"})

        backups = storage.list_backups()
        assert len(backups) == 1
        assert backups[0].kind == "auto"
        assert backups[0].accounts_count == 3

    def test_disabled_when_zero(self, session, storage):
        for i in range(12):
            session.create_account({"name": f"Account {i}"})
        assert storage.list_backups() == []


class TestImportExport:

    def test_export_import_round_trip(self, session, storage, manager):
        cash, bank = open_accounts(session)
        session.save_transaction(voucher(bank.id, cash.id, "50"))
        exported = session.export_json()

        other = LedgerSession(
            LedgerStorage(InMemoryStore(), settings=storage.settings),
            manager=manager,
        )
        result = other.import_data(exported)

        assert result.message == "Data imported successfully"
        assert other.balances() == session.balances()
        assert other.state.accounts == session.state.accounts

    def test_import_backs_up_current_ledger(self, session, storage):
        cash, bank = open_accounts(session)
        document = session.export_data()

        session.import_data(document)
        backups = storage.list_backups()
        assert len(backups) == 1
        assert backups[0].kind == "manual"

    def test_invalid_json_rejected(self, session):
        open_accounts(session)
        before = session.state
        with pytest.raises(ValidationError, match="Invalid JSON"):
            session.import_data("{broken")
        assert session.state is before

    def test_rule_violation_rejected(self, session):
        cash, bank = open_accounts(session)
        session.save_transaction(voucher(bank.id, cash.id, "50"))
        document = session.export_data()
        document["transactions"][0]["lines"][0]["cr"] = "1"

        before = session.state
        with pytest.raises(ValidationError):
            session.import_data(document)
        assert session.state is before

    def test_export_is_json_text(self, session):
        open_accounts(session)
        assert json.loads(session.export_json())["meta"]["nextAccountSerial"] == 3


class TestClearAndRestore:

    def test_clear_backs_up_first(self, session, storage):
        cash, bank = open_accounts(session)
        session.save_transaction(voucher(bank.id, cash.id, "50"))

        result = session.clear_all_data()
        assert session.state.accounts == ()
        assert session.state.meta.next_voucher_no == 1

        restored = storage.restore_backup(result.value)
        assert len(restored.accounts) == 2

    def test_restore_round_trip(self, session, storage):
        cash, bank = open_accounts(session)
        session.save_transaction(voucher(bank.id, cash.id, "50"))
        key = session.perform_backup().value
        original = session.export_data()

        session.clear_all_data()
        result = session.restore_backup(key)

        assert result.success
        assert session.balances()[cash.id] == Decimal("50.00")
        assert session.state.accounts == storage.restore_backup(key).accounts
        assert session.state.transactions == storage.restore_backup(key).transactions
        assert original["accounts"] == session.export_data()["accounts"]

    def test_restore_takes_safety_backup(self, session, storage):
        open_accounts(session)
        key = session.perform_backup().value
        session.create_account({"name": "Wallet"})

        session.restore_backup(key)
        newest = storage.list_backups()[0]
        assert newest.accounts_count == 3

    def test_restore_unknown_key(self, session):
        open_accounts(session)
        before = session.state
        result = session.restore_backup("ledger_backup_2000-01-01T00:00:00.000000Z")

        assert not result.success
        assert session.state is before

    def test_list_backups_newest_first(self, session):
        open_accounts(session)
        first = session.perform_backup().value
        second = session.perform_backup(kind="auto").value

        assert [b.key for b in session.list_backups()] == [second, first]


class TestFactory:

    def test_create_session_on_disk(self, tmp_path):
        settings = StorageSettings(data_dir=tmp_path, auto_backup_every=0)
        session = create_session(settings)
        session.create_account({"name": "Cash"})

        reopened = create_session(settings)
        assert [a.name for a in reopened.state.accounts] == ["Cash"]


class RecordingAuditLogger(AuditLogger):
    """Keeps every logged event in memory."""

    def __init__(self):
        super().__init__()
        self.events = []

    def log(self, event):
        self.events.append(event)
        return super().log(event)


class ExplodingLogger:
    """Stands in for a structlog logger whose every call fails."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise RuntimeError("log sink down")
        return fail


class TestAuditing:
    """Auditing never turns a committed change into a failure."""

    def test_long_account_name(self, session):
        """A name longer than an event description still commits cleanly."""
        result = session.create_account({"name": "A" * 500, "type": "Cash"})

        assert result.success
        assert result.value.name == "A" * 500
        assert len(session.state.accounts) == 1

    def test_long_account_name_is_clipped_in_audit(self, storage, manager):
        audit = RecordingAuditLogger()
        session = LedgerSession(storage, manager=manager, audit_logger=audit)
        session.create_account({"name": "A" * 500})

        assert len(audit.events[-1].description) == 500
        assert audit.events[-1].details["name"] == "A" * 500

    def test_failing_audit_sink(self, storage, manager):
        audit = AuditLogger()
        audit._logger = ExplodingLogger()

        session = LedgerSession(storage, manager=manager, audit_logger=audit)
        result = session.create_account({"name": "Cash"})

        assert result.success
        assert storage.load_snapshot() == session.state

    def test_malformed_input_is_audited(self, storage, manager):
        audit = RecordingAuditLogger()
        session = LedgerSession(storage, manager=manager, audit_logger=audit)

        with pytest.raises(ValidationError):
            session.create_account({"type": "Cash"})

        assert session.state.accounts == ()
        assert audit.events[-1].event_type == AuditEventType.OPERATION_REJECTED
        assert audit.events[-1].details["operation"] == "create_account"

    def test_update_records_changed_fields(self, storage, manager):
        audit = RecordingAuditLogger()
        session = LedgerSession(storage, manager=manager, audit_logger=audit)
        cash, _ = open_accounts(session)

        session.update_account(cash.id, {"name": "Cash", "narration": "Wallet"})
        assert audit.events[-1].details["changed_fields"] == ["narration"]


class TestMalformedInput:
    """Dict input is validated into the domain ValidationError."""

    def test_bad_line_amount(self, session):
        cash, bank = open_accounts(session)
        before = session.state

        with pytest.raises(ValidationError):
            session.save_transaction({
                "date": "2024-01-01",
                "lines": [
                    {"accountId": cash.id, "cr": "abc"},
                    {"accountId": bank.id, "dr": "5"},
                ],
            })
        assert session.state is before

    def test_bad_update(self, session):
        cash, _ = open_accounts(session)
        with pytest.raises(ValidationError):
            session.update_account(cash.id, {"opening_balance": "abc"})

    def test_inverted_report_range(self, session):
        open_accounts(session)
        with pytest.raises(ValidationError):
            session.report({"start_date": DAY_2, "end_date": DAY_1})
