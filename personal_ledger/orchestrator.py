"""
Ledger Session Orchestrator

This module ties together the lifecycle manager, the read-side queries,
storage and auditing into one session object that a front end drives.

DESIGN DECISION: The session owns the one live LedgerState.
- Every change is computed by LedgerManager against the current snapshot
- The new snapshot replaces the old one under a lock (single writer)
- The snapshot is then persisted, and every N saves backed up
- Every step is audited

DESIGN DECISION: Persistence failures are SOFT. If the snapshot write
fails, the change stays live in memory and the result says
`persisted=False`. Rejected operations (validation, not found, conflict)
raise and leave the state exactly as it was.
"""

import json
import threading
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional, Union

from personal_ledger.audit import AuditLogger
from personal_ledger.config import StorageSettings, get_settings
from personal_ledger.editor import TransactionEditor
from personal_ledger.errors import LedgerError, ValidationError
from personal_ledger.lifecycle import LedgerManager
from personal_ledger.models.ledger import (
    Account,
    AccountCreate,
    AccountUpdate,
    BackupMetadata,
    LedgerState,
    PostedSnapshot,
    Transaction,
    TransactionDraft,
)
from personal_ledger.models.report import (
    LedgerSummary,
    OperationResult,
    Report,
    ReportFilter,
)
from personal_ledger.queries import build_report, compute_balances, summarize_ledger
from personal_ledger.services.storage import JsonFileStore, LedgerStorage
from personal_ledger.services.storage.gateway import utc_now
from personal_ledger.validation import parse_input


class LedgerSession:
    """
    One interactive ledger session.

    Flow for every change:
    1. Compute   → LedgerManager builds the new state (or raises)
    2. Commit    → replace the live snapshot, bump save_count
    3. Persist   → save the snapshot (failure is reported, not raised)
    4. Auto-back → every `auto_backup_every` saves
    5. Audit     → structured audit event
    """

    def __init__(
        self,
        storage: LedgerStorage,
        state: Optional[LedgerState] = None,
        manager: Optional[LedgerManager] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._storage = storage
        self._state = state or LedgerState()
        self._manager = manager or LedgerManager(clock=clock)
        self._audit = audit_logger or AuditLogger()
        self._clock = clock or utc_now
        self._lock = threading.Lock()

    @classmethod
    def open(
        cls,
        storage: LedgerStorage,
        manager: Optional[LedgerManager] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "LedgerSession":
        """Start a session from the last saved snapshot (or empty)."""
        state = storage.load_snapshot()
        return cls(
            storage,
            state=state,
            manager=manager,
            audit_logger=audit_logger,
            clock=clock,
        )

    @property
    def state(self) -> LedgerState:
        """The live snapshot. Immutable; safe to hold on to."""
        return self._state

    @property
    def storage(self) -> LedgerStorage:
        return self._storage

    # =========================================================================
    # COMMIT
    # =========================================================================

    def _apply(
        self,
        operation: str,
        change: Callable[[LedgerState], tuple[LedgerState, Any]],
    ) -> tuple[Any, bool]:
        """
        Run a state transition against the live snapshot and commit it.

        Returns (value, persisted). Domain errors propagate with the live
        state untouched.
        """
        with self._lock:
            try:
                new_state, value = change(self._state)
            except LedgerError as e:
                self._audit.log_rejected(operation, str(e))
                raise
            persisted = self._commit(operation, new_state)
        return value, persisted

    def _commit(self, operation: str, new_state: LedgerState) -> bool:
        """Replace the live snapshot and persist it. Caller holds the lock."""
        meta = new_state.meta.model_copy(update={"save_count": new_state.meta.save_count + 1})
        new_state = new_state.model_copy(update={"meta": meta})
        self._state = new_state

        persisted = self._storage.save_snapshot(new_state)
        if not persisted:
            self._audit.log_persistence_failed(operation, "snapshot write failed")

        every = self._storage.settings.auto_backup_every
        if every and meta.save_count % every == 0:
            key = self._storage.create_backup(new_state, kind="auto")
            if key:
                self._audit.log_backup_created(key, "auto")

        return persisted

    @staticmethod
    def _result(message: str, value: Any, persisted: bool) -> OperationResult:
        if not persisted:
            message = f"{message} (not saved to disk)"
        return OperationResult(message=message, value=value, persisted=persisted)

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    def create_account(self, details: Union[AccountCreate, dict]) -> OperationResult:
        account, persisted = self._apply(
            "create_account",
            lambda state: self._manager.create_account(state, details),
        )
        self._audit.log_account_created(account.id, account.name, account.serial)
        return self._result("Account created", account, persisted)

    def update_account(
        self,
        account_id: str,
        changes: Union[AccountUpdate, dict],
    ) -> OperationResult:
        changed: list[str] = []

        def change(state: LedgerState) -> tuple[LedgerState, Account]:
            before = state.get_account(account_id)
            new_state, account = self._manager.update_account(state, account_id, changes)
            changed.extend(
                field for field in AccountUpdate.model_fields
                if getattr(before, field) != getattr(account, field)
            )
            return new_state, account

        account, persisted = self._apply("update_account", change)
        self._audit.log_account_updated(account.id, changed)
        return self._result("Account updated", account, persisted)

    def delete_account(self, account_id: str) -> OperationResult:
        account, persisted = self._apply(
            "delete_account",
            lambda state: self._manager.delete_account(state, account_id),
        )
        self._audit.log_account_deleted(account.id)
        return self._result("Account deleted", account, persisted)

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def _posting_snapshot(self, state: LedgerState) -> LedgerState:
        summary = summarize_ledger(state)
        snapshot = PostedSnapshot(
            timestamp=self._clock(),
            bank=summary.total_bank,
            cash=summary.total_cash,
        )
        meta = state.meta.model_copy(update={"last_posted_snapshot": snapshot})
        return state.model_copy(update={"meta": meta})

    def save_transaction(self, draft: Union[TransactionDraft, dict]) -> OperationResult:
        """Create or update a voucher; posting also records cash/bank totals."""

        def change(state: LedgerState) -> tuple[LedgerState, Transaction]:
            new_state, transaction = self._manager.save_transaction(state, draft)
            if transaction.posted:
                new_state = self._posting_snapshot(new_state)
            return new_state, transaction

        transaction, persisted = self._apply("save_transaction", change)
        self._audit.log_transaction_saved(
            transaction_id=transaction.id,
            voucher_no=transaction.voucher_no,
            posted=transaction.posted,
            amount=str(transaction.total_dr),
        )
        message = "Transaction posted" if transaction.posted else "Draft saved"
        return self._result(message, transaction, persisted)

    def delete_transaction(self, transaction_id: str) -> OperationResult:
        transaction, persisted = self._apply(
            "delete_transaction",
            lambda state: self._manager.delete_transaction(state, transaction_id),
        )
        self._audit.log_transaction_deleted(transaction.id, transaction.voucher_no)
        return self._result("Transaction deleted", transaction, persisted)

    def new_voucher(self, entry_date: Optional[date] = None) -> TransactionEditor:
        """Open an editor for a new voucher numbered from the live counter."""
        return TransactionEditor.new(self._state, entry_date)

    def edit_voucher(self, transaction_id: str) -> TransactionEditor:
        return TransactionEditor.edit(self._state, transaction_id)

    # =========================================================================
    # READ SIDE
    # =========================================================================

    def balances(self) -> dict[str, Decimal]:
        return compute_balances(self._state)

    def report(self, report_filter: Optional[Union[ReportFilter, dict]] = None) -> Report:
        if report_filter is not None:
            report_filter = parse_input(ReportFilter, report_filter)
        return build_report(self._state, report_filter)

    def summary(self) -> LedgerSummary:
        return summarize_ledger(self._state)

    # =========================================================================
    # WHOLE LEDGER
    # =========================================================================

    def export_data(self) -> dict:
        """The full ledger as a camelCase JSON-ready document."""
        return self._state.to_document()

    def export_json(self, indent: int = 2) -> str:
        return json.dumps(self.export_data(), indent=indent)

    def import_data(
        self,
        document: Union[dict, str],
        strict: bool = True,
    ) -> OperationResult:
        """
        Replace the whole ledger with an imported document.

        The current ledger is backed up first. With `strict` (default)
        the document must pass every ledger check; warnings are returned
        in the result.

        Raises:
            ValidationError: Malformed document or rule violations
        """
        if isinstance(document, str):
            try:
                document = json.loads(document)
            except json.JSONDecodeError as e:
                self._audit.log_rejected("import_data", str(e))
                raise ValidationError(f"Invalid JSON file: {e}")

        try:
            imported, result = self._manager.import_state(document, strict=strict)
        except ValidationError as e:
            self._audit.log_rejected("import_data", e.message)
            raise

        with self._lock:
            self._storage.create_backup(self._state, kind="manual")
            persisted = self._commit("import_data", imported)

        self._audit.log_data_imported(
            accounts=len(imported.accounts),
            transactions=len(imported.transactions),
            warnings=len(result.warnings),
        )
        return self._result("Data imported successfully", result, persisted)

    def clear_all_data(self) -> OperationResult:
        """Back up the ledger, then reset to an empty one."""
        with self._lock:
            backup_key = self._storage.create_backup(self._state, kind="manual")
            persisted = self._commit("clear_all_data", LedgerState())
        self._audit.log_data_cleared(backup_key)
        return self._result("All data cleared", backup_key, persisted)

    # =========================================================================
    # BACKUPS
    # =========================================================================

    def perform_backup(self, kind: str = "manual") -> OperationResult:
        key = self._storage.create_backup(self._state, kind=kind)
        if key is None:
            return OperationResult(success=False, message="Backup failed", persisted=False)
        self._audit.log_backup_created(key, kind)
        return OperationResult(message="Backup created successfully", value=key)

    def list_backups(self) -> list[BackupMetadata]:
        return self._storage.list_backups()

    def restore_backup(self, key: str) -> OperationResult:
        """
        Replace the ledger with a stored backup.

        The current ledger is backed up first, so a restore can itself
        be undone.
        """
        restored = self._storage.restore_backup(key)
        if restored is None:
            return OperationResult(
                success=False,
                message="Failed to restore backup",
                persisted=False,
            )

        with self._lock:
            safety_key = self._storage.create_backup(self._state, kind="manual")
            persisted = self._commit("restore_backup", restored)

        self._audit.log_backup_restored(key, safety_key)
        return self._result("System restored from backup", key, persisted)


def create_session(
    storage_settings: Optional[StorageSettings] = None,
    manager: Optional[LedgerManager] = None,
) -> LedgerSession:
    """
    Factory for a session backed by JSON files in the configured data
    directory.
    """
    storage_settings = storage_settings or get_settings().storage
    store = JsonFileStore(storage_settings.data_dir)
    storage = LedgerStorage(store, settings=storage_settings)
    return LedgerSession.open(storage, manager=manager)
