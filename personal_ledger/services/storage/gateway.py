"""
Ledger Storage Gateway

Snapshot and backup policy on top of a KeyValueStore:

1. SNAPSHOT - the live ledger, one key, overwritten after every change
2. BACKUPS  - timestamped copies under `backup_prefix + ISO timestamp`,
              tagged with `_backupTime`, `_version` and `_backupType`

Retention keeps only the newest `max_backups` backups. Backup keys share
one fixed-width UTC timestamp format, so sorting keys as strings sorts
them chronologically.

DESIGN DECISION: Read failures come back as None ("nothing usable
stored") and write failures as False/None. The caller's in-memory
ledger stays authoritative; a failed write is logged, never raised into
the accounting engine.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog
from pydantic import ValidationError as SchemaError

from personal_ledger.config import StorageSettings, get_settings
from personal_ledger.models.ledger import BackupMetadata, LedgerState
from personal_ledger.services.storage.interface import (
    KeyValueStore,
    PersistenceError,
    SnapshotCorruptError,
)


logger = structlog.get_logger(__name__)

BACKUP_TIME_FIELD = "_backupTime"
BACKUP_VERSION_FIELD = "_version"
BACKUP_TYPE_FIELD = "_backupType"
BACKUP_META_FIELDS = (BACKUP_TIME_FIELD, BACKUP_VERSION_FIELD, BACKUP_TYPE_FIELD)

BACKUP_KINDS = ("manual", "auto")
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
CORRUPT_SUFFIX = ".corrupt"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_backup_time(moment: datetime) -> str:
    """Fixed-width ISO-8601 UTC text, e.g. 2024-05-01T09:30:00.000000Z."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_backup_time(text: str) -> datetime:
    return datetime.strptime(text, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def decode_state(raw: str) -> LedgerState:
    """Decode stored JSON into a LedgerState, ignoring backup tags."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise SnapshotCorruptError(f"Stored ledger is not valid JSON: {e}")
    if not isinstance(data, dict):
        raise SnapshotCorruptError("Stored ledger is not a JSON object")

    clean = {key: value for key, value in data.items() if key not in BACKUP_META_FIELDS}
    try:
        return LedgerState.model_validate(clean)
    except SchemaError as e:
        raise SnapshotCorruptError(f"Stored ledger does not match the schema: {e}")


class LedgerStorage:
    """
    Durable snapshot store with timestamped, bounded backups.

    All methods are synchronous and never raise PersistenceError to the
    caller.
    """

    def __init__(
        self,
        store: KeyValueStore,
        settings: Optional[StorageSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the gateway.

        Args:
            store: Key-value backend
            settings: Key names and retention policy (defaults to env config)
            clock: Source of "now" for backup keys (injectable for tests)
        """
        self._store = store
        self._settings = settings or get_settings().storage
        self._clock = clock or utc_now

    @property
    def settings(self) -> StorageSettings:
        return self._settings

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def load_snapshot(self) -> Optional[LedgerState]:
        """
        Fetch the last saved ledger.

        Returns None when nothing is stored. An unreadable snapshot is
        copied aside under `<snapshot_key>.corrupt` and also returns None.
        """
        key = self._settings.snapshot_key
        try:
            raw = self._store.get(key)
        except PersistenceError as e:
            logger.error("snapshot_load_failed", key=key, error=str(e))
            return None

        if raw is None:
            return None

        try:
            return decode_state(raw)
        except SnapshotCorruptError as e:
            logger.error("snapshot_corrupt", key=key, error=str(e))
            self._quarantine(key, raw)
            return None

    def save_snapshot(self, state: LedgerState) -> bool:
        """Overwrite the live snapshot. Returns False if the write failed."""
        key = self._settings.snapshot_key
        try:
            self._store.set(key, json.dumps(state.to_document()))
        except PersistenceError as e:
            logger.error("snapshot_save_failed", key=key, error=str(e))
            return False
        return True

    def _quarantine(self, key: str, raw: str) -> None:
        try:
            self._store.set(key + CORRUPT_SUFFIX, raw)
        except PersistenceError as e:
            logger.error("snapshot_quarantine_failed", key=key, error=str(e))

    # -------------------------------------------------------------------------
    # Backups
    # -------------------------------------------------------------------------

    def _backup_keys(self) -> list[str]:
        """Backup keys, newest first."""
        return sorted(self._store.keys(self._settings.backup_prefix), reverse=True)

    def _next_backup_key(self) -> tuple[str, str]:
        moment = self._clock()
        while True:
            stamp = format_backup_time(moment)
            key = self._settings.backup_prefix + stamp
            if not self._store.exists(key):
                return key, stamp
            moment += timedelta(microseconds=1)

    def create_backup(self, state: LedgerState, kind: str = "manual") -> Optional[str]:
        """
        Write a timestamped copy of the ledger.

        Returns:
            The backup key, or None if the backup could not be written
        """
        if kind not in BACKUP_KINDS:
            raise ValueError(f"Unknown backup kind: {kind}")

        try:
            key, stamp = self._next_backup_key()
            payload = state.to_document()
            payload[BACKUP_TIME_FIELD] = stamp
            payload[BACKUP_VERSION_FIELD] = self._settings.backup_version
            payload[BACKUP_TYPE_FIELD] = kind
            self._store.set(key, json.dumps(payload))
        except PersistenceError as e:
            logger.error("backup_create_failed", kind=kind, error=str(e))
            return None

        logger.info("backup_created", key=key, kind=kind)
        self._enforce_retention()
        return key

    def _enforce_retention(self) -> list[str]:
        """Delete all but the newest `max_backups` backups."""
        removed = []
        try:
            for key in self._backup_keys()[self._settings.max_backups:]:
                if self._store.delete(key):
                    removed.append(key)
        except PersistenceError as e:
            logger.error("backup_cleanup_failed", error=str(e))
        if removed:
            logger.info("backups_pruned", removed=removed)
        return removed

    def list_backups(self) -> list[BackupMetadata]:
        """Describe every readable backup, newest first."""
        backups = []
        try:
            keys = self._backup_keys()
        except PersistenceError as e:
            logger.error("backup_list_failed", error=str(e))
            return backups

        prefix_len = len(self._settings.backup_prefix)
        for key in keys:
            try:
                raw = self._store.get(key)
                if raw is None:
                    continue
                data = json.loads(raw)
                stamp = data.get(BACKUP_TIME_FIELD) or key[prefix_len:]
                kind = data.get(BACKUP_TYPE_FIELD)
                backups.append(BackupMetadata(
                    key=key,
                    timestamp=parse_backup_time(stamp),
                    kind=kind if kind in BACKUP_KINDS else "manual",
                    accounts_count=len(data.get("accounts") or []),
                    transactions_count=len(data.get("transactions") or []),
                ))
            except (PersistenceError, ValueError, AttributeError) as e:
                logger.warning("backup_unreadable", key=key, error=str(e))

        backups.sort(key=lambda backup: backup.timestamp, reverse=True)
        return backups

    def restore_backup(self, key: str) -> Optional[LedgerState]:
        """
        Read a backup back into a LedgerState, without its backup tags.

        Returns None for unknown, non-backup or corrupt keys.
        """
        if not key.startswith(self._settings.backup_prefix):
            logger.warning("restore_rejected_not_a_backup", key=key)
            return None

        try:
            raw = self._store.get(key)
        except PersistenceError as e:
            logger.error("backup_read_failed", key=key, error=str(e))
            return None

        if raw is None:
            logger.warning("backup_not_found", key=key)
            return None

        try:
            return decode_state(raw)
        except SnapshotCorruptError as e:
            logger.error("backup_corrupt", key=key, error=str(e))
            return None
