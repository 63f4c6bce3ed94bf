"""Services package."""

from personal_ledger.services.storage import (
    BackendUnavailableError,
    InMemoryStore,
    JsonFileStore,
    KeyValueStore,
    LedgerStorage,
    PersistenceError,
    SnapshotCorruptError,
)

__all__ = [
    "BackendUnavailableError",
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
    "LedgerStorage",
    "PersistenceError",
    "SnapshotCorruptError",
]
