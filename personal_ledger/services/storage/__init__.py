"""
Storage Services Package

Provides the key-value interface, its backends, and the snapshot/backup
gateway built on top of them.
"""

from personal_ledger.services.storage.interface import (
    BackendUnavailableError,
    KeyValueStore,
    PersistenceError,
    SnapshotCorruptError,
)
from personal_ledger.services.storage.file_store import JsonFileStore
from personal_ledger.services.storage.memory import InMemoryStore
from personal_ledger.services.storage.gateway import LedgerStorage

__all__ = [
    # Interface
    "KeyValueStore",
    # Exceptions
    "BackendUnavailableError",
    "PersistenceError",
    "SnapshotCorruptError",
    # Backends
    "InMemoryStore",
    "JsonFileStore",
    # Gateway
    "LedgerStorage",
]
