"""
Abstract Storage Interface

DESIGN DECISION: The ledger persists through a plain key-value interface.
This allows us to:
1. Keep snapshots as local JSON files
2. Use in-memory storage for testing
3. Swap in another backend without touching the accounting engine

The interface is intentionally tiny: string values under string keys.
Snapshot and backup policy (key naming, retention) lives one level up
in LedgerStorage, not in the backends.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStore(ABC):
    """
    Abstract interface for the persistence substrate.

    Any backend must implement these methods. Backend failures are
    raised as PersistenceError (or a subclass).
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Returns:
            The stored text, or None if the key doesn't exist
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store a value, overwriting any previous value.

        Raises:
            PersistenceError: If the write fails
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove a key.

        Returns:
            True if the key existed
        """
        pass

    @abstractmethod
    def keys(self, prefix: str = "") -> list[str]:
        """
        List stored keys starting with a prefix.

        Returns:
            Matching keys, in no particular order
        """
        pass

    def exists(self, key: str) -> bool:
        return self.get(key) is not None


class PersistenceError(Exception):
    """Base exception for storage operations."""
    pass


class SnapshotCorruptError(PersistenceError):
    """Stored data could not be decoded into a ledger."""
    pass


class BackendUnavailableError(PersistenceError):
    """The storage backend can't be reached or written."""
    pass
