"""
In-Memory Storage

A dict-backed KeyValueStore. Nothing survives the process; used by the
test suite and for throwaway sessions.
"""

from typing import Optional

from personal_ledger.services.storage.interface import KeyValueStore


class InMemoryStore(KeyValueStore):
    """KeyValueStore held in a plain dict."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self, prefix: str = "") -> list[str]:
        return [key for key in self._data if key.startswith(prefix)]

    def __len__(self) -> int:
        return len(self._data)
