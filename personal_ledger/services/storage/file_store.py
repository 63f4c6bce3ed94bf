"""
JSON File Storage Implementation

DESIGN DECISION: Each key is one file in the data directory.
1. Users can open and copy their ledger files directly
2. No database setup required
3. A backup is just another file, easy to move between machines

TRADEOFFS:
- Listing keys scans the directory (fine for a personal ledger with a
  few dozen backups)
- Keys are percent-encoded into file names, since backup keys carry
  ISO timestamps with ':' in them

Writes go to a temporary file first and are then renamed over the
target, so a crash mid-write never leaves a half-written snapshot.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional, Union
from urllib.parse import quote, unquote

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from personal_ledger.config import get_settings
from personal_ledger.services.storage.interface import (
    BackendUnavailableError,
    KeyValueStore,
    PersistenceError,
)


FILE_SUFFIX = ".json"


_retry_io = retry(
    retry=retry_if_exception_type(OSError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
    reraise=True,
)


class JsonFileStore(KeyValueStore):
    """KeyValueStore with one UTF-8 file per key."""

    def __init__(self, data_dir: Optional[Union[str, Path]] = None):
        """
        Initialize the store.

        Args:
            data_dir: Directory for the files. Defaults to the configured
                      storage data_dir. Created if missing.
        """
        self._dir = Path(data_dir) if data_dir is not None else get_settings().storage.data_dir
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackendUnavailableError(f"Cannot create data directory {self._dir}: {e}")

    @property
    def data_dir(self) -> Path:
        return self._dir

    def _path_for(self, key: str) -> Path:
        if not key:
            raise PersistenceError("Storage key cannot be empty")
        return self._dir / (quote(key, safe="") + FILE_SUFFIX)

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise BackendUnavailableError(f"Failed to read '{key}': {e}")

    def set(self, key: str, value: str) -> None:
        try:
            self._write(self._path_for(key), value)
        except OSError as e:
            raise BackendUnavailableError(f"Failed to write '{key}': {e}")

    @_retry_io
    def _write(self, path: Path, value: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=".tmp-", suffix=FILE_SUFFIX)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def delete(self, key: str) -> bool:
        try:
            return self._unlink(self._path_for(key))
        except OSError as e:
            raise BackendUnavailableError(f"Failed to delete '{key}': {e}")

    @_retry_io
    def _unlink(self, path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def keys(self, prefix: str = "") -> list[str]:
        try:
            names = os.listdir(self._dir)
        except OSError as e:
            raise BackendUnavailableError(f"Failed to list {self._dir}: {e}")

        result = []
        for name in names:
            if name.startswith(".tmp-") or not name.endswith(FILE_SUFFIX):
                continue
            key = unquote(name[: -len(FILE_SUFFIX)])
            if key.startswith(prefix):
                result.append(key)
        return result
