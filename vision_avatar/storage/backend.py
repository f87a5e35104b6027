# vision_avatar/storage/backend.py
"""Key/value persistence backends for the profile store"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional
import os
import logging
import threading

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised by a backend when the underlying medium fails"""


class StorageBackend(ABC):
    """
    Minimal string key/value store.

    Each key is an independent persisted value, so a broken profile list
    never takes the collection id or the default name down with it.
    """

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """Return the stored value or None if the key was never written"""

    @abstractmethod
    def write(self, key: str, value: str):
        """Store value under key, replacing any previous value"""

    @abstractmethod
    def remove(self, key: str):
        """Forget key; removing a missing key is not an error"""


class MemoryBackend(StorageBackend):
    """Process-local backend, used for tests and throwaway sessions"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def read(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def write(self, key: str, value: str):
        with self._lock:
            self._data[key] = value

    def remove(self, key: str):
        with self._lock:
            self._data.pop(key, None)


class JsonFileBackend(StorageBackend):
    """
    One file per key under a directory.

    Writes go to a temporary file first and are moved into place with
    os.replace so a crash mid-write leaves the previous value intact.
    """

    def __init__(self, directory: str):
        self.directory = Path(os.path.expanduser(directory))
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        with self._lock:
            try:
                return path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None
            except OSError as e:
                raise StorageError(f"Failed to read {path}: {e}") from e

    def write(self, key: str, value: str):
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        with self._lock:
            try:
                self.directory.mkdir(parents=True, exist_ok=True)
                tmp_path.write_text(value, encoding="utf-8")
                os.replace(tmp_path, path)
            except OSError as e:
                raise StorageError(f"Failed to write {path}: {e}") from e

    def remove(self, key: str):
        path = self._path(key)
        with self._lock:
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                raise StorageError(f"Failed to remove {path}: {e}") from e


def create_backend(kind: str, directory: str) -> StorageBackend:
    """Build the backend named in StorageConfig"""
    if kind == "memory":
        return MemoryBackend()
    if kind == "file":
        return JsonFileBackend(directory)
    raise ValueError(f"Unknown storage backend: {kind}")
