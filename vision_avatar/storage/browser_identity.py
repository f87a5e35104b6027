# vision_avatar/storage/browser_identity.py
"""Browser-wide identity settings: default name and recognition collection id"""
from typing import Callable, Optional
import logging
import secrets
import string
import time

from .backend import StorageBackend, StorageError

logger = logging.getLogger(__name__)

COLLECTION_ID_KEY = "collection_id"
DEFAULT_NAME_KEY = "default_name"

_ALPHABET = string.ascii_lowercase + string.digits


def generate_collection_id(clock: Callable[[], float] = time.time) -> str:
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(9))
    return f"browser_{int(clock() * 1000)}_{suffix}"


class BrowserIdentity:
    """
    Process-wide identity settings for this installation.

    The default name is set when someone introduces themselves, read every time
    a new face gets indexed, and cleared on erase-me. The collection id is
    created lazily and also cleared on erase-me, so the next session starts in
    a fresh recognition collection.
    """

    def __init__(self, backend: StorageBackend, clock: Callable[[], float] = time.time):
        self.backend = backend
        self.clock = clock

    def _read(self, key: str) -> Optional[str]:
        try:
            value = self.backend.read(key)
        except StorageError as e:
            logger.error(f"Failed to read {key}: {e}")
            return None
        if value is None:
            return None
        value = value.strip()
        return value or None

    def _write(self, key: str, value: str):
        try:
            self.backend.write(key, value)
        except StorageError as e:
            logger.error(f"Failed to write {key}: {e}")

    def _remove(self, key: str):
        try:
            self.backend.remove(key)
        except StorageError as e:
            logger.error(f"Failed to remove {key}: {e}")

    @property
    def default_name(self) -> Optional[str]:
        return self._read(DEFAULT_NAME_KEY)

    def set_default_name(self, name: str):
        self._write(DEFAULT_NAME_KEY, name)
        logger.info(f"Default name for this browser set to: {name}")

    def clear_default_name(self):
        self._remove(DEFAULT_NAME_KEY)

    @property
    def stored_collection_id(self) -> Optional[str]:
        """The persisted collection id, without creating one"""
        return self._read(COLLECTION_ID_KEY)

    def collection_id(self) -> str:
        """Get or create the collection id for this browser"""
        collection_id = self._read(COLLECTION_ID_KEY)
        if collection_id:
            return collection_id
        collection_id = generate_collection_id(self.clock)
        self._write(COLLECTION_ID_KEY, collection_id)
        logger.info(f"Created collection id: {collection_id}")
        return collection_id

    def clear_collection_id(self):
        self._remove(COLLECTION_ID_KEY)

    def reset(self):
        """Forget both the default name and the collection id"""
        self.clear_default_name()
        self.clear_collection_id()
