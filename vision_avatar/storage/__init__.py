# vision_avatar/storage/__init__.py
"""Local, best-effort identity persistence"""

from .backend import StorageBackend, StorageError, MemoryBackend, JsonFileBackend, create_backend
from .profiles import ProfileStore
from .browser_identity import BrowserIdentity

__all__ = [
    "StorageBackend",
    "StorageError",
    "MemoryBackend",
    "JsonFileBackend",
    "create_backend",
    "ProfileStore",
    "BrowserIdentity",
]
