# vision_avatar/storage/profiles.py
"""Profile store: oracle identity id -> user-chosen display name"""
from typing import List, Optional
import json
import logging
import threading
import time

from .backend import StorageBackend, StorageError
from ..utils.state import ProfileRecord, PLACEHOLDER_NAME, is_real_name

logger = logging.getLogger(__name__)

PROFILES_KEY = "profiles"


class ProfileStore:
    """
    Durable list of ProfileRecords, upserted by id.

    Every operation goes back to the backend, so the frame-tick path and the
    voice-command path always see each other's writes. Storage failures are
    logged and swallowed here: a failed read looks like an empty store and a
    failed write is a no-op. "Not found" is a normal answer, never an error.
    """

    def __init__(self, backend: StorageBackend, placeholder_name: str = PLACEHOLDER_NAME):
        self.backend = backend
        self.placeholder_name = placeholder_name
        self._lock = threading.RLock()

    def _load(self) -> List[ProfileRecord]:
        try:
            raw = self.backend.read(PROFILES_KEY)
        except StorageError as e:
            logger.error(f"Failed to load profiles: {e}")
            return []

        if not raw:
            return []

        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError("profile list is not a JSON array")
            return [ProfileRecord.from_dict(item) for item in data]
        except (ValueError, KeyError, TypeError) as e:
            # A corrupt list is treated as an empty store, never as fatal
            logger.warning(f"Discarding corrupt profile list: {e}")
            return []

    def _save(self, profiles: List[ProfileRecord]) -> bool:
        try:
            self.backend.write(PROFILES_KEY, json.dumps([p.to_dict() for p in profiles]))
            return True
        except StorageError as e:
            logger.error(f"Failed to save profiles: {e}")
            return False

    def get(self, identity_id: str) -> Optional[ProfileRecord]:
        """Get a profile by oracle identity id"""
        with self._lock:
            for profile in self._load():
                if profile.id == identity_id:
                    return profile
        return None

    def get_by_name(self, name: str) -> Optional[ProfileRecord]:
        """Case-insensitive lookup by display name"""
        if not name:
            return None
        wanted = name.strip().lower()
        with self._lock:
            for profile in self._load():
                if profile.name.strip().lower() == wanted:
                    return profile
        return None

    def upsert(self, record: ProfileRecord):
        """Insert a new profile or replace the one with the same id"""
        with self._lock:
            profiles = self._load()
            for index, existing in enumerate(profiles):
                if existing.id == record.id:
                    profiles[index] = record
                    break
            else:
                profiles.append(record)
            self._save(profiles)

    def touch(self, identity_id: str, at: Optional[float] = None) -> bool:
        """Bump last_seen_at for an existing profile"""
        with self._lock:
            profiles = self._load()
            for profile in profiles:
                if profile.id == identity_id:
                    profile.last_seen_at = at if at is not None else time.time()
                    return self._save(profiles)
        return False

    def name_placeholders(self, name: str) -> List[str]:
        """
        Give name to every profile that does not have a real one yet.

        The oracle can hand out several ids for the same physical person, so
        an introduction is propagated to all of them.

        Returns:
            Ids of the profiles that were renamed
        """
        renamed = []
        with self._lock:
            profiles = self._load()
            for profile in profiles:
                if not is_real_name(profile.name, self.placeholder_name):
                    profile.name = name
                    renamed.append(profile.id)
            if renamed:
                self._save(profiles)
        return renamed

    def delete(self, identity_id: str) -> bool:
        """Delete a profile; returns False if it did not exist"""
        with self._lock:
            profiles = self._load()
            remaining = [p for p in profiles if p.id != identity_id]
            if len(remaining) == len(profiles):
                return False
            if not self._save(remaining):
                return False
        logger.info(f"Deleted profile: {identity_id}")
        return True

    def list_all(self) -> List[ProfileRecord]:
        with self._lock:
            return self._load()

    def clear(self):
        """Remove every profile"""
        with self._lock:
            try:
                self.backend.remove(PROFILES_KEY)
            except StorageError as e:
                logger.error(f"Failed to clear profiles: {e}")
