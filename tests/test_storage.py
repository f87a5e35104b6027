# tests/test_storage.py
"""Storage backends, profile store and browser identity"""

import json
import re

import pytest

from vision_avatar.storage import (
    BrowserIdentity,
    JsonFileBackend,
    MemoryBackend,
    ProfileStore,
    StorageBackend,
    StorageError,
    create_backend,
)
from vision_avatar.storage.browser_identity import COLLECTION_ID_KEY
from vision_avatar.storage.profiles import PROFILES_KEY
from vision_avatar.utils.state import ProfileRecord


class BrokenBackend(StorageBackend):
    def read(self, key):
        raise StorageError("disk on fire")

    def write(self, key, value):
        raise StorageError("disk on fire")

    def remove(self, key):
        raise StorageError("disk on fire")


def test_json_file_backend_round_trip(tmp_path):
    backend = JsonFileBackend(str(tmp_path / "store"))
    assert backend.read("profiles") is None

    backend.write("profiles", "[]")
    assert backend.read("profiles") == "[]"
    assert (tmp_path / "store" / "profiles.json").exists()
    assert not (tmp_path / "store" / "profiles.json.tmp").exists()

    backend.remove("profiles")
    backend.remove("profiles")
    assert backend.read("profiles") is None


def test_json_file_backend_keys_are_independent(tmp_path):
    backend = JsonFileBackend(str(tmp_path))
    backend.write("profiles", "not json at all")
    backend.write("collection_id", "browser_1_abc")
    assert backend.read("collection_id") == "browser_1_abc"


def test_create_backend(tmp_path):
    assert isinstance(create_backend("memory", str(tmp_path)), MemoryBackend)
    assert isinstance(create_backend("file", str(tmp_path)), JsonFileBackend)
    with pytest.raises(ValueError):
        create_backend("redis", str(tmp_path))


class TestProfileStore:

    def test_not_found_is_none(self, profiles):
        assert profiles.get("missing") is None
        assert profiles.get_by_name("nobody") is None
        assert profiles.delete("missing") is False
        assert profiles.touch("missing") is False

    def test_upsert_inserts_then_replaces(self, profiles):
        profiles.upsert(ProfileRecord(id="F1", name="Unknown", first_seen_at=1, last_seen_at=1))
        profiles.upsert(ProfileRecord(id="F1", name="Ana", first_seen_at=1, last_seen_at=2))
        assert len(profiles.list_all()) == 1
        assert profiles.get("F1").name == "Ana"

    def test_get_by_name_is_case_insensitive(self, profiles):
        profiles.upsert(ProfileRecord(id="F1", name="Ana"))
        assert profiles.get_by_name("ANA").id == "F1"
        assert profiles.get_by_name(" ana ").id == "F1"

    def test_touch_updates_last_seen(self, profiles):
        profiles.upsert(ProfileRecord(id="F1", name="Ana", first_seen_at=1, last_seen_at=1))
        assert profiles.touch("F1", at=50) is True
        record = profiles.get("F1")
        assert record.first_seen_at == 1
        assert record.last_seen_at == 50

    def test_name_placeholders_leaves_real_names(self, profiles):
        for identity_id in ("F1", "F2", "F3"):
            profiles.upsert(ProfileRecord(id=identity_id, name="Unknown"))
        profiles.upsert(ProfileRecord(id="F4", name="Bea"))

        renamed = profiles.name_placeholders("Ana")

        assert sorted(renamed) == ["F1", "F2", "F3"]
        assert [p.name for p in profiles.list_all()] == ["Ana", "Ana", "Ana", "Bea"]

    def test_delete(self, profiles):
        profiles.upsert(ProfileRecord(id="F1", name="Ana"))
        profiles.upsert(ProfileRecord(id="F2", name="Bea"))
        assert profiles.delete("F1") is True
        assert [p.id for p in profiles.list_all()] == ["F2"]

    def test_corrupt_list_is_empty_store(self, backend, profiles):
        backend.write(PROFILES_KEY, "{this is not json")
        assert profiles.list_all() == []
        assert profiles.get("F1") is None

        # And it can be written over
        profiles.upsert(ProfileRecord(id="F1", name="Ana"))
        assert profiles.get("F1").name == "Ana"

    def test_non_list_payload_is_empty_store(self, backend, profiles):
        backend.write(PROFILES_KEY, json.dumps({"id": "F1"}))
        assert profiles.list_all() == []

    def test_entry_without_id_is_empty_store(self, backend, profiles):
        backend.write(PROFILES_KEY, json.dumps([{"name": "Ana"}]))
        assert profiles.list_all() == []

    @pytest.mark.parametrize("payload", [
        "[1, 2]",
        '["a"]',
        "[null]",
        '[{"id": "a", "name": 5}]',
    ])
    def test_malformed_entries_are_empty_store(self, backend, profiles, payload):
        backend.write(PROFILES_KEY, payload)
        assert profiles.list_all() == []
        assert profiles.get("a") is None
        assert profiles.get_by_name("Ana") is None
        assert profiles.name_placeholders("Ana") == []
        assert profiles.touch("a") is False

    def test_get_by_name_ignores_stored_padding(self, backend, profiles):
        backend.write(PROFILES_KEY, json.dumps([{"id": "F1", "name": " Ana"}]))
        assert profiles.get_by_name("ana").id == "F1"

    def test_storage_failures_are_no_ops(self):
        store = ProfileStore(BrokenBackend())
        assert store.list_all() == []
        store.upsert(ProfileRecord(id="F1", name="Ana"))
        assert store.get("F1") is None
        assert store.name_placeholders("Ana") == []
        store.clear()

    def test_clear(self, profiles):
        profiles.upsert(ProfileRecord(id="F1", name="Ana"))
        profiles.clear()
        assert profiles.list_all() == []

    def test_persists_across_instances(self, tmp_path):
        ProfileStore(JsonFileBackend(str(tmp_path))).upsert(ProfileRecord(id="F1", name="Ana"))
        assert ProfileStore(JsonFileBackend(str(tmp_path))).get("F1").name == "Ana"


class TestBrowserIdentity:

    def test_collection_id_is_created_once(self, browser, clock):
        collection_id = browser.collection_id()
        assert re.fullmatch(rf"browser_{int(clock() * 1000)}_[a-z0-9]{{9}}", collection_id)
        assert browser.collection_id() == collection_id

    def test_stored_collection_id_does_not_create_one(self, backend, browser):
        assert browser.stored_collection_id is None
        assert backend.read(COLLECTION_ID_KEY) is None

        collection_id = browser.collection_id()
        assert browser.stored_collection_id == collection_id

    def test_default_name(self, browser):
        assert browser.default_name is None
        browser.set_default_name("Ana")
        assert browser.default_name == "Ana"
        browser.clear_default_name()
        assert browser.default_name is None

    def test_reset_clears_name_and_collection(self, browser, clock):
        browser.set_default_name("Ana")
        first = browser.collection_id()
        browser.reset()
        clock.advance(1)
        assert browser.default_name is None
        assert browser.collection_id() != first

    def test_values_are_stored_separately_from_profiles(self, backend, browser, profiles):
        browser.set_default_name("Ana")
        backend.write(PROFILES_KEY, "garbage")
        assert browser.default_name == "Ana"

    def test_storage_failures_are_swallowed(self):
        browser = BrowserIdentity(BrokenBackend())
        assert browser.default_name is None
        browser.set_default_name("Ana")
        browser.reset()
        assert browser.collection_id().startswith("browser_")
