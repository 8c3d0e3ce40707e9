"""Unit tests for RecordCache."""

import json
import threading
from datetime import timedelta

import pytest

from rental_bot.repositories.record_cache import RecordCache
from rental_bot.repositories.record_store import EntityType, PersistenceError


def failing_write(entity, records):
    raise PersistenceError("disk full")


class TestLoad:
    """Tests for loading collections"""

    def test_load_empty_store(self, store, clock):
        cache = RecordCache(store, clock)
        counts = cache.load()
        assert counts == {"groups": 0, "users": 0, "rentals": 0, "settings": 0, "activity": 0}

    def test_corrupt_document_loads_as_empty_others_still_load(self, store, clock):
        store.write(EntityType.RENTALS, {"G1": {"plan": "basic"}})
        store.write(EntityType.GROUPS, {"G1": {"name": "Group"}})
        store.path_for(EntityType.SETTINGS).write_text("{{{ broken", encoding="utf-8")

        cache = RecordCache(store, clock)
        counts = cache.load()

        assert counts["settings"] == 0
        assert counts["rentals"] == 1
        assert counts["groups"] == 1
        assert cache.get(EntityType.RENTALS, "G1") == {"plan": "basic"}

    def test_reload_replaces_cached_state(self, cache, store):
        cache.put(EntityType.USERS, "U1", {"name": "Ann"}, persist=False)
        cache.load()
        assert cache.get(EntityType.USERS, "U1") is None


class TestReads:
    """Tests for cache reads"""

    def test_get_missing_is_none(self, cache):
        assert cache.get(EntityType.GROUPS, "nope") is None
        assert not cache.exists(EntityType.GROUPS, "nope")

    def test_returned_records_are_copies(self, cache):
        cache.put(EntityType.SETTINGS, "G1", {"anti_spam": {"anti_link": True}})

        record = cache.get(EntityType.SETTINGS, "G1")
        record["anti_spam"]["anti_link"] = False

        assert cache.get(EntityType.SETTINGS, "G1")["anti_spam"]["anti_link"] is True

    def test_get_all_values_count(self, cache):
        cache.put(EntityType.USERS, "U1", {"name": "Ann"})
        cache.put(EntityType.USERS, "U2", {"name": "Bob"})

        assert set(cache.get_all(EntityType.USERS)) == {"U1", "U2"}
        assert len(cache.values(EntityType.USERS)) == 2
        assert cache.count(EntityType.USERS) == 2
        assert cache.get_statistics()["users"] == 2


class TestMutations:
    """Tests for put, replace, update and delete"""

    def test_put_creates_and_persists(self, cache, store, clock):
        record = cache.put(EntityType.GROUPS, "G1", {"name": "Group"})

        assert record["name"] == "Group"
        assert record["updated_at"] == "2026-10-19T08:00:00Z"
        assert store.read(EntityType.GROUPS)["G1"]["name"] == "Group"
        assert not cache.is_dirty(EntityType.GROUPS)

    def test_put_deep_merges_nested_toggles(self, cache):
        cache.put(EntityType.SETTINGS, "G1", {"anti_spam": {"anti_link": False, "anti_call": True}})
        cache.put(EntityType.SETTINGS, "G1", {"anti_spam": {"anti_link": True}})

        settings = cache.get(EntityType.SETTINGS, "G1")
        assert settings["anti_spam"] == {"anti_link": True, "anti_call": True}

    def test_put_keeps_fields_not_in_partial(self, cache):
        cache.put(EntityType.GROUPS, "G1", {"join_date": "2026-10-01T00:00:00Z"})
        cache.put(EntityType.GROUPS, "G1", {"name": "Renamed"})

        group = cache.get(EntityType.GROUPS, "G1")
        assert group["join_date"] == "2026-10-01T00:00:00Z"
        assert group["name"] == "Renamed"

    def test_replace_discards_previous_fields(self, cache):
        cache.put(EntityType.RENTALS, "G1", {"plan": "basic", "extra": 1})
        cache.replace(EntityType.RENTALS, "G1", {"plan": "premium"})
        assert cache.get(EntityType.RENTALS, "G1") == {"plan": "premium"}

    def test_update_none_means_unchanged(self, cache, store):
        cache.put(EntityType.USERS, "U1", {"name": "Ann"})
        result = cache.update(EntityType.USERS, "U1", lambda current: None)

        assert result["name"] == "Ann"
        assert cache.update(EntityType.USERS, "missing", lambda current: None) is None
        assert not cache.exists(EntityType.USERS, "missing")

    def test_update_receives_copy_of_current(self, cache):
        seen = []

        def updater(current):
            seen.append(current)
            return {"value": (current or {}).get("value", 0) + 1}

        cache.update(EntityType.USERS, "U1", updater)
        cache.update(EntityType.USERS, "U1", updater)

        assert seen[0] is None
        assert seen[1] == {"value": 1}
        assert cache.get(EntityType.USERS, "U1") == {"value": 2}

    def test_update_all_flushes_once_and_reports_changed_keys(self, cache, store, monkeypatch):
        for key in ("A", "B", "C"):
            cache.replace(EntityType.RENTALS, key, {"n": 1})

        writes = []
        original_write = store.write

        def counting_write(entity, records):
            writes.append(entity)
            original_write(entity, records)

        monkeypatch.setattr(store, "write", counting_write)

        changed = cache.update_all(
            EntityType.RENTALS,
            lambda key, record: {**record, "n": 2} if key != "B" else None,
        )

        assert sorted(changed) == ["A", "C"]
        assert writes == [EntityType.RENTALS]
        assert cache.get(EntityType.RENTALS, "B") == {"n": 1}

    def test_update_all_without_changes_does_not_write(self, cache, store, monkeypatch):
        cache.replace(EntityType.RENTALS, "A", {"n": 1})
        monkeypatch.setattr(store, "write", failing_write)

        assert cache.update_all(EntityType.RENTALS, lambda key, record: None) == []

    def test_delete(self, cache, store):
        cache.put(EntityType.USERS, "U1", {"name": "Ann"})

        assert cache.delete(EntityType.USERS, "U1") is True
        assert cache.delete(EntityType.USERS, "U1") is False
        assert store.read(EntityType.USERS) == {}


class TestConcurrentUpdates:
    """Tests for atomic read-modify-write"""

    def test_concurrent_increments_are_not_lost(self, cache):
        def increment(current):
            return {"count": (current or {}).get("count", 0) + 1}

        def worker():
            for _ in range(50):
                cache.update(EntityType.ACTIVITY, "G1:U1", increment, persist=False)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert cache.get(EntityType.ACTIVITY, "G1:U1")["count"] == 400


class TestFlushing:
    """Tests for deferred writes and write failures"""

    def test_deferred_mutation_stays_dirty_until_flush(self, cache, store):
        cache.put(EntityType.ACTIVITY, "G1:U1", {"message_count": 1}, persist=False)

        assert cache.is_dirty(EntityType.ACTIVITY)
        assert store.read(EntityType.ACTIVITY) is None

        assert cache.flush(EntityType.ACTIVITY) is True
        assert not cache.is_dirty(EntityType.ACTIVITY)
        assert store.read(EntityType.ACTIVITY)["G1:U1"]["message_count"] == 1
        assert cache.flush(EntityType.ACTIVITY) is False

    def test_flush_all_writes_only_dirty_types(self, cache):
        cache.put(EntityType.ACTIVITY, "G1:U1", {"message_count": 1}, persist=False)
        cache.put(EntityType.USERS, "U1", {"name": "Ann"}, persist=False)

        assert sorted(cache.flush_all()) == ["activity", "users"]
        assert cache.flush_all() == []

    def test_write_failure_raises_and_keeps_new_state(self, cache, store, monkeypatch):
        monkeypatch.setattr(store, "write", failing_write)

        with pytest.raises(PersistenceError):
            cache.put(EntityType.GROUPS, "G1", {"name": "Group"})

        assert cache.get(EntityType.GROUPS, "G1")["name"] == "Group"
        assert cache.is_dirty(EntityType.GROUPS)

    def test_dirty_type_is_retried_by_next_flush(self, cache, store, monkeypatch):
        original_write = store.write
        monkeypatch.setattr(store, "write", failing_write)
        with pytest.raises(PersistenceError):
            cache.put(EntityType.GROUPS, "G1", {"name": "Group"})

        monkeypatch.setattr(store, "write", original_write)
        assert cache.flush_all() == ["groups"]
        assert store.read(EntityType.GROUPS)["G1"]["name"] == "Group"

    def test_flush_all_attempts_every_type_before_raising(self, cache, store, monkeypatch):
        cache.put(EntityType.GROUPS, "G1", {"name": "Group"}, persist=False)
        cache.put(EntityType.USERS, "U1", {"name": "Ann"}, persist=False)

        original_write = store.write

        def fail_groups(entity, records):
            if entity == EntityType.GROUPS:
                raise PersistenceError("groups broken")
            original_write(entity, records)

        monkeypatch.setattr(store, "write", fail_groups)

        with pytest.raises(PersistenceError, match="groups"):
            cache.flush_all()
        assert store.read(EntityType.USERS)["U1"]["name"] == "Ann"
        assert cache.is_dirty(EntityType.GROUPS)


class TestRoundTrip:
    """Writing collections and reloading them into a fresh cache"""

    def test_reload_yields_equal_collections(self, cache, store, clock):
        cache.put(EntityType.GROUPS, "G1", {"name": "Group", "participants": 12})
        cache.put(EntityType.SETTINGS, "G1", {"anti_spam": {"anti_link": True, "anti_call": False}})
        cache.put(EntityType.SETTINGS, "G1", {"anti_spam": {"anti_call": True}, "moderation": {"welcome": True}})
        cache.replace(EntityType.RENTALS, "G1", {"plan": "basic", "status": "active"})
        clock.advance(timedelta(minutes=1))
        cache.put(EntityType.USERS, "U1", {"name": "Ann"})

        fresh = RecordCache(store, clock)
        fresh.load()

        for entity in EntityType:
            assert fresh.get_all(entity) == cache.get_all(entity)
        assert fresh.get(EntityType.SETTINGS, "G1")["anti_spam"] == {"anti_link": True, "anti_call": True}

    def test_document_on_disk_is_keyed_object(self, cache, store):
        cache.put(EntityType.USERS, "U1", {"name": "Ann"})
        data = json.loads(store.path_for(EntityType.USERS).read_text(encoding="utf-8"))
        assert list(data) == ["U1"]
