"""Tests for analysis_spine.core.durable — DurableCache and its stores."""

from __future__ import annotations

import json
import re

import pytest

from analysis_spine.core.cache import CacheEntry
from analysis_spine.core.durable import (
    DurableCache,
    FileKeyValueStore,
    MemoryKeyValueStore,
    RedisKeyValueStore,
)
from analysis_spine.core.errors import StorageError


class FailingStore:
    """Store whose every operation fails like an unreachable backend."""

    def get(self, key):
        raise StorageError("store down")

    def set(self, key, value, ttl_seconds=None):
        raise StorageError("store down")

    def delete(self, key):
        raise StorageError("store down")

    def keys(self, prefix):
        raise StorageError("store down")


class FakeRedis:
    def __init__(self):
        self.data = {}
        self.px = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, px=None):
        self.data[key] = value.encode("utf-8")
        self.px[key] = px

    def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0

    def scan_iter(self, match):
        # prefix patterns only: backslash-escaped literal followed by "*"
        prefix = re.sub(r"\\(.)", r"\1", match[:-1])
        return [key.encode("utf-8") for key in self.data if key.startswith(prefix)]


def _document(kv_store, key, storage_key="ai_analysis_cache"):
    raw = kv_store.get(f"{storage_key}:{key}")
    return None if raw is None else json.loads(raw)


class TestDurableCache:
    def test_get_set_round_trip(self, durable_cache):
        durable_cache.set("u:r:job-fit", {"score": 82})
        assert durable_cache.get("u:r:job-fit") == {"score": 82}
        assert durable_cache.has("u:r:job-fit")

    def test_each_entry_under_its_own_store_key(self, durable_cache, kv_store, clock):
        durable_cache.set("k", [1, 2])
        durable_cache.set("j", "x")
        assert _document(kv_store, "k") == {
            "value": [1, 2],
            "created_at": clock.now,
            "expires_at": clock.now + 1800,
        }
        assert sorted(kv_store.keys("ai_analysis_cache:")) == [
            "ai_analysis_cache:j",
            "ai_analysis_cache:k",
        ]

    def test_survives_new_instance(self, kv_store, clock):
        """Same store, new cache object: simulates a process restart."""
        first = DurableCache(kv_store, clock=clock, sweep_interval_seconds=None)
        first.set("k", "v")
        second = DurableCache(kv_store, clock=clock, sweep_interval_seconds=None)
        assert second.get("k") == "v"

    def test_expired_on_read(self, durable_cache, kv_store, clock):
        durable_cache.set("k", "v")
        clock.advance(1801)
        assert durable_cache.get("k") is None
        assert _document(kv_store, "k") is None

    def test_delete(self, durable_cache):
        durable_cache.set("k", "v")
        assert durable_cache.delete("k") is True
        assert durable_cache.delete("k") is False
        assert durable_cache.get("k") is None

    def test_clear_removes_every_entry(self, durable_cache, kv_store):
        durable_cache.set("k", "v")
        durable_cache.set("j", "w")
        kv_store.set("unrelated", "keep")
        durable_cache.clear()
        assert kv_store.keys("ai_analysis_cache:") == []
        assert kv_store.get("unrelated") == "keep"

    def test_bounded_fifo_by_age(self, kv_store, clock):
        cache = DurableCache(kv_store, max_entries=2, clock=clock, sweep_interval_seconds=None)
        for key in ("a", "b", "c"):
            cache.set(key, key)
            clock.advance(1)
        assert cache.get("a") is None
        assert cache.get("b") == "b"
        assert cache.get("c") == "c"

    def test_overwrite_does_not_evict(self, kv_store, clock):
        cache = DurableCache(kv_store, max_entries=2, clock=clock, sweep_interval_seconds=None)
        cache.set("a", 1)
        clock.advance(1)
        cache.set("b", 2)
        cache.set("b", 3)
        assert cache.get("a") == 1
        assert cache.get("b") == 3

    def test_put_entry_keeps_timestamps(self, durable_cache, clock):
        entry = CacheEntry("k", 1, created_at=clock.now - 10, expires_at=clock.now + 10)
        durable_cache.put_entry(entry)
        assert durable_cache.get_entry("k") == entry

    def test_put_entry_already_expired_is_skipped(self, durable_cache, kv_store, clock):
        durable_cache.put_entry(CacheEntry("k", 1, created_at=clock.now - 10, expires_at=clock.now - 1))
        assert _document(kv_store, "k") is None

    def test_sweep(self, kv_store, clock):
        cache = DurableCache(kv_store, max_entries=10, ttl_seconds=100, clock=clock, sweep_interval_seconds=None)
        cache.set("old", 1)
        clock.advance(150)
        for i in range(9):
            cache.set(f"k{i}", i)
        # "old" was already dropped on write; 9 live > 8, oldest 2 go
        assert cache.sweep() == 2
        assert cache.stats()["size"] == 7

    def test_custom_storage_key(self, kv_store, clock):
        cache = DurableCache(kv_store, storage_key="other", clock=clock, sweep_interval_seconds=None)
        cache.set("k", 1)
        assert cache.store_key("k") == "other:k"
        assert _document(kv_store, "k", storage_key="other")["value"] == 1
        assert kv_store.keys("ai_analysis_cache:") == []


class TestSharedStore:
    """Several caches (processes) pointing at one store."""

    def test_delete_is_not_undone_by_another_writer(self, kv_store, clock):
        a = DurableCache(kv_store, clock=clock, sweep_interval_seconds=None)
        b = DurableCache(kv_store, clock=clock, sweep_interval_seconds=None)
        a.set("stale", {"v": 1})

        # b reads its view of the cache, a invalidates, then b writes.
        assert b.get("stale") == {"v": 1}
        assert a.delete("stale") is True
        b.set("other", {"v": 2})

        assert a.get("stale") is None
        assert b.get("stale") is None
        assert a.get("other") == {"v": 2}

    def test_concurrent_writes_are_all_kept(self, kv_store, clock):
        a = DurableCache(kv_store, clock=clock, sweep_interval_seconds=None)
        b = DurableCache(kv_store, clock=clock, sweep_interval_seconds=None)
        a.set("from-a", 1)
        b.set("from-b", 2)
        assert a.get("from-b") == 2
        assert b.get("from-a") == 1


class TestBestEffort:
    """The durable layer never fails a request."""

    def test_corrupt_entry_is_discarded(self, durable_cache, kv_store):
        kv_store.set("ai_analysis_cache:k", "{not json")
        assert durable_cache.get("k") is None
        assert kv_store.get("ai_analysis_cache:k") is None
        durable_cache.set("k", "v")
        assert durable_cache.get("k") == "v"

    def test_wrong_shape_is_discarded(self, durable_cache, kv_store):
        kv_store.set("ai_analysis_cache:k", json.dumps({"value": 1}))
        assert durable_cache.get("k") is None

    def test_corrupt_entry_does_not_hide_others(self, durable_cache, kv_store):
        durable_cache.set("good", 1)
        kv_store.set("ai_analysis_cache:bad", "[]")
        assert durable_cache.stats()["size"] == 1

    def test_unavailable_store_is_a_miss(self, clock):
        cache = DurableCache(FailingStore(), clock=clock, sweep_interval_seconds=None)
        cache.set("k", "v")
        assert cache.get("k") is None
        assert cache.has("k") is False
        assert cache.delete("k") is False
        assert cache.sweep() == 0
        assert cache.stats()["size"] == 0
        cache.clear()

    def test_unserializable_value_is_skipped(self, durable_cache):
        durable_cache.set("k", object())
        assert durable_cache.get("k") is None


class TestFileKeyValueStore:
    def test_round_trip(self, tmp_path):
        store = FileKeyValueStore(tmp_path / "cache")
        assert store.get("a/b:c") is None
        store.set("a/b:c", "payload")
        assert store.get("a/b:c") == "payload"
        assert len(list((tmp_path / "cache").glob("*.json"))) == 1

    def test_overwrite_and_delete(self, tmp_path):
        store = FileKeyValueStore(tmp_path)
        store.set("k", "1")
        store.set("k", "2")
        assert store.get("k") == "2"
        assert store.delete("k") is True
        assert store.delete("k") is False
        assert store.get("k") is None

    def test_keys_by_prefix(self, tmp_path):
        store = FileKeyValueStore(tmp_path)
        store.set("cache:u/1:r:job-fit", "1")
        store.set("cache:u2:r:interview", "2")
        store.set("other:x", "3")
        assert sorted(store.keys("cache:")) == ["cache:u/1:r:job-fit", "cache:u2:r:interview"]

    def test_keys_of_missing_directory(self, tmp_path):
        assert FileKeyValueStore(tmp_path / "nope").keys("") == []

    def test_no_temp_files_left(self, tmp_path):
        store = FileKeyValueStore(tmp_path)
        store.set("k", "v")
        assert not list(tmp_path.glob(".tmp-*"))

    def test_backs_durable_cache(self, tmp_path, clock):
        cache = DurableCache(FileKeyValueStore(tmp_path), clock=clock, sweep_interval_seconds=None)
        cache.set("k", {"score": 1})
        again = DurableCache(FileKeyValueStore(tmp_path), clock=clock, sweep_interval_seconds=None)
        assert again.get("k") == {"score": 1}

    def test_read_error_raises_storage_error(self, tmp_path):
        store = FileKeyValueStore(tmp_path)
        (tmp_path / "k.json").mkdir()
        with pytest.raises(StorageError):
            store.get("k")


class TestRedisKeyValueStore:
    def test_with_injected_client(self):
        store = RedisKeyValueStore(client=FakeRedis())
        store.set("k", "v")
        assert store.get("k") == "v"
        assert store.delete("k") is True
        assert store.get("k") is None

    def test_ttl_becomes_px(self):
        client = FakeRedis()
        store = RedisKeyValueStore(client=client)
        store.set("k", "v", ttl_seconds=1.5)
        store.set("j", "v")
        assert client.px == {"k": 1500, "j": None}

    def test_keys_escape_glob_characters(self):
        client = FakeRedis()
        store = RedisKeyValueStore(client=client)
        store.set("c[1]:a", "1")
        store.set("c1:b", "2")
        assert store.keys("c[1]:") == ["c[1]:a"]

    def test_durable_cache_sets_expiry(self, clock):
        client = FakeRedis()
        cache = DurableCache(RedisKeyValueStore(client=client), clock=clock, sweep_interval_seconds=None)
        cache.set("k", 1)
        assert client.px == {"ai_analysis_cache:k": 1_800_000}
        assert cache.get("k") == 1

    def test_client_errors_become_storage_errors(self):
        class Broken:
            def get(self, key):
                raise ConnectionError("redis down")

        store = RedisKeyValueStore(client=Broken())
        with pytest.raises(StorageError):
            store.get("k")


class TestMemoryKeyValueStore:
    def test_round_trip(self):
        store = MemoryKeyValueStore()
        store.set("k", "v")
        assert store.get("k") == "v"
        assert store.keys("") == ["k"]
        assert store.delete("k") is True
        assert store.get("k") is None
