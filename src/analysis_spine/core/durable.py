"""
Durable cache layer — analysis results that survive process restarts.

``DurableCache`` keeps the same TTL and eviction semantics as
:class:`~analysis_spine.core.cache.InMemoryCache`, but stores every entry as
its own JSON value inside an injected :class:`KeyValueStore`. Any store with
string ``get/set/delete`` plus prefix listing satisfies the contract.

Architecture:
    ::

        DurableCache ──► KeyValueStore (Protocol)
                          ├── MemoryKeyValueStore  — dict, tests and dev
                          ├── FileKeyValueStore    — one file per key, atomic replace
                          └── RedisKeyValueStore   — shared across processes, PX expiry

        Layout, one store key per cache entry:
            "<storage_key>:<cache key>" → {"value": ..., "created_at": ..., "expires_at": ...}

Single-entry operations (get, set, delete) touch exactly one store key, so
processes sharing a store never overwrite each other's entries and a delete
cannot be undone by a concurrent write of a different key. Capacity
enforcement and sweeps list the prefix and may race across processes; the
worst case is one extra eviction or a bound exceeded until the next sweep.

The durable layer is best-effort: a store that raises :class:`StorageError`
is logged and treated as a miss, and a corrupt entry is discarded. Neither
fails the request that touched the cache.

Tags:
    cache, durable, redis, file-store, analysis-spine

Doc-Types:
    - API Reference
    - Infrastructure Guide
"""

from __future__ import annotations

import json
import os
import re
import tempfile
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote, unquote

from analysis_spine.core.cache import CacheEntry, oldest_keys, plan_sweep
from analysis_spine.core.errors import StorageError
from analysis_spine.core.logging import get_logger
from analysis_spine.core.sweeper import PeriodicSweeper

logger = get_logger(__name__)


class KeyValueStore(Protocol):
    """String key-value store backing the durable cache.

    Implementations raise :class:`StorageError` on I/O failure. ``ttl_seconds``
    is a hint: stores with native expiry use it, others may ignore it.
    """

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str, ttl_seconds: float | None = None) -> None: ...

    def delete(self, key: str) -> bool: ...

    def keys(self, prefix: str) -> list[str]: ...


class MemoryKeyValueStore:
    """Dict-backed store. Durable only for the lifetime of the object."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str, ttl_seconds: float | None = None) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self, prefix: str) -> list[str]:
        return [key for key in list(self._data) if key.startswith(prefix)]


class FileKeyValueStore:
    """One file per key under ``directory``; writes replace the file atomically."""

    SUFFIX = ".json"

    def __init__(self, directory: str | Path):
        self.directory = Path(directory).expanduser()

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}{self.SUFFIX}"

    def get(self, key: str) -> str | None:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Cannot read {self._path(key)}: {exc}") from exc

    def set(self, key: str, value: str, ttl_seconds: float | None = None) -> None:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=self.SUFFIX)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(f"Cannot write {path}: {exc}") from exc

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Cannot delete {path}: {exc}") from exc
        return True

    def keys(self, prefix: str) -> list[str]:
        try:
            names = [
                path.name[: -len(self.SUFFIX)]
                for path in self.directory.glob(f"*{self.SUFFIX}")
                if not path.name.startswith(".tmp-")
            ]
        except OSError as exc:
            raise StorageError(f"Cannot list {self.directory}: {exc}") from exc
        return [key for key in map(unquote, names) if key.startswith(prefix)]


_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


class RedisKeyValueStore:
    """Redis-backed store, shared by every process pointing at the same DB.

    Entries carry a ``PX`` expiry, so Redis drops them on its own once their
    TTL has passed.

    Requires the ``redis`` package (``pip install analysis-spine[redis]``).

    Example:
        store = RedisKeyValueStore("redis://localhost:6379/0")
        cache = DurableCache(store)
    """

    def __init__(self, url: str = "redis://localhost:6379/0", *, client: Any = None):
        """Initialize the store.

        Args:
            url: Redis connection URL, used when ``client`` is not given.
            client: Pre-built redis client (tests pass a fake).

        Raises:
            ImportError: If ``redis`` is needed but not installed.
        """
        if client is None:
            try:
                import redis
            except ImportError as exc:
                msg = (
                    "Redis backend requires 'redis' package. "
                    "Install with: pip install analysis-spine[redis]"
                )
                raise ImportError(msg) from exc
            client = redis.from_url(url, decode_responses=True)
        self._client = client

    @staticmethod
    def _text(raw: Any) -> Any:
        return raw.decode("utf-8") if isinstance(raw, bytes) else raw

    def get(self, key: str) -> str | None:
        try:
            raw = self._client.get(key)
        except Exception as exc:
            raise StorageError(f"Redis GET {key} failed: {exc}") from exc
        return self._text(raw)

    def set(self, key: str, value: str, ttl_seconds: float | None = None) -> None:
        px = max(1, int(ttl_seconds * 1000)) if ttl_seconds is not None else None
        try:
            self._client.set(key, value, px=px)
        except Exception as exc:
            raise StorageError(f"Redis SET {key} failed: {exc}") from exc

    def delete(self, key: str) -> bool:
        try:
            return bool(self._client.delete(key))
        except Exception as exc:
            raise StorageError(f"Redis DEL {key} failed: {exc}") from exc

    def keys(self, prefix: str) -> list[str]:
        pattern = _GLOB_SPECIAL.sub(r"\\\1", prefix) + "*"
        try:
            return [self._text(key) for key in self._client.scan_iter(match=pattern)]
        except Exception as exc:
            raise StorageError(f"Redis SCAN {pattern} failed: {exc}") from exc


class DurableCache:
    """TTL cache persisted entry by entry in a :class:`KeyValueStore`.

    Same contract as ``InMemoryCache``: expiry on read, FIFO-by-age eviction
    at capacity, periodic sweep. Each cache key maps to one store key under
    ``storage_key``; the in-process lock only serialises eviction and sweeps.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        storage_key: str = "ai_analysis_cache",
        max_entries: int = 50,
        ttl_seconds: float = 1800.0,
        clock: Callable[[], float] = time.time,
        sweep_interval_seconds: float | None = 300.0,
    ):
        if max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self.store = store
        self.storage_key = storage_key
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._prefix = f"{storage_key}:"
        self._clock = clock
        self._lock = threading.Lock()
        self._sweeper: PeriodicSweeper | None = None
        if sweep_interval_seconds is not None:
            self._sweeper = PeriodicSweeper(
                self.sweep, sweep_interval_seconds, name="durable-cache-sweeper"
            ).start()

    def store_key(self, key: str) -> str:
        """Store key holding the entry for cache key ``key``."""
        return self._prefix + key

    # ── store I/O ───────────────────────────────────────────────────────

    def _read(self, key: str) -> CacheEntry | None:
        try:
            raw = self.store.get(self.store_key(key))
        except StorageError as exc:
            logger.warning("durable_cache_read_failed", key=key, error=str(exc))
            return None
        if raw is None:
            return None
        try:
            return CacheEntry.from_dict(key, json.loads(raw))
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            logger.warning("durable_cache_corrupt", key=key, error=str(exc))
            self._remove(key)
            return None

    def _remove(self, key: str) -> bool:
        try:
            return self.store.delete(self.store_key(key))
        except StorageError as exc:
            logger.warning("durable_cache_delete_failed", key=key, error=str(exc))
            return False

    def _cache_keys(self) -> list[str]:
        try:
            store_keys = self.store.keys(self._prefix)
        except StorageError as exc:
            logger.warning("durable_cache_list_failed", storage_key=self.storage_key, error=str(exc))
            return []
        return [store_key[len(self._prefix):] for store_key in store_keys]

    def _load_all(self) -> dict[str, CacheEntry]:
        entries: dict[str, CacheEntry] = {}
        for key in self._cache_keys():
            entry = self._read(key)
            if entry is not None:
                entries[key] = entry
        return entries

    def _enforce_bound(self, newest: str, now: float) -> None:
        with self._lock:
            entries = self._load_all()
            expired = [key for key, entry in entries.items() if entry.is_expired(now)]
            others = {
                key: entry
                for key, entry in entries.items()
                if key != newest and not entry.is_expired(now)
            }
            excess = len(others) + 1 - self.max_entries
            for key in expired + oldest_keys(others, excess):
                self._remove(key)

    # ── CacheBackend ────────────────────────────────────────────────────

    def get(self, key: str) -> Any | None:
        entry = self.get_entry(key)
        return entry.value if entry is not None else None

    def get_entry(self, key: str) -> CacheEntry | None:
        entry = self._read(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            self._remove(key)
            return None
        return entry

    def set(self, key: str, value: Any) -> None:
        now = self._clock()
        self.put_entry(
            CacheEntry(key=key, value=value, created_at=now, expires_at=now + self.ttl_seconds)
        )

    def put_entry(self, entry: CacheEntry) -> None:
        now = self._clock()
        remaining = entry.expires_at - now
        if remaining <= 0:
            return
        try:
            payload = json.dumps(entry.to_dict())
        except (TypeError, ValueError) as exc:
            logger.warning("durable_cache_unserializable", key=entry.key, error=str(exc))
            return
        try:
            self.store.set(self.store_key(entry.key), payload, ttl_seconds=remaining)
        except StorageError as exc:
            logger.warning("durable_cache_write_failed", key=entry.key, error=str(exc))
            return
        self._enforce_bound(entry.key, now)

    def has(self, key: str) -> bool:
        return self.get_entry(key) is not None

    def delete(self, key: str) -> bool:
        return self._remove(key)

    def clear(self) -> None:
        with self._lock:
            for key in self._cache_keys():
                self._remove(key)

    def sweep(self) -> int:
        """Drop expired entries, then trim to 80 % of capacity. Returns keys removed."""
        with self._lock:
            doomed = plan_sweep(self._load_all(), self._clock(), self.max_entries)
            for key in doomed:
                self._remove(key)
        if doomed:
            logger.debug("durable_cache_swept", removed=len(doomed))
        return len(doomed)

    def stats(self) -> dict[str, Any]:
        entries = self._load_all()
        now = self._clock()
        return {
            "size": len(entries),
            "max_entries": self.max_entries,
            "ttl_seconds": self.ttl_seconds,
            "storage_key": self.storage_key,
            "entries": [
                {
                    "key": entry.key,
                    "created_at": entry.created_at,
                    "expires_at": entry.expires_at,
                    "expired": entry.is_expired(now),
                }
                for entry in entries.values()
            ],
        }

    def close(self) -> None:
        """Stop the background sweeper. The cache stays usable."""
        if self._sweeper is not None:
            self._sweeper.stop()
            self._sweeper = None


__all__ = [
    "DurableCache",
    "FileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "RedisKeyValueStore",
]
