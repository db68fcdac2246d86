"""
TTL cache for analysis results.

Provides a uniform ``CacheBackend`` protocol with a fast in-process
implementation here and a durable implementation in
:mod:`analysis_spine.core.durable`. :class:`~analysis_spine.core.hybrid_cache.HybridCache`
composes the two.

Manifesto:
    Upstream analysis calls are slow and billed per call. Identical requests
    (same user, same resource, same operation) should be answered from cache
    for as long as the result is fresh, and the cache must never grow without
    bound in a long-lived process.

    - **Expiry on read:** a stale value is never returned, swept or not
    - **Bounded:** at capacity the oldest entry (by ``created_at``) goes first
    - **Swept:** a background pass drops expired entries and trims to 80 %
    - **Thread-safe:** one lock per store, held only for map operations

Architecture:
    ::

        CacheBackend (Protocol)
        ├── InMemoryCache  — per-process dict, FIFO-by-age eviction
        └── DurableCache   — one JSON value per entry in a KeyValueStore

        API: get(key) → value | None
             set(key, value)
             has(key) → bool
             delete(key) → bool
             clear()
             sweep() → removed count

Examples:
    >>> cache = InMemoryCache(max_entries=50, ttl_seconds=1800, sweep_interval_seconds=None)
    >>> key = make_cache_key("userA", "job123", "jobFit")
    >>> key
    'userA:job123:jobFit'
    >>> cache.set(key, {"score": 82})
    >>> cache.get(key)
    {'score': 82}

Guardrails:
    ❌ DON'T: Build keys with naive concatenation
    ✅ DO: Use make_cache_key (components are escaped, keys never collide)

    ❌ DON'T: Forget close() in long-lived processes
    ✅ DO: Close stores on shutdown so the sweeper thread stops

Tags:
    cache, ttl, eviction, in-memory, analysis-spine

Doc-Types:
    - API Reference
    - Technical Design
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from analysis_spine.core.logging import get_logger
from analysis_spine.core.sweeper import PeriodicSweeper

logger = get_logger(__name__)

KEY_DELIMITER = ":"

# Fraction of capacity above which a sweep trims, and the share it trims.
SWEEP_HIGH_WATER = 0.8
SWEEP_EVICT_FRACTION = 0.2


def _escape_component(component: str) -> str:
    return component.replace("%", "%25").replace(KEY_DELIMITER, "%3A")


def make_cache_key(identity: str, resource_id: str, operation_kind: str) -> str:
    """Deterministic cache key for ``(identity, resource_id, operation_kind)``.

    Components are percent-escaped for ``%`` and ``:`` before joining, so the
    mapping is injective: ``("ab", "c", k)`` and ``("a", "bc", k)`` differ.
    """
    return KEY_DELIMITER.join(
        _escape_component(str(part)) for part in (identity, resource_id, operation_kind)
    )


@dataclass(frozen=True)
class CacheEntry:
    """One cached value with its lifetime."""

    key: str
    value: Any
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "created_at": self.created_at,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, key: str, data: Mapping[str, Any]) -> CacheEntry:
        return cls(
            key=key,
            value=data["value"],
            created_at=float(data["created_at"]),
            expires_at=float(data["expires_at"]),
        )


class CacheBackend(Protocol):
    """Contract shared by both cache layers."""

    def get(self, key: str) -> Any | None:
        """Return the cached value, or ``None`` if absent or expired."""
        ...

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` with the backend's TTL."""
        ...

    def has(self, key: str) -> bool:
        """``True`` if the key is present and not expired."""
        ...

    def delete(self, key: str) -> bool:
        """Remove the key; ``True`` if something was removed."""
        ...

    def clear(self) -> None:
        """Remove every entry."""
        ...

    def get_entry(self, key: str) -> CacheEntry | None:
        """Like ``get`` but returns the whole entry."""
        ...

    def put_entry(self, entry: CacheEntry) -> None:
        """Store a pre-built entry, keeping its timestamps."""
        ...

    def sweep(self) -> int:
        """Drop expired entries and trim to the high-water mark."""
        ...

    def stats(self) -> dict[str, Any]:
        ...

    def close(self) -> None:
        ...


def oldest_keys(entries: Mapping[str, CacheEntry], count: int) -> list[str]:
    """Keys of the ``count`` oldest entries by ``created_at`` (ties keep insertion order)."""
    if count <= 0:
        return []
    ordered = sorted(entries.values(), key=lambda entry: entry.created_at)
    return [entry.key for entry in ordered[:count]]


def plan_sweep(entries: Mapping[str, CacheEntry], now: float, max_entries: int) -> list[str]:
    """Keys a sweep pass removes: every expired entry, then the oldest 20 % if still above 80 %."""
    expired = [key for key, entry in entries.items() if entry.is_expired(now)]
    remaining = {key: entry for key, entry in entries.items() if not entry.is_expired(now)}
    if len(remaining) > max_entries * SWEEP_HIGH_WATER:
        return expired + oldest_keys(remaining, int(max_entries * SWEEP_EVICT_FRACTION))
    return expired


class InMemoryCache:
    """Bounded in-process cache with TTL expiration.

    Eviction is FIFO by ``created_at`` rather than LRU: reads never reorder
    entries. Thread-safe via a single lock around the dict.

    Attributes:
        max_entries: Maximum number of keys held at once.
        ttl_seconds: Lifetime of every entry written through ``set``.
    """

    def __init__(
        self,
        *,
        max_entries: int = 50,
        ttl_seconds: float = 1800.0,
        clock: Callable[[], float] = time.time,
        sweep_interval_seconds: float | None = 300.0,
    ):
        """Initialize the cache.

        Args:
            max_entries: Capacity; the oldest entry is evicted when exceeded.
            ttl_seconds: Lifetime applied by ``set``.
            clock: Returns "now" in epoch seconds (injectable for tests).
            sweep_interval_seconds: Background sweep period; ``None`` disables
                the sweeper thread.
        """
        if max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._store: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._sweeper: PeriodicSweeper | None = None
        if sweep_interval_seconds is not None:
            self._sweeper = PeriodicSweeper(
                self.sweep, sweep_interval_seconds, name="memory-cache-sweeper"
            ).start()

    def get(self, key: str) -> Any | None:
        entry = self.get_entry(key)
        return entry.value if entry is not None else None

    def get_entry(self, key: str) -> CacheEntry | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._store[key]
                return None
            return entry

    def set(self, key: str, value: Any) -> None:
        now = self._clock()
        self.put_entry(
            CacheEntry(key=key, value=value, created_at=now, expires_at=now + self.ttl_seconds)
        )

    def put_entry(self, entry: CacheEntry) -> None:
        with self._lock:
            # Re-inserting moves the key to the end of the dict's order.
            self._store.pop(entry.key, None)
            if len(self._store) >= self.max_entries:
                for key in oldest_keys(self._store, len(self._store) - self.max_entries + 1):
                    del self._store[key]
            self._store[entry.key] = entry

    def has(self, key: str) -> bool:
        return self.get_entry(key) is not None

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._store.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def sweep(self) -> int:
        """Drop expired entries, then trim to 80 % of capacity. Returns keys removed."""
        with self._lock:
            doomed = plan_sweep(self._store, self._clock(), self.max_entries)
            for key in doomed:
                del self._store[key]
        if doomed:
            logger.debug("memory_cache_swept", removed=len(doomed))
        return len(doomed)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            now = self._clock()
            entries = [
                {
                    "key": entry.key,
                    "created_at": entry.created_at,
                    "expires_at": entry.expires_at,
                    "expired": entry.is_expired(now),
                }
                for entry in self._store.values()
            ]
        return {
            "size": len(entries),
            "max_entries": self.max_entries,
            "ttl_seconds": self.ttl_seconds,
            "entries": entries,
        }

    def size(self) -> int:
        """Physical number of entries, including expired ones not yet removed."""
        with self._lock:
            return len(self._store)

    def __len__(self) -> int:
        return self.size()

    def close(self) -> None:
        """Stop the background sweeper. The cache stays usable."""
        if self._sweeper is not None:
            self._sweeper.stop()
            self._sweeper = None


__all__ = [
    "CacheBackend",
    "CacheEntry",
    "InMemoryCache",
    "make_cache_key",
    "oldest_keys",
    "plan_sweep",
]
