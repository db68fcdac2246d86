"""Hybrid cache — fast memory layer in front of a durable layer.

Writes go to both layers (write-through). Reads try memory first and fall back
to the durable layer; a durable hit is promoted into memory, keeping its
original timestamps, so the next read is served from memory without touching
the durable store again.

``has`` is true when either layer holds a live entry, and ``delete`` removes
from both so a memory-only delete can never resurrect stale durable data.
"""

from __future__ import annotations

from typing import Any

from analysis_spine.core.cache import CacheBackend
from analysis_spine.core.logging import get_logger

logger = get_logger(__name__)


class HybridCache:
    """Compose a memory ``CacheBackend`` with a durable one."""

    def __init__(self, memory: CacheBackend, durable: CacheBackend):
        self.memory = memory
        self.durable = durable

    def set(self, key: str, value: Any) -> None:
        self.memory.set(key, value)
        self.durable.set(key, value)

    def get(self, key: str) -> Any | None:
        entry = self.memory.get_entry(key)
        if entry is not None:
            return entry.value

        entry = self.durable.get_entry(key)
        if entry is None:
            return None

        self.memory.put_entry(entry)
        logger.debug("hybrid_cache_promoted", key=key)
        return entry.value

    def has(self, key: str) -> bool:
        return self.memory.has(key) or self.durable.has(key)

    def delete(self, key: str) -> bool:
        memory_deleted = self.memory.delete(key)
        durable_deleted = self.durable.delete(key)
        return memory_deleted or durable_deleted

    def clear(self) -> None:
        self.memory.clear()
        self.durable.clear()

    def sweep(self) -> int:
        return self.memory.sweep() + self.durable.sweep()

    def stats(self) -> dict[str, Any]:
        return {"memory": self.memory.stats(), "durable": self.durable.stats()}

    def close(self) -> None:
        self.memory.close()
        self.durable.close()


__all__ = ["HybridCache"]
