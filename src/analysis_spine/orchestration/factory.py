"""Composition root: one cache, one limiter, one orchestrator per process."""

from __future__ import annotations

from analysis_spine.core.cache import InMemoryCache
from analysis_spine.core.durable import (
    DurableCache,
    FileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    RedisKeyValueStore,
)
from analysis_spine.core.hybrid_cache import HybridCache
from analysis_spine.core.logging import get_logger
from analysis_spine.core.settings import DurableBackend, OrchestrationSettings, get_settings
from analysis_spine.execution.rate_limit import RateLimiter
from analysis_spine.execution.retry import RetryPolicy
from analysis_spine.orchestration.analysis import AnalysisOrchestrator, Upstream

logger = get_logger(__name__)


def build_store(settings: OrchestrationSettings) -> KeyValueStore:
    """Key-value store for the durable cache layer, chosen by ``durable_backend``."""
    if settings.durable_backend is DurableBackend.FILE:
        return FileKeyValueStore(settings.cache_dir)
    if settings.durable_backend is DurableBackend.REDIS:
        return RedisKeyValueStore(settings.redis_url)
    return MemoryKeyValueStore()


def build_cache(settings: OrchestrationSettings) -> HybridCache:
    memory = InMemoryCache(
        max_entries=settings.cache_max_entries,
        ttl_seconds=settings.cache_ttl_seconds,
        sweep_interval_seconds=settings.sweep_interval_seconds,
    )
    durable = DurableCache(
        build_store(settings),
        storage_key=settings.cache_storage_key,
        max_entries=settings.cache_max_entries,
        ttl_seconds=settings.cache_ttl_seconds,
        sweep_interval_seconds=settings.sweep_interval_seconds,
    )
    return HybridCache(memory, durable)


def build_orchestrator(
    upstream: Upstream,
    settings: OrchestrationSettings | None = None,
) -> AnalysisOrchestrator:
    """Wire stores and policy from ``settings`` around ``upstream``."""
    settings = settings or get_settings()
    orchestrator = AnalysisOrchestrator(
        build_cache(settings),
        RateLimiter.from_settings(settings),
        upstream,
        retry_policy=RetryPolicy.from_settings(settings),
        coalesce_in_flight=settings.coalesce_in_flight,
    )
    logger.info(
        "analysis_orchestrator_built",
        durable_backend=settings.durable_backend.value,
        cache_max_entries=settings.cache_max_entries,
        coalesce_in_flight=settings.coalesce_in_flight,
    )
    return orchestrator


__all__ = ["build_cache", "build_orchestrator", "build_store"]
