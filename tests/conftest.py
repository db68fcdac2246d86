"""
Shared pytest fixtures for analysis-spine tests.

This module provides:
- Store fixtures built with a ``FakeClock`` and no sweeper thread
- ``context``: a complete, valid ``AnalysisContext``
- ``make_orchestrator``: orchestrator factory around those stores

Test doubles (``FakeClock``, ``ScriptedUpstream``, ``SleepRecorder``) live in
``fakes.py``.

Usage:
    def test_expiry(clock, memory_cache):
        memory_cache.set("k", 1)
        clock.advance(memory_cache.ttl_seconds + 1)
        assert memory_cache.get("k") is None
"""

from __future__ import annotations

import pytest

from analysis_spine.core.cache import InMemoryCache
from analysis_spine.core.durable import DurableCache, MemoryKeyValueStore
from analysis_spine.core.hybrid_cache import HybridCache
from analysis_spine.execution.rate_limit import RateLimiter
from analysis_spine.execution.retry import RetryPolicy
from analysis_spine.orchestration.analysis import AnalysisOrchestrator
from analysis_spine.orchestration.operations import AnalysisContext

from fakes import FakeClock, SleepRecorder


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def memory_cache(clock: FakeClock) -> InMemoryCache:
    return InMemoryCache(max_entries=50, ttl_seconds=1800, clock=clock, sweep_interval_seconds=None)


@pytest.fixture
def kv_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def durable_cache(clock: FakeClock, kv_store: MemoryKeyValueStore) -> DurableCache:
    return DurableCache(
        kv_store, max_entries=50, ttl_seconds=1800, clock=clock, sweep_interval_seconds=None
    )


@pytest.fixture
def hybrid_cache(memory_cache: InMemoryCache, durable_cache: DurableCache) -> HybridCache:
    return HybridCache(memory_cache, durable_cache)


@pytest.fixture
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(clock=clock, sweep_interval_seconds=None)


@pytest.fixture
def fast_policy() -> RetryPolicy:
    """Three attempts, no jitter, short attempt timeout."""
    return RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=10.0, jitter=False, attempt_timeout=5.0)


@pytest.fixture
def context() -> AnalysisContext:
    return AnalysisContext(
        user_id="userA",
        resource_id="job123",
        company="Acme",
        role="Engineer",
        job_description="Build resilient services.",
        client_ip="203.0.113.7",
    )


@pytest.fixture
def make_orchestrator(hybrid_cache, limiter, fast_policy, sleep_recorder):
    """Factory: orchestrator around the shared fake stores and a given upstream."""

    def _make(upstream, **kwargs) -> AnalysisOrchestrator:
        kwargs.setdefault("retry_policy", fast_policy)
        kwargs.setdefault("sleep", sleep_recorder)
        return AnalysisOrchestrator(hybrid_cache, limiter, upstream, **kwargs)

    return _make
