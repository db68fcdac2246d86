"""Analysis Orchestrator — one request through validate, cache, limit, call.

Manifesto:
    The orchestrator owns no request state of its own. It composes the
    shared stores the process was built with (one :class:`HybridCache`, one
    :class:`RateLimiter`) and the injected upstream callable, and turns one
    ``generate(operation, context)`` call into an :class:`AnalysisOutcome`.
    It never raises for an expected failure: callers get a classified
    :class:`AnalysisError` inside the outcome instead.

ARCHITECTURE
────────────
::

    idle ─► validating ─► cache_check ──hit──────────────────────► success
                │              │
                ▼              ▼ miss
              error      rate_limiting ──rejected──► error (rate_limited)
                               │
                               ▼
                            calling ─► retrying* ─► success | error

    validating     cheap field checks, before any cache or limiter access
    cache_check    hits bypass the limiter and the upstream entirely; cache
                   reads and write-backs run in a worker thread so a slow
                   durable store never blocks the event loop
    rate_limiting  per_user(user) → burst(user) → per_ip(ip or "unknown"),
                   all in the operation's scope with its limit overrides
    calling        with_retry(upstream) in a shielded task; only a terminal
                   success writes through to the cache

Cancellation:
    The upstream work runs in its own task behind ``asyncio.shield``. If the
    caller goes away, the task keeps running and still caches its result for
    the next caller with the same key. ``aclose()`` waits for those tasks.

Coalescing:
    With ``coalesce_in_flight=True``, a request whose key already has an
    upstream task in flight awaits that task instead of starting a second
    one (and consumes no rate-limit budget). Off by default.

Example::

    orchestrator = AnalysisOrchestrator(cache, limiter, upstream)
    outcome = await orchestrator.generate("job-fit", context)
    if outcome.ok:
        render(outcome.value)
    else:
        show(outcome.error.message)

Tags:
    analysis-spine, orchestration, use-case, cache, rate-limit, retry

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import functools
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from analysis_spine.core.cache import CacheBackend, make_cache_key
from analysis_spine.core.classifier import classify, error_summary, should_notify_user
from analysis_spine.core.errors import AnalysisError, ErrorKind
from analysis_spine.core.logging import get_logger
from analysis_spine.execution.rate_limit import (
    UNKNOWN_IP,
    RateDimension,
    RateLimiter,
    RateLimitResult,
)
from analysis_spine.execution.retry import RetryPolicy, with_retry
from analysis_spine.orchestration.operations import (
    DEFAULT_OPERATIONS,
    AnalysisContext,
    OperationSpec,
    validate_context,
)

logger = get_logger(__name__)

Upstream = Callable[[str, AnalysisContext], Awaitable[Any]]


class AnalysisStatus(str, Enum):
    """States a request passes through."""

    IDLE = "idle"
    VALIDATING = "validating"
    CACHE_CHECK = "cache_check"
    RATE_LIMITING = "rate_limiting"
    CALLING = "calling"
    RETRYING = "retrying"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class AnalysisOutcome:
    """Terminal result of one ``generate`` call."""

    status: AnalysisStatus
    operation: str
    value: Any = None
    error: AnalysisError | None = None
    from_cache: bool = False
    coalesced: bool = False
    rate_limit: RateLimitResult | None = None
    attempts: int = 0
    transitions: list[AnalysisStatus] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is AnalysisStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "operation": self.operation,
            "value": self.value,
            "error": self.error.to_dict() if self.error is not None else None,
            "from_cache": self.from_cache,
            "attempts": self.attempts,
        }


@dataclass
class _CallResult:
    value: Any = None
    error: AnalysisError | None = None
    attempts: int = 0


class AnalysisOrchestrator:
    """Runs analysis requests against shared cache and limiter stores.

    Args:
        cache: Any ``CacheBackend`` (normally a ``HybridCache``)
        limiter: Multi-dimension rate limiter
        upstream: ``async (operation, context) -> result mapping``
        retry_policy: Retry budget for the upstream call
        operations: Registry of known operations
        coalesce_in_flight: Share one upstream task between identical requests
        sleep: Backoff sleep passed to ``with_retry`` (injected in tests)
    """

    def __init__(
        self,
        cache: CacheBackend,
        limiter: RateLimiter,
        upstream: Upstream,
        *,
        retry_policy: RetryPolicy | None = None,
        operations: Mapping[str, OperationSpec] | None = None,
        coalesce_in_flight: bool = False,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.cache = cache
        self.limiter = limiter
        self.upstream = upstream
        self.retry_policy = retry_policy or RetryPolicy()
        self.operations: dict[str, OperationSpec] = dict(operations or DEFAULT_OPERATIONS)
        self.coalesce_in_flight = coalesce_in_flight
        self._sleep = sleep
        self._tasks: set[asyncio.Task[_CallResult]] = set()
        self._in_flight: dict[str, asyncio.Task[_CallResult]] = {}

    # ── keys and cache helpers ──────────────────────────────────────────

    @staticmethod
    def cache_key(user_id: str, resource_id: str, operation: str) -> str:
        return make_cache_key(user_id, resource_id, operation)

    def operation_spec(self, operation: str) -> OperationSpec:
        """Registered spec for ``operation``; validation error when unknown."""
        spec = self.operations.get(operation)
        if spec is None:
            raise AnalysisError(
                ErrorKind.VALIDATION,
                f"Unknown analysis type: {operation}",
                details=f"Known operations: {', '.join(sorted(self.operations))}",
            )
        return spec

    def rate_limit_status(
        self, operation: str, dimension: RateDimension, identity: str
    ) -> RateLimitResult:
        """Peek at one of ``operation``'s windows under its effective limit."""
        spec = self.operation_spec(operation)
        dimension = RateDimension(dimension)
        return self.limiter.status(
            dimension, identity, scope=operation, limit=spec.rate_limits.get(dimension)
        )

    def reset_rate_limit(self, operation: str, dimension: RateDimension, identity: str) -> bool:
        self.operation_spec(operation)
        return self.limiter.reset(dimension, identity, scope=operation)

    def has_cached_result(self, user_id: str, resource_id: str, operation: str) -> bool:
        return self.cache.has(self.cache_key(user_id, resource_id, operation))

    def invalidate(self, user_id: str, resource_id: str, operation: str | None = None) -> int:
        """Drop cached results for one resource; every operation when ``operation`` is None.

        Returns:
            Number of cache keys removed.
        """
        kinds = [operation] if operation is not None else list(self.operations)
        removed = sum(
            self.cache.delete(self.cache_key(user_id, resource_id, kind)) for kind in kinds
        )
        logger.info(
            "analysis_cache_invalidated",
            user_id=user_id,
            resource_id=resource_id,
            operation=operation,
            removed=removed,
        )
        return removed

    # ── request flow ────────────────────────────────────────────────────

    async def generate(self, operation: str, context: AnalysisContext) -> AnalysisOutcome:
        """Run one request through the state machine and return its outcome."""
        transitions = [AnalysisStatus.IDLE, AnalysisStatus.VALIDATING]
        started = time.perf_counter()

        try:
            spec = validate_context(operation, context, self.operations)
        except AnalysisError as error:
            return self._failed(operation, context, error, transitions, started)

        key = self.cache_key(context.user_id, context.resource_id, operation)

        transitions.append(AnalysisStatus.CACHE_CHECK)
        # Followers attach before any await.
        shared = self._in_flight.get(key) if self.coalesce_in_flight else None
        cached = await asyncio.to_thread(self.cache.get, key) if shared is None else None
        if cached is not None:
            transitions.append(AnalysisStatus.SUCCESS)
            logger.info(
                "analysis_cache_hit",
                operation=operation,
                user_id=context.user_id,
                resource_id=context.resource_id,
            )
            return AnalysisOutcome(
                status=AnalysisStatus.SUCCESS,
                operation=operation,
                value=cached,
                from_cache=True,
                transitions=transitions,
            )

        if shared is None and self.coalesce_in_flight:
            shared = self._in_flight.get(key)
        rate_limit: RateLimitResult | None = None
        if shared is None:
            transitions.append(AnalysisStatus.RATE_LIMITING)
            rate_limit = self.limiter.check_all(
                [
                    (RateDimension.PER_USER, context.user_id),
                    (RateDimension.BURST, context.user_id),
                    (RateDimension.PER_IP, context.client_ip or UNKNOWN_IP),
                ],
                scope=operation,
                overrides=spec.rate_limits,
            )
            if not rate_limit.allowed:
                logger.warning(
                    "analysis_rate_limited",
                    operation=operation,
                    user_id=context.user_id,
                    dimension=rate_limit.dimension.value,
                    retry_after_seconds=rate_limit.retry_after_seconds,
                )
                error = AnalysisError(
                    ErrorKind.RATE_LIMITED,
                    details=f"{rate_limit.dimension.value} limit of {rate_limit.limit} exceeded",
                    reset_at=rate_limit.reset_at,
                    retry_after_seconds=rate_limit.retry_after_seconds,
                )
                return self._failed(
                    operation, context, error, transitions, started, rate_limit=rate_limit
                )
            task = self._start_call(key, operation, context)
        else:
            task = shared
            logger.debug("analysis_coalesced", operation=operation, key=key)

        transitions.append(AnalysisStatus.CALLING)
        try:
            result = await asyncio.shield(task)
        except asyncio.CancelledError:
            logger.info(
                "analysis_caller_cancelled",
                operation=operation,
                user_id=context.user_id,
                resource_id=context.resource_id,
            )
            raise

        if result.attempts > 1:
            transitions.append(AnalysisStatus.RETRYING)

        if result.error is not None:
            return self._failed(
                operation,
                context,
                result.error,
                transitions,
                started,
                rate_limit=rate_limit,
                attempts=result.attempts,
            )

        transitions.append(AnalysisStatus.SUCCESS)
        logger.info(
            "analysis_completed",
            operation=operation,
            user_id=context.user_id,
            resource_id=context.resource_id,
            attempts=result.attempts,
            coalesced=shared is not None,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return AnalysisOutcome(
            status=AnalysisStatus.SUCCESS,
            operation=operation,
            value=result.value,
            coalesced=shared is not None,
            rate_limit=rate_limit,
            attempts=result.attempts,
            transitions=transitions,
        )

    def _start_call(self, key: str, operation: str, context: AnalysisContext) -> asyncio.Task[_CallResult]:
        task = asyncio.create_task(self._call(key, operation, context), name=f"analysis:{key}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        if self.coalesce_in_flight:
            self._in_flight[key] = task
            task.add_done_callback(functools.partial(self._forget_in_flight, key))
        return task

    def _forget_in_flight(self, key: str, task: asyncio.Task[_CallResult]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _call(self, key: str, operation: str, context: AnalysisContext) -> _CallResult:
        attempts = 0

        async def attempt() -> dict[str, Any]:
            nonlocal attempts
            attempts += 1
            value = await self.upstream(operation, context)
            if not isinstance(value, Mapping):
                raise ValueError("Invalid response format")
            return dict(value)

        try:
            value = await with_retry(
                attempt,
                self.retry_policy,
                classify_error=functools.partial(classify, context=f"Analysis API: {operation}"),
                sleep=self._sleep,
                operation_name=f"analysis:{operation}",
            )
        except AnalysisError as error:
            return _CallResult(error=error, attempts=attempts)

        await asyncio.to_thread(self.cache.set, key, value)
        return _CallResult(value=value, attempts=attempts)

    def _failed(
        self,
        operation: str,
        context: AnalysisContext,
        error: AnalysisError,
        transitions: list[AnalysisStatus],
        started: float,
        *,
        rate_limit: RateLimitResult | None = None,
        attempts: int = 0,
    ) -> AnalysisOutcome:
        transitions.append(AnalysisStatus.ERROR)
        logger.warning(
            "analysis_failed",
            operation=operation,
            user_id=context.user_id,
            resource_id=context.resource_id,
            kind=error.kind.value,
            attempts=attempts,
            notify_user=should_notify_user(error),
            summary=error_summary(error, operation),
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return AnalysisOutcome(
            status=AnalysisStatus.ERROR,
            operation=operation,
            error=error,
            rate_limit=rate_limit,
            attempts=attempts,
            transitions=transitions,
        )

    # ── lifecycle ───────────────────────────────────────────────────────

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every background upstream task to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Drain background tasks, then stop the stores' sweepers."""
        await self.drain()
        self.cache.close()
        self.limiter.close()
        logger.info("analysis_orchestrator_closed")


__all__ = [
    "AnalysisOrchestrator",
    "AnalysisOutcome",
    "AnalysisStatus",
    "Upstream",
]
