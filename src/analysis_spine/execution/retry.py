"""Retry with exponential backoff, jitter, and classified failures.

``with_retry`` invokes an async operation up to ``policy.max_attempts`` times.
After each failure it asks the classifier whether the failure is retryable;
terminal failures (auth, validation, unknown) stop the loop immediately, and
the last *real* classified failure is what the caller sees, never a generic
"retries exhausted" error.

Delay before retry ``n`` (1-based attempt that just failed)::

    delay  = min(base_delay * backoff_factor ** (n - 1), max_delay)
    delay' = max(0, delay + delay * jitter_range * (random() - 0.5))

Deadlines:
    Each attempt runs under ``attempt_timeout``. There is deliberately no
    deadline across attempts by default: a slow call that eventually succeeds
    is worth more than a truncated one, so worst-case total duration is
    ``max_attempts * attempt_timeout`` plus the sleeps. Callers that need a
    hard bound set ``total_timeout``; the loop then stops before a sleep that
    would cross it and clips the last attempt's timeout to what remains.

Example:
    >>> policy = RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=10.0)
    >>> result = await with_retry(lambda: upstream("job-fit", context), policy)

Tags:
    retry, backoff, jitter, resilience, analysis-spine

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import functools
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from analysis_spine.core.classifier import classify
from analysis_spine.core.errors import AnalysisError
from analysis_spine.core.logging import get_logger
from analysis_spine.execution.timeout import run_with_timeout_async

T = TypeVar("T")

logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget and backoff schedule.

    Attributes:
        max_attempts: Attempts including the first one
        base_delay: Delay in seconds after the first failure
        backoff_factor: Exponential multiplier per attempt
        max_delay: Cap for a single delay, before jitter
        jitter: Randomise delays to avoid synchronised retry storms
        jitter_range: Jitter amplitude as a fraction of the delay
        attempt_timeout: Deadline for one attempt (``None`` = no deadline)
        total_timeout: Optional deadline across all attempts
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 10.0
    jitter: bool = True
    jitter_range: float = 0.25
    attempt_timeout: float | None = 30.0
    total_timeout: float | None = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Delays must be non-negative")
        if self.attempt_timeout is not None and self.attempt_timeout <= 0:
            raise ValueError(f"attempt_timeout must be positive, got {self.attempt_timeout}")
        if self.total_timeout is not None and self.total_timeout <= 0:
            raise ValueError(f"total_timeout must be positive, got {self.total_timeout}")

    @classmethod
    def from_settings(cls, settings: Any) -> RetryPolicy:
        """Build a policy from :class:`~analysis_spine.core.settings.OrchestrationSettings`."""
        total = settings.retry_total_timeout_ms
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay_ms / 1000,
            backoff_factor=settings.retry_backoff_factor,
            max_delay=settings.retry_max_delay_ms / 1000,
            attempt_timeout=settings.attempt_timeout_ms / 1000,
            total_timeout=total / 1000 if total is not None else None,
        )

    def backoff(self, attempt: int) -> float:
        """Delay after failed ``attempt`` (1-based), before jitter."""
        return min(self.base_delay * (self.backoff_factor ** (attempt - 1)), self.max_delay)

    def next_delay(self, attempt: int, rand: Callable[[], float] = random.random) -> float:
        """Delay after failed ``attempt`` (1-based), with jitter applied."""
        delay = self.backoff(attempt)
        if self.jitter:
            delay += delay * self.jitter_range * (rand() - 0.5)
        return max(0.0, delay)


def _raise_classified(error: AnalysisError, exc: Exception) -> None:
    if error is exc:
        raise error
    raise error from exc


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    classify_error: Callable[[Any], AnalysisError] = classify,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    on_retry: Callable[[int, AnalysisError, float], None] | None = None,
    operation_name: str = "operation",
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """Run ``operation`` until it succeeds, fails terminally, or the budget runs out.

    Args:
        operation: Zero-argument factory returning a fresh awaitable per attempt
        policy: Retry policy (default: ``RetryPolicy()``)
        classify_error: Failure → AnalysisError mapping
        sleep: Awaitable sleep (injected in tests)
        on_retry: Called before each backoff sleep with (attempt, error, delay)
        operation_name: Label for logs and timeout messages
        clock: Monotonic clock used for ``total_timeout``

    Returns:
        The first successful result.

    Raises:
        AnalysisError: Classified failure of the last attempt made, chained
            from the original exception.
    """
    policy = policy or RetryPolicy()
    deadline = clock() + policy.total_timeout if policy.total_timeout is not None else None

    attempt = 0
    while True:
        attempt += 1
        timeout = policy.attempt_timeout
        if deadline is not None:
            remaining = max(deadline - clock(), 0.001)
            timeout = remaining if timeout is None else min(timeout, remaining)

        try:
            return await run_with_timeout_async(operation(), timeout, operation=operation_name)
        except Exception as exc:
            error = classify_error(exc)

            if attempt >= policy.max_attempts or not error.retryable:
                if attempt > 1 or error.retryable:
                    logger.warning(
                        "retry_gave_up",
                        operation=operation_name,
                        attempts=attempt,
                        kind=error.kind.value,
                    )
                _raise_classified(error, exc)

            delay = policy.next_delay(attempt)
            if deadline is not None and clock() + delay >= deadline:
                logger.warning(
                    "retry_deadline_exceeded",
                    operation=operation_name,
                    attempts=attempt,
                    kind=error.kind.value,
                )
                _raise_classified(error, exc)

            logger.warning(
                "retry_scheduled",
                operation=operation_name,
                attempt=attempt,
                kind=error.kind.value,
                delay_seconds=round(delay, 3),
                details=error.details,
            )
            if on_retry is not None:
                on_retry(attempt, error, delay)
            await sleep(delay)


def retrying(
    policy: RetryPolicy | None = None,
    **retry_kwargs: Any,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator form of :func:`with_retry`.

    Example:
        >>> @retrying(RetryPolicy(max_attempts=5))
        ... async def call_provider(prompt: str) -> dict:
        ...     ...
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        options = {"operation_name": func.__name__, **retry_kwargs}

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await with_retry(lambda: func(*args, **kwargs), policy, **options)

        return wrapper

    return decorator


__all__ = ["RetryPolicy", "retrying", "with_retry"]
