"""Timeout enforcement for a single upstream attempt.

Every upstream attempt runs under its own deadline so a hung provider cannot
stall one attempt forever. The retry loop as a whole is *not* bounded unless
the caller opts into a total deadline (see
:class:`~analysis_spine.execution.retry.RetryPolicy`).

Example:
    >>> result = await run_with_timeout_async(
    ...     upstream("job-fit", context),
    ...     30.0,
    ...     operation="job-fit",
    ... )
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import TypeVar

T = TypeVar("T")


class TimeoutExpired(TimeoutError):
    """Raised when an operation exceeds its deadline.

    Inherits from built-in TimeoutError, so the classifier treats it as a
    network failure.

    Attributes:
        timeout: The timeout value that was exceeded
        elapsed: How long the operation ran before being interrupted
        operation: Name/description of the operation
    """

    def __init__(
        self,
        timeout: float,
        elapsed: float | None = None,
        operation: str = "operation",
    ):
        self.timeout = timeout
        self.elapsed = elapsed
        self.operation = operation

        msg = f"Operation '{operation}' timed out after {timeout}s"
        if elapsed is not None:
            msg += f" (ran for {elapsed:.2f}s)"
        super().__init__(msg)


async def run_with_timeout_async(
    awaitable: Awaitable[T],
    timeout_seconds: float | None,
    operation: str = "operation",
) -> T:
    """Await ``awaitable`` with a deadline.

    Args:
        awaitable: Coroutine or future to await
        timeout_seconds: Maximum execution time; ``None`` waits indefinitely
        operation: Name for error messages

    Raises:
        TimeoutExpired: If execution exceeds the deadline (the awaitable is cancelled)
        ValueError: If ``timeout_seconds`` is not positive
    """
    if timeout_seconds is None:
        return await awaitable
    if timeout_seconds <= 0:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise ValueError(f"Timeout must be positive, got {timeout_seconds}")

    start = time.monotonic()
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except TimeoutError:
        raise TimeoutExpired(
            timeout=timeout_seconds,
            elapsed=time.monotonic() - start,
            operation=operation,
        ) from None


__all__ = ["TimeoutExpired", "run_with_timeout_async"]
