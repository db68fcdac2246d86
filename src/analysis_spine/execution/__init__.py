"""Analysis Spine Execution -- resilience around the upstream call.

ARCHITECTURE
────────────
::

    RateLimiter      fixed windows per (dimension, scope, identity)
    with_retry       exponential backoff + jitter, classified failures
    run_with_timeout_async   per-attempt deadline
"""

from analysis_spine.execution.rate_limit import (
    RateDimension,
    RateLimiter,
    RateLimitResult,
    WindowLimit,
    extract_client_ip,
    rate_limit_headers,
)
from analysis_spine.execution.retry import RetryPolicy, retrying, with_retry
from analysis_spine.execution.timeout import TimeoutExpired, run_with_timeout_async

__all__ = [
    "RateDimension",
    "RateLimitResult",
    "RateLimiter",
    "RetryPolicy",
    "TimeoutExpired",
    "WindowLimit",
    "extract_client_ip",
    "rate_limit_headers",
    "retrying",
    "run_with_timeout_async",
    "with_retry",
]
