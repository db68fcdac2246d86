"""Rate Limiting — multi-tier fixed-window counters for the expensive path.

Manifesto:
Every uncached analysis request costs an upstream AI call. Three independent
limits protect it:

- **per_user** — e.g. 5 per 60 s, keyed by authenticated identity
- **per_ip**   — e.g. 20 per 5 min, catches unauthenticated abuse
- **burst**    — e.g. 2 per 10 s, catches rapid double-submits that a
  60 s window would only notice too late

A request proceeds only if *every* dimension allows it. Windows are also
scoped by operation: a user spending the job-fit budget still has the full
interview budget, and an operation may override a dimension's limit.

ARCHITECTURE
────────────
::

    RateLimiter
      ├── limits:  {RateDimension → WindowLimit(limit, window_seconds)}
      ├── windows: {(dimension, scope, identity) → RateWindow}   one Lock
      └── PeriodicSweeper ─ drops windows whose reset_at has passed

    check(dim, id, scope=, limit=)
                         fresh window if missing/expired; reject at limit
                         WITHOUT incrementing; otherwise increment
    check_all(pairs, scope=, overrides=)
                         AND across dimensions, stops at first rejection
    status(dim, id)      read-only peek, never creates or increments
    reset(dim, id)       ops override: delete one window now

Fixed windows (not token buckets): a window opens on the first request and
closes ``window_seconds`` later; it is replaced wholesale, never partially
reset.

Example::

    limiter = RateLimiter({
        RateDimension.PER_USER: WindowLimit(5, 60),
        RateDimension.PER_IP: WindowLimit(20, 300),
        RateDimension.BURST: WindowLimit(2, 10),
    })
    result = limiter.check_all([
        (RateDimension.PER_USER, user_id),
        (RateDimension.BURST, user_id),
        (RateDimension.PER_IP, extract_client_ip(request.headers)),
    ], scope="interview", overrides={RateDimension.PER_USER: WindowLimit(3, 60)})
    if not result.allowed:
        return 429, rate_limit_headers(result)

Tags:
    analysis-spine, execution, rate-limit, fixed-window, burst

Doc-Types:
    api-reference
"""

from __future__ import annotations

import math
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from analysis_spine.core.logging import get_logger
from analysis_spine.core.sweeper import PeriodicSweeper

logger = get_logger(__name__)

UNKNOWN_IP = "unknown"


class RateDimension(str, Enum):
    """Independent limit dimensions."""

    PER_USER = "per_user"
    PER_IP = "per_ip"
    BURST = "burst"


@dataclass(frozen=True)
class WindowLimit:
    """Maximum requests per fixed window."""

    limit: int
    window_seconds: float

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise ValueError(f"limit must be positive, got {self.limit}")
        if self.window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {self.window_seconds}")


DEFAULT_LIMITS: dict[RateDimension, WindowLimit] = {
    RateDimension.PER_USER: WindowLimit(limit=5, window_seconds=60.0),
    RateDimension.PER_IP: WindowLimit(limit=20, window_seconds=300.0),
    RateDimension.BURST: WindowLimit(limit=2, window_seconds=10.0),
}


@dataclass
class RateWindow:
    """Counter for one ``(dimension, scope, identity)`` triple."""

    dimension: RateDimension
    identity: str
    count: int
    window_start: float
    reset_at: float
    scope: str = ""

    def is_active(self, now: float) -> bool:
        return now < self.reset_at


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a limit check."""

    allowed: bool
    remaining: int
    reset_at: float
    limit: int
    dimension: RateDimension
    identity: str
    retry_after_seconds: int | None = None
    scope: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "remaining": self.remaining,
            "reset_at": self.reset_at,
            "limit": self.limit,
            "dimension": self.dimension.value,
            "scope": self.scope,
            "retry_after_seconds": self.retry_after_seconds,
        }


class RateLimiter:
    """Fixed-window limiter over independent dimensions and scopes.

    Thread-safe: one lock guards the window map, and every check-then-increment
    happens inside it.
    """

    def __init__(
        self,
        limits: Mapping[RateDimension, WindowLimit] | None = None,
        *,
        clock: Callable[[], float] = time.time,
        sweep_interval_seconds: float | None = 300.0,
    ):
        self.limits: dict[RateDimension, WindowLimit] = dict(limits or DEFAULT_LIMITS)
        self._clock = clock
        self._windows: dict[tuple[RateDimension, str, str], RateWindow] = {}
        self._lock = threading.Lock()
        self._sweeper: PeriodicSweeper | None = None
        if sweep_interval_seconds is not None:
            self._sweeper = PeriodicSweeper(
                self.sweep, sweep_interval_seconds, name="rate-limit-sweeper"
            ).start()

    @classmethod
    def from_settings(cls, settings: Any, **kwargs: Any) -> RateLimiter:
        """Build a limiter from :class:`~analysis_spine.core.settings.OrchestrationSettings`."""
        limits = {
            RateDimension.PER_USER: WindowLimit(settings.per_user_limit, settings.per_user_window_seconds),
            RateDimension.PER_IP: WindowLimit(settings.per_ip_limit, settings.per_ip_window_seconds),
            RateDimension.BURST: WindowLimit(settings.burst_limit, settings.burst_window_seconds),
        }
        kwargs.setdefault("sweep_interval_seconds", settings.sweep_interval_seconds)
        return cls(limits, **kwargs)

    def _limit_for(self, dimension: RateDimension, override: WindowLimit | None = None) -> WindowLimit:
        if override is not None:
            return override
        try:
            return self.limits[RateDimension(dimension)]
        except KeyError:
            raise ValueError(f"No limit configured for dimension {dimension!r}") from None

    def check(
        self,
        dimension: RateDimension,
        identity: str,
        *,
        scope: str = "",
        limit: WindowLimit | None = None,
    ) -> RateLimitResult:
        """Count one request against ``(dimension, scope, identity)``.

        ``limit`` replaces the dimension's configured limit for this scope.
        A rejected request does not consume budget.
        """
        dimension = RateDimension(dimension)
        config = self._limit_for(dimension, limit)
        key = (dimension, scope, identity)

        with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None or not window.is_active(now):
                window = RateWindow(
                    dimension=dimension,
                    identity=identity,
                    count=0,
                    window_start=now,
                    reset_at=now + config.window_seconds,
                    scope=scope,
                )
                self._windows[key] = window

            if window.count >= config.limit:
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_at=window.reset_at,
                    limit=config.limit,
                    dimension=dimension,
                    identity=identity,
                    retry_after_seconds=math.ceil(window.reset_at - now),
                    scope=scope,
                )

            window.count += 1
            return RateLimitResult(
                allowed=True,
                remaining=config.limit - window.count,
                reset_at=window.reset_at,
                limit=config.limit,
                dimension=dimension,
                identity=identity,
                scope=scope,
            )

    def check_all(
        self,
        checks: Iterable[tuple[RateDimension, str]],
        *,
        scope: str = "",
        overrides: Mapping[RateDimension, WindowLimit] | None = None,
    ) -> RateLimitResult:
        """Check several dimensions in one scope; all must allow.

        Stops at the first rejection, so dimensions after it are neither
        created nor incremented. When everything passes, returns the result
        with the fewest remaining requests.
        """
        overrides = overrides or {}
        results: list[RateLimitResult] = []
        for dimension, identity in checks:
            dimension = RateDimension(dimension)
            result = self.check(dimension, identity, scope=scope, limit=overrides.get(dimension))
            if not result.allowed:
                logger.info(
                    "rate_limit_rejected",
                    dimension=result.dimension.value,
                    scope=scope,
                    identity=identity,
                    retry_after_seconds=result.retry_after_seconds,
                )
                return result
            results.append(result)
        if not results:
            raise ValueError("check_all needs at least one (dimension, identity) pair")
        return min(results, key=lambda r: (r.remaining, -r.reset_at))

    def status(
        self,
        dimension: RateDimension,
        identity: str,
        *,
        scope: str = "",
        limit: WindowLimit | None = None,
    ) -> RateLimitResult:
        """Current standing without counting a request."""
        dimension = RateDimension(dimension)
        config = self._limit_for(dimension, limit)
        with self._lock:
            now = self._clock()
            window = self._windows.get((dimension, scope, identity))
            if window is None or not window.is_active(now):
                return RateLimitResult(
                    allowed=True,
                    remaining=config.limit,
                    reset_at=now + config.window_seconds,
                    limit=config.limit,
                    dimension=dimension,
                    identity=identity,
                    scope=scope,
                )
            limited = window.count >= config.limit
            return RateLimitResult(
                allowed=not limited,
                remaining=max(0, config.limit - window.count),
                reset_at=window.reset_at,
                limit=config.limit,
                dimension=dimension,
                identity=identity,
                retry_after_seconds=math.ceil(window.reset_at - now) if limited else None,
                scope=scope,
            )

    def window(self, dimension: RateDimension, identity: str, *, scope: str = "") -> RateWindow | None:
        """Snapshot of the stored window, expired or not."""
        with self._lock:
            window = self._windows.get((RateDimension(dimension), scope, identity))
            return replace(window) if window is not None else None

    def reset(self, dimension: RateDimension, identity: str, *, scope: str = "") -> bool:
        """Delete one window immediately (support/ops override)."""
        dimension = RateDimension(dimension)
        with self._lock:
            removed = self._windows.pop((dimension, scope, identity), None) is not None
        if removed:
            logger.info("rate_limit_reset", dimension=dimension.value, scope=scope, identity=identity)
        return removed

    def reset_identity(self, identity: str, *, scope: str | None = None) -> int:
        """Clear the per-user and burst windows for ``identity``.

        Only windows in ``scope`` when given, otherwise every scope.
        """
        with self._lock:
            doomed = [
                key
                for key in self._windows
                if key[0] in (RateDimension.PER_USER, RateDimension.BURST)
                and key[2] == identity
                and (scope is None or key[1] == scope)
            ]
            for key in doomed:
                del self._windows[key]
        if doomed:
            logger.info("rate_limit_identity_reset", identity=identity, scope=scope, removed=len(doomed))
        return len(doomed)

    def sweep(self) -> int:
        """Remove every window whose ``reset_at`` has passed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, window in self._windows.items() if not window.is_active(now)]
            for key in expired:
                del self._windows[key]
        if expired:
            logger.debug("rate_limit_swept", removed=len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def close(self) -> None:
        """Stop the background sweeper."""
        if self._sweeper is not None:
            self._sweeper.stop()
            self._sweeper = None


def extract_client_ip(headers: Mapping[str, str]) -> str:
    """Client IP from proxy headers.

    First present of ``x-forwarded-for`` (first entry), ``x-real-ip``,
    ``cf-connecting-ip``; ``"unknown"`` otherwise. Header names are
    case-insensitive.
    """
    lowered = {name.lower(): value for name, value in headers.items()}

    forwarded = lowered.get("x-forwarded-for", "")
    first = forwarded.split(",")[0].strip()
    if first:
        return first

    for name in ("x-real-ip", "cf-connecting-ip"):
        value = lowered.get(name, "").strip()
        if value:
            return value

    return UNKNOWN_IP


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """HTTP headers describing ``result``."""
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(math.ceil(result.reset_at)),
    }
    if not result.allowed and result.retry_after_seconds is not None:
        headers["Retry-After"] = str(result.retry_after_seconds)
    return headers


__all__ = [
    "DEFAULT_LIMITS",
    "RateDimension",
    "RateLimitResult",
    "RateLimiter",
    "RateWindow",
    "WindowLimit",
    "extract_client_ip",
    "rate_limit_headers",
]
