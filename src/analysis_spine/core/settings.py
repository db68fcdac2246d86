"""Policy configuration for the orchestration layer.

Every numeric constant the cache, the rate limiter and the retry loop use is
injected from here rather than hard-coded. Values come from environment
variables prefixed with ``ANALYSIS_`` (or a ``.env`` file) and are validated
at startup.

Durations are configured in milliseconds (``*_ms``) to match the names
operators already use for these knobs; the ``*_seconds`` properties give the
values the components consume.

Examples:
    >>> settings = OrchestrationSettings(per_user_limit=3)
    >>> settings.per_user_window_seconds
    60.0

Tags:
    settings, configuration, pydantic, environment, analysis-spine

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DurableBackend(str, Enum):
    """Backing store used by the durable cache layer."""

    MEMORY = "memory"
    FILE = "file"
    REDIS = "redis"


class OrchestrationSettings(BaseSettings):
    """Settings for rate limits, cache and retry policy.

    Order of precedence (highest → lowest):
        1. Constructor keyword arguments
        2. Environment variables (``ANALYSIS_PER_USER_LIMIT``, ...)
        3. ``.env`` file
        4. Defaults below
    """

    model_config = SettingsConfigDict(
        env_prefix="ANALYSIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Rate limiting ────────────────────────────────────────────────────
    per_user_limit: int = Field(default=5, gt=0, description="Requests per user window")
    per_user_window_ms: int = Field(default=60_000, gt=0, description="Per-user window length")
    per_ip_limit: int = Field(default=20, gt=0, description="Requests per IP window")
    per_ip_window_ms: int = Field(default=300_000, gt=0, description="Per-IP window length")
    burst_limit: int = Field(default=2, gt=0, description="Requests per burst window")
    burst_window_ms: int = Field(default=10_000, gt=0, description="Burst window length")

    # ── Cache ────────────────────────────────────────────────────────────
    cache_ttl_ms: int = Field(default=1_800_000, gt=0, description="Entry time-to-live")
    cache_max_entries: int = Field(default=50, gt=0, description="Entries per cache layer")
    durable_backend: DurableBackend = Field(
        default=DurableBackend.MEMORY,
        description="Durable layer store: memory, file or redis",
    )
    cache_dir: Path = Field(
        default_factory=lambda: Path.home() / ".analysis-spine" / "cache",
        description="Directory for the file-backed durable store",
    )
    cache_storage_key: str = Field(default="ai_analysis_cache", description="Durable document key")
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")

    # ── Retry ────────────────────────────────────────────────────────────
    retry_max_attempts: int = Field(default=3, gt=0, description="Attempts including the first")
    retry_base_delay_ms: int = Field(default=1_000, ge=0, description="Delay before the first retry")
    retry_backoff_factor: float = Field(default=2.0, ge=1.0, description="Exponential multiplier")
    retry_max_delay_ms: int = Field(default=10_000, ge=0, description="Cap for a single delay")
    attempt_timeout_ms: int = Field(default=30_000, gt=0, description="Deadline for one attempt")
    retry_total_timeout_ms: int | None = Field(
        default=None,
        gt=0,
        description="Optional deadline across all attempts (unbounded when unset)",
    )

    # ── Background work ──────────────────────────────────────────────────
    sweep_interval_ms: int = Field(default=300_000, gt=0, description="Cache/limiter sweep period")
    coalesce_in_flight: bool = Field(
        default=False,
        description="Share one upstream call between concurrent identical requests",
    )

    # ── Observability ────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", description="Structlog log level")
    log_json: bool | None = Field(default=None, description="JSON logs (auto-detect when unset)")

    @property
    def per_user_window_seconds(self) -> float:
        return self.per_user_window_ms / 1000

    @property
    def per_ip_window_seconds(self) -> float:
        return self.per_ip_window_ms / 1000

    @property
    def burst_window_seconds(self) -> float:
        return self.burst_window_ms / 1000

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_ms / 1000

    @property
    def sweep_interval_seconds(self) -> float:
        return self.sweep_interval_ms / 1000


@lru_cache(maxsize=1)
def get_settings() -> OrchestrationSettings:
    """Cached settings — loaded once per process."""
    return OrchestrationSettings()


__all__ = ["DurableBackend", "OrchestrationSettings", "get_settings"]
