"""Analysis Spine Core -- errors, classification, caches and configuration.

Architecture::

    Layer 1 -- Errors
        errors.py        ErrorKind, AnalysisError, fixed user-facing messages
        classifier.py    Raw failure -> AnalysisError (pure, total)

    Layer 2 -- Storage
        cache.py         CacheBackend protocol, InMemoryCache, cache keys
        durable.py       DurableCache over a KeyValueStore (memory/file/redis)
        hybrid_cache.py  Memory layer in front of the durable layer
        sweeper.py       Background sweep thread with explicit stop

    Layer 3 -- Ambient
        settings.py      OrchestrationSettings (pydantic-settings)
        logging.py       structlog configuration
"""

from analysis_spine.core.cache import CacheBackend, CacheEntry, InMemoryCache, make_cache_key
from analysis_spine.core.classifier import classify, error_summary, should_notify_user
from analysis_spine.core.durable import (
    DurableCache,
    FileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    RedisKeyValueStore,
)
from analysis_spine.core.errors import (
    ERROR_MESSAGES,
    AnalysisError,
    AnalysisSpineError,
    ConfigError,
    ErrorKind,
    StorageError,
    UpstreamHTTPError,
)
from analysis_spine.core.hybrid_cache import HybridCache
from analysis_spine.core.logging import configure_logging, get_logger
from analysis_spine.core.settings import DurableBackend, OrchestrationSettings, get_settings

__all__ = [
    "ERROR_MESSAGES",
    "AnalysisError",
    "AnalysisSpineError",
    "CacheBackend",
    "CacheEntry",
    "ConfigError",
    "DurableBackend",
    "DurableCache",
    "ErrorKind",
    "FileKeyValueStore",
    "HybridCache",
    "InMemoryCache",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "OrchestrationSettings",
    "RedisKeyValueStore",
    "StorageError",
    "UpstreamHTTPError",
    "classify",
    "configure_logging",
    "error_summary",
    "get_logger",
    "get_settings",
    "make_cache_key",
    "should_notify_user",
]
