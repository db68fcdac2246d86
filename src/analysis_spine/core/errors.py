"""
Structured error types for the analysis orchestration layer.

Every failure that reaches a caller of the orchestrator is an
:class:`AnalysisError`: a typed exception carrying a fixed ``kind``, a stable
user-facing message, optional diagnostic ``details``, and a ``retryable`` flag
that is derived from the kind and never set ad hoc.

Upstream adapters raise :class:`UpstreamHTTPError` when they have a status
code available, so classification can work on structured data instead of
exception text.

Manifesto:
    - **Fixed taxonomy:** six kinds, no more
    - **Retry semantics from the kind:** network/server/rate_limited retry,
      auth/validation/unknown never do
    - **Stable messages:** users see the same text for the same kind; the raw
      failure lives in ``details`` for logs only
    - **Error chaining:** the original exception is kept as ``__cause__``

Architecture:
    ::

        AnalysisSpineError
        ├── AnalysisError        (kind, message, details, retryable)
        ├── UpstreamHTTPError    (status_code)   ← raised by adapters
        ├── StorageError         (durable store I/O)
        └── ConfigError          (invalid settings)

Examples:
    >>> err = AnalysisError(ErrorKind.NETWORK, details="ECONNRESET")
    >>> err.retryable
    True
    >>> err.message
    'Network error. Please check your connection and try again.'

Tags:
    error-handling, taxonomy, retry-logic, analysis-spine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Classification of every failure surfaced by the orchestrator."""

    NETWORK = "network"
    AUTH = "auth"
    VALIDATION = "validation"
    SERVER = "server"
    RATE_LIMITED = "rate_limited"
    UNKNOWN = "unknown"


ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NETWORK: "Network error. Please check your connection and try again.",
    ErrorKind.AUTH: "Authentication error. Please refresh the page and try again.",
    ErrorKind.SERVER: "Server error. Our team has been notified. Please try again later.",
    ErrorKind.VALIDATION: "Invalid data provided. Please check your application details.",
    ErrorKind.RATE_LIMITED: "Too many requests. Please wait a moment and try again.",
    ErrorKind.UNKNOWN: "An unexpected error occurred. Please try again.",
}

RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset(
    {ErrorKind.NETWORK, ErrorKind.SERVER, ErrorKind.RATE_LIMITED}
)


def is_retryable_kind(kind: ErrorKind) -> bool:
    """Return the fixed retry policy for ``kind``."""
    return kind in RETRYABLE_KINDS


class AnalysisSpineError(Exception):
    """Base exception for all analysis-spine errors."""


class AnalysisError(AnalysisSpineError):
    """
    A classified failure with a stable user-facing message.

    ``retryable`` is a read-only property computed from ``kind``. ``message``
    defaults to the fixed text for the kind; validation failures raised by the
    orchestrator itself may pass a more specific message ("Company name is
    required").

    Attributes:
        kind: ErrorKind of this failure
        message: Text safe to show to an end user
        details: Diagnostic text for logs, never shown to users
        status_code: HTTP-like status of the upstream failure, when known
        reset_at: Epoch seconds when a rate-limit window reopens
        retry_after_seconds: Whole seconds until ``reset_at``
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str | None = None,
        *,
        details: str | None = None,
        status_code: int | None = None,
        reset_at: float | None = None,
        retry_after_seconds: int | None = None,
    ):
        self.kind = ErrorKind(kind)
        self.message = message or ERROR_MESSAGES[self.kind]
        self.details = details
        self.status_code = status_code
        self.reset_at = reset_at
        self.retry_after_seconds = retry_after_seconds
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return is_retryable_kind(self.kind)

    def to_dict(self) -> dict[str, Any]:
        """Public representation. Never includes ``details``."""
        result: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.reset_at is not None:
            result["reset_at"] = self.reset_at
        if self.retry_after_seconds is not None:
            result["retry_after_seconds"] = self.retry_after_seconds
        return result

    def to_log_dict(self) -> dict[str, Any]:
        """Representation for structured logs, including diagnostics."""
        result = self.to_dict()
        if self.details:
            result["details"] = self.details
        if self.status_code is not None:
            result["status_code"] = self.status_code
        if self.__cause__ is not None:
            result["cause"] = repr(self.__cause__)
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AnalysisError):
            return NotImplemented
        return (
            self.kind == other.kind
            and self.message == other.message
            and self.details == other.details
            and self.status_code == other.status_code
        )

    def __hash__(self) -> int:
        return hash((self.kind, self.message, self.details, self.status_code))

    def __repr__(self) -> str:
        return f"AnalysisError(kind={self.kind.value}, message={self.message!r})"


class UpstreamHTTPError(AnalysisSpineError):
    """Raised by upstream adapters when the provider answered with an error status."""

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = status_code
        super().__init__(message or f"Upstream returned HTTP {status_code}")


class StorageError(AnalysisSpineError):
    """A durable key-value store could not be read or written."""


class ConfigError(AnalysisSpineError):
    """Configuration value is missing or invalid."""

    def __init__(self, key: str, value: Any = None, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


__all__ = [
    "ERROR_MESSAGES",
    "RETRYABLE_KINDS",
    "AnalysisError",
    "AnalysisSpineError",
    "ConfigError",
    "ErrorKind",
    "StorageError",
    "UpstreamHTTPError",
    "is_retryable_kind",
]
