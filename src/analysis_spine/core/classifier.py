"""
Error classification — turn any raised failure into an :class:`AnalysisError`.

``classify`` is pure, total and deterministic: it never raises, performs no
I/O, and maps the same input to the same ``(kind, retryable)`` pair every
time.

Resolution order:
    1. Already classified ``AnalysisError`` → returned unchanged
    2. HTTP-like status code (``UpstreamHTTPError``, ``.status_code``,
       ``.status``, ``.response.status_code``)
    3. Built-in transport failures (``TimeoutError``, ``ConnectionError``,
       ``OSError`` with a retryable errno)
    4. Exception message or plain string, matched on lower-cased substrings
    5. Anything else → ``unknown``

Examples:
    >>> classify(UpstreamHTTPError(503)).kind
    <ErrorKind.SERVER: 'server'>
    >>> classify(RuntimeError("Failed to fetch")).kind
    <ErrorKind.NETWORK: 'network'>
    >>> classify(None).kind
    <ErrorKind.UNKNOWN: 'unknown'>

Tags:
    error-handling, classification, retry-logic, analysis-spine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import errno
from typing import Any

from analysis_spine.core.errors import AnalysisError, ErrorKind

NETWORK_MARKERS = ("fetch", "network", "timeout", "connection")
AUTH_MARKERS = ("unauthorized", "authentication", "token", "auth")
VALIDATION_MARKERS = ("invalid", "required", "validation", "format")

RETRYABLE_ERRNO_NAMES = frozenset({"ECONNRESET", "ETIMEDOUT", "ENOTFOUND", "ECONNREFUSED"})


def kind_from_status(status: int) -> ErrorKind:
    """Map an HTTP-like status code onto the taxonomy."""
    if 400 <= status < 500:
        if status in (401, 403):
            return ErrorKind.AUTH
        return ErrorKind.VALIDATION
    if status >= 500:
        return ErrorKind.SERVER
    return ErrorKind.UNKNOWN


def kind_from_text(text: str) -> ErrorKind:
    """Substring heuristics for unstructured failures. Defaults to server."""
    lowered = text.lower()
    if any(marker in lowered for marker in NETWORK_MARKERS):
        return ErrorKind.NETWORK
    if any(marker in lowered for marker in AUTH_MARKERS):
        return ErrorKind.AUTH
    if any(marker in lowered for marker in VALIDATION_MARKERS):
        return ErrorKind.VALIDATION
    return ErrorKind.SERVER


def _as_status(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _attr(obj: Any, name: str) -> Any:
    # Properties on third-party error objects may raise.
    try:
        return getattr(obj, name, None)
    except Exception:
        return None


def _safe_str(raw: Any) -> str:
    """``str(raw)``, or the type name when the object cannot render itself."""
    try:
        return str(raw)
    except Exception:
        return type(raw).__name__


def extract_status(raw: Any) -> int | None:
    """Return an HTTP-like status carried by ``raw``, if any."""
    for attr in ("status_code", "status"):
        status = _as_status(_attr(raw, attr))
        if status is not None:
            return status
    response = _attr(raw, "response")
    if response is not None:
        return _as_status(_attr(response, "status_code"))
    return None


def _is_transport_failure(exc: BaseException) -> bool:
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return True
    if isinstance(exc, OSError):
        code = _attr(exc, "code")
        if isinstance(code, str) and code.upper() in RETRYABLE_ERRNO_NAMES:
            return True
        if exc.errno is not None and errno.errorcode.get(exc.errno) in RETRYABLE_ERRNO_NAMES:
            return True
    return False


def _with_context(text: str | None, context: str | None) -> str | None:
    if context is None:
        return text
    if not text:
        return f"Context: {context}"
    return f"{text} | Context: {context}"


def classify(raw: Any, context: str | None = None) -> AnalysisError:
    """Classify ``raw`` into an :class:`AnalysisError`.

    Args:
        raw: Exception, response-like object, message string, or anything else.
        context: Optional label appended to ``details`` ("Analysis API: job-fit").

    Returns:
        A new ``AnalysisError``, or ``raw`` itself when it is already one.
    """
    if isinstance(raw, AnalysisError):
        return raw

    status = extract_status(raw)
    if status is not None:
        text = _safe_str(raw) if isinstance(raw, BaseException) else f"HTTP {status}"
        return AnalysisError(
            kind_from_status(status),
            details=_with_context(text, context),
            status_code=status,
        )

    if isinstance(raw, BaseException):
        message = _safe_str(raw)
        text = message or type(raw).__name__
        kind = ErrorKind.NETWORK if _is_transport_failure(raw) else kind_from_text(message)
        return AnalysisError(kind, details=_with_context(text, context))

    if isinstance(raw, str):
        return AnalysisError(kind_from_text(raw), details=_with_context(raw, context))

    return AnalysisError(
        ErrorKind.UNKNOWN,
        details=_with_context("Unknown error occurred", context),
    )


def should_notify_user(error: AnalysisError) -> bool:
    """Whether a failure deserves an explicit user notification."""
    if error.kind in (ErrorKind.VALIDATION, ErrorKind.AUTH, ErrorKind.RATE_LIMITED):
        return True
    if error.kind is ErrorKind.NETWORK:
        return not error.retryable
    return error.kind is ErrorKind.SERVER


def error_summary(error: AnalysisError, context: str | None = None) -> str:
    """One-line summary for log output."""
    parts = [
        f"Type: {error.kind.value}",
        f"Message: {error.message}",
        f"Retryable: {error.retryable}",
    ]
    if error.details:
        parts.append(f"Details: {error.details}")
    if context:
        parts.append(f"Context: {context}")
    return " | ".join(parts)


__all__ = [
    "classify",
    "error_summary",
    "extract_status",
    "kind_from_status",
    "kind_from_text",
    "should_notify_user",
]
