"""
Error mapping — classified analysis failures to HTTP responses.
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from analysis_spine.core.errors import AnalysisError, ErrorKind
from analysis_spine.core.logging import get_logger
from analysis_spine.execution.rate_limit import RateLimitResult, rate_limit_headers

logger = get_logger(__name__)

# ── Error kind → HTTP status mapping ─────────────────────────────────────

KIND_TO_STATUS: dict[ErrorKind, int] = {
    ErrorKind.AUTH: 401,
    ErrorKind.VALIDATION: 422,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.NETWORK: 503,
    ErrorKind.SERVER: 502,
    ErrorKind.UNKNOWN: 500,
}


def status_for_kind(kind: ErrorKind) -> int:
    """Resolve an error kind to HTTP status, defaulting to 500."""
    return KIND_TO_STATUS.get(kind, 500)


def error_response(error: AnalysisError, rate_limit: RateLimitResult | None = None) -> JSONResponse:
    """``{"error": {...}}`` body; rate-limit headers when a limit result is known."""
    headers = rate_limit_headers(rate_limit) if rate_limit is not None else None
    return JSONResponse(
        status_code=status_for_kind(error.kind),
        content={"error": error.to_dict()},
        headers=headers,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: log the failure, answer with the fixed ``unknown`` message."""
    logger.exception("unhandled_api_error", path=request.url.path, error_type=type(exc).__name__)
    return error_response(AnalysisError(ErrorKind.UNKNOWN))


__all__ = [
    "KIND_TO_STATUS",
    "error_response",
    "status_for_kind",
    "unhandled_exception_handler",
]
