"""
Admin router — inspect caches and override rate limits.

These endpoints read and reset shared limiter state for any user. They carry
no authentication of their own and must be mounted behind the deployment's
operator auth or network boundary, never on the public surface.

Endpoints:
    GET    /admin/cache/stats                                     Both cache layers
    GET    /admin/rate-limits/{operation}/{dimension}/{identity}  Peek a window (no increment)
    DELETE /admin/rate-limits/{operation}/{dimension}/{identity}  Reset a window now

Tags:
    analysis-spine, api, admin, rate-limit, cache

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Path

from analysis_spine.api.deps import Orchestrator
from analysis_spine.api.errors import error_response
from analysis_spine.api.schemas import RateLimitResetResponse, RateLimitStatusResponse
from analysis_spine.core.errors import AnalysisError
from analysis_spine.execution.rate_limit import RateDimension

router = APIRouter(prefix="/admin")


@router.get("/cache/stats")
def cache_stats(orchestrator: Orchestrator) -> dict[str, Any]:
    """Size, capacity and entry ages for every cache layer."""
    return orchestrator.cache.stats()


@router.get(
    "/rate-limits/{operation}/{dimension}/{identity}", response_model=RateLimitStatusResponse
)
def rate_limit_status(
    orchestrator: Orchestrator,
    operation: str = Path(..., description="job-fit, interview or cover-letter"),
    dimension: RateDimension = Path(..., description="per_user, per_ip or burst"),
    identity: str = Path(..., description="User id or client IP"),
):
    """Current standing of one window without counting a request."""
    try:
        result = orchestrator.rate_limit_status(operation, dimension, identity)
    except AnalysisError as error:
        return error_response(error)
    return RateLimitStatusResponse(
        operation=operation,
        dimension=dimension.value,
        identity=identity,
        allowed=result.allowed,
        remaining=result.remaining,
        limit=result.limit,
        reset_at=result.reset_at,
        retry_after_seconds=result.retry_after_seconds,
    )


@router.delete(
    "/rate-limits/{operation}/{dimension}/{identity}", response_model=RateLimitResetResponse
)
def reset_rate_limit(
    orchestrator: Orchestrator,
    operation: str = Path(..., description="job-fit, interview or cover-letter"),
    dimension: RateDimension = Path(..., description="per_user, per_ip or burst"),
    identity: str = Path(..., description="User id or client IP"),
):
    """Delete one window so the identity starts fresh (support override)."""
    try:
        removed = orchestrator.reset_rate_limit(operation, dimension, identity)
    except AnalysisError as error:
        return error_response(error)
    return RateLimitResetResponse(
        operation=operation, dimension=dimension.value, identity=identity, removed=removed
    )
