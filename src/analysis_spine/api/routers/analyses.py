"""
Analyses router — generate analyses and manage their cached results.

Endpoints:
    POST   /analyses/{operation}          Run (or serve from cache) one analysis
    GET    /analyses/{operation}/cached   Whether a fresh cached result exists
    DELETE /analyses/cache                Invalidate cached results for a resource

Manifesto:
    The router is a thin adapter: it turns the HTTP body into an
    ``AnalysisContext``, extracts the client IP, and maps the outcome's
    error kind to a status code. Every decision lives in the orchestrator.

Tags:
    analysis-spine, api, analyses, cache

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Response

from analysis_spine.api.deps import ClientIP, Orchestrator
from analysis_spine.api.errors import error_response
from analysis_spine.api.schemas import (
    AnalysisRequest,
    AnalysisResponse,
    CachedResultResponse,
    ErrorResponse,
    InvalidateResponse,
)
from analysis_spine.core.errors import AnalysisError, ErrorKind
from analysis_spine.core.logging import LogContext
from analysis_spine.execution.rate_limit import rate_limit_headers

router = APIRouter(prefix="/analyses")

_ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (401, 422, 429, 500, 502, 503)
}


@router.delete("/cache", response_model=InvalidateResponse)
def invalidate_cache(
    orchestrator: Orchestrator,
    user_id: str = Query(..., min_length=1, description="Owner of the cached results"),
    resource_id: str = Query(..., min_length=1, description="Application id"),
    operation: str | None = Query(None, description="Only this operation (default: all)"),
):
    """Drop cached results so the next request calls the provider again.

    Example:
        DELETE /api/v1/analyses/cache?user_id=userA&resource_id=job123&operation=job-fit

        Response:
        {"removed": 1}
    """
    return InvalidateResponse(removed=orchestrator.invalidate(user_id, resource_id, operation))


@router.post("/{operation}", response_model=AnalysisResponse, responses=_ERROR_RESPONSES)
async def generate_analysis(
    operation: str,
    body: AnalysisRequest,
    response: Response,
    orchestrator: Orchestrator,
    client_ip: ClientIP,
):
    """Run one analysis.

    Cached results are returned without consuming rate-limit budget. Errors
    come back as ``{"error": {"kind", "message", "retryable"}}`` with
    auth 401, validation 422, rate_limited 429, network 503, server 502,
    unknown 500. Rate-limited responses carry ``Retry-After``.

    Example:
        POST /api/v1/analyses/job-fit
        {"user_id": "userA", "resource_id": "job123", "company": "Acme",
         "role": "Engineer", "job_description": "..."}

        Response:
        {"operation": "job-fit", "result": {"score": 82}, "cached": false, "attempts": 1}
    """
    async with LogContext(operation=operation, client_ip=client_ip):
        outcome = await orchestrator.generate(operation, body.to_context(client_ip))
    if not outcome.ok:
        return error_response(outcome.error, outcome.rate_limit)

    if outcome.rate_limit is not None:
        response.headers.update(rate_limit_headers(outcome.rate_limit))
    return AnalysisResponse(
        operation=operation,
        result=outcome.value,
        cached=outcome.from_cache,
        attempts=outcome.attempts,
    )


@router.get(
    "/{operation}/cached",
    response_model=CachedResultResponse,
    responses={422: {"model": ErrorResponse}},
)
def has_cached_result(
    operation: str,
    orchestrator: Orchestrator,
    user_id: str = Query(..., min_length=1),
    resource_id: str = Query(..., min_length=1),
):
    """Whether a fresh cached result exists. Never calls the provider."""
    if operation not in orchestrator.operations:
        return error_response(
            AnalysisError(ErrorKind.VALIDATION, f"Unknown analysis type: {operation}")
        )
    return CachedResultResponse(
        operation=operation,
        user_id=user_id,
        resource_id=resource_id,
        cached=orchestrator.has_cached_result(user_id, resource_id, operation),
    )
