"""
Request and response schemas for the analysis API.

Context fields are optional at the schema level. A missing company or user id
is reported by the orchestrator with its own error kind and message, not as a
body-parsing failure.

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from analysis_spine.orchestration.operations import AnalysisContext


class AnalysisRequest(BaseModel):
    """Body of ``POST /analyses/{operation}``."""

    user_id: str | None = Field(default=None, description="Authenticated user identity")
    resource_id: str | None = Field(default=None, description="Application being analysed")
    company: str | None = Field(default=None, description="Company name")
    role: str | None = Field(default=None, description="Role title")
    job_description: str | None = Field(default=None, description="Job posting text")
    extra: dict[str, Any] = Field(default_factory=dict, description="Passed through to the provider")

    def to_context(self, client_ip: str | None = None) -> AnalysisContext:
        return AnalysisContext(
            user_id=self.user_id,
            resource_id=self.resource_id,
            company=self.company,
            role=self.role,
            job_description=self.job_description,
            client_ip=client_ip,
            extra=dict(self.extra),
        )


class ErrorBody(BaseModel):
    """Public view of a classified failure. Never carries diagnostics."""

    kind: str
    message: str
    retryable: bool
    reset_at: float | None = None
    retry_after_seconds: int | None = None


class ErrorResponse(BaseModel):
    error: ErrorBody


class AnalysisResponse(BaseModel):
    operation: str
    result: dict[str, Any]
    cached: bool = Field(description="Served from cache without an upstream call")
    attempts: int = Field(default=0, description="Upstream attempts made for this response")


class CachedResultResponse(BaseModel):
    operation: str
    user_id: str
    resource_id: str
    cached: bool


class InvalidateResponse(BaseModel):
    removed: int = Field(description="Cache keys removed")


class RateLimitResetResponse(BaseModel):
    operation: str
    dimension: str
    identity: str
    removed: bool


class RateLimitStatusResponse(BaseModel):
    operation: str
    dimension: str
    identity: str
    allowed: bool
    remaining: int
    limit: int
    reset_at: float
    retry_after_seconds: int | None = None


class HealthResponse(BaseModel):
    status: str = "healthy"
    service: str = "analysis-spine"
    version: str = ""
    pending_tasks: int = 0


__all__ = [
    "AnalysisRequest",
    "AnalysisResponse",
    "CachedResultResponse",
    "ErrorBody",
    "ErrorResponse",
    "HealthResponse",
    "InvalidateResponse",
    "RateLimitResetResponse",
    "RateLimitStatusResponse",
]
