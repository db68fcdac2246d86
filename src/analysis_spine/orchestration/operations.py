"""Analysis operations and the request context they run against.

An *operation* is one kind of analysis (``job-fit``, ``interview``,
``cover-letter``). The orchestrator looks the requested kind up in a registry
of :class:`OperationSpec` and validates the :class:`AnalysisContext` before it
touches the cache or the rate limiter.

Validation order (first failure wins):

1. unknown operation                 → validation
2. missing company                   → validation "Company name is required"
3. missing role                      → validation "Role title is required"
4. missing user id                   → auth       "User authentication required"
5. missing resource (application) id → validation "Application ID is required"
6. missing job description where the operation needs one → validation

An operation may also carry its own rate limits: ``rate_limits`` overrides
the limiter's configured limit per dimension, inside that operation's scope.
Interview prep and cover letters allow 3 requests per user per minute; job
fit uses the configured per-user limit (5 per minute by default).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from typing import Any

from analysis_spine.core.errors import AnalysisError, ErrorKind
from analysis_spine.execution.rate_limit import RateDimension, WindowLimit


@dataclass(frozen=True)
class OperationSpec:
    """Static description of an analysis operation."""

    kind: str
    label: str
    requires_job_description: bool = False
    rate_limits: Mapping[RateDimension, WindowLimit] = field(default_factory=dict)


DEFAULT_OPERATIONS: dict[str, OperationSpec] = {
    spec.kind: spec
    for spec in (
        OperationSpec("job-fit", "Job Fit Analysis", requires_job_description=True),
        OperationSpec(
            "interview",
            "Interview Prep",
            rate_limits={RateDimension.PER_USER: WindowLimit(3, 60.0)},
        ),
        OperationSpec(
            "cover-letter",
            "Cover Letter",
            rate_limits={RateDimension.PER_USER: WindowLimit(3, 60.0)},
        ),
    )
}


@dataclass
class AnalysisContext:
    """Everything the upstream call needs for one request.

    ``resource_id`` is the subject of the analysis (an application id); the
    cache key is ``user_id:resource_id:operation``.
    """

    user_id: str | None
    resource_id: str | None
    company: str | None
    role: str | None
    job_description: str | None = None
    client_ip: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def validate_context(
    operation: str,
    context: AnalysisContext,
    operations: Mapping[str, OperationSpec] = DEFAULT_OPERATIONS,
) -> OperationSpec:
    """Return the operation's spec or raise a non-retryable :class:`AnalysisError`."""
    spec = operations.get(operation)
    if spec is None:
        raise AnalysisError(
            ErrorKind.VALIDATION,
            f"Unknown analysis type: {operation}",
            details=f"Known operations: {', '.join(sorted(operations))}",
        )

    if _blank(context.company):
        raise AnalysisError(
            ErrorKind.VALIDATION,
            "Company name is required",
            details="Missing or empty company field",
        )
    if _blank(context.role):
        raise AnalysisError(
            ErrorKind.VALIDATION,
            "Role title is required",
            details="Missing or empty role field",
        )
    if _blank(context.user_id):
        raise AnalysisError(
            ErrorKind.AUTH,
            "User authentication required",
            details="Missing user ID",
        )
    if _blank(context.resource_id):
        raise AnalysisError(
            ErrorKind.VALIDATION,
            "Application ID is required",
            details="Missing application ID",
        )
    if spec.requires_job_description and _blank(context.job_description):
        raise AnalysisError(
            ErrorKind.VALIDATION,
            "Job description is required for this analysis",
            details="Please add a job posting link to your application",
        )
    return spec


__all__ = [
    "DEFAULT_OPERATIONS",
    "AnalysisContext",
    "OperationSpec",
    "validate_context",
]
