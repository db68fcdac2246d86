"""Tests for analysis_spine.orchestration.operations — context validation."""

from __future__ import annotations

from dataclasses import replace

import pytest

from analysis_spine.core.errors import AnalysisError, ErrorKind
from analysis_spine.execution.rate_limit import RateDimension, WindowLimit
from analysis_spine.orchestration.operations import (
    DEFAULT_OPERATIONS,
    OperationSpec,
    validate_context,
)


class TestDefaultOperations:
    def test_known_kinds(self):
        assert set(DEFAULT_OPERATIONS) == {"job-fit", "interview", "cover-letter"}
        assert DEFAULT_OPERATIONS["job-fit"].requires_job_description is True
        assert DEFAULT_OPERATIONS["interview"].requires_job_description is False

    def test_per_operation_user_limits(self):
        assert DEFAULT_OPERATIONS["job-fit"].rate_limits == {}
        for kind in ("interview", "cover-letter"):
            assert DEFAULT_OPERATIONS[kind].rate_limits == {RateDimension.PER_USER: WindowLimit(3, 60.0)}


class TestValidateContext:
    def test_valid(self, context):
        assert validate_context("job-fit", context).kind == "job-fit"

    def test_unknown_operation(self, context):
        with pytest.raises(AnalysisError) as exc_info:
            validate_context("horoscope", context)
        assert exc_info.value.kind is ErrorKind.VALIDATION

    @pytest.mark.parametrize(
        "field, kind, message",
        [
            ("company", ErrorKind.VALIDATION, "Company name is required"),
            ("role", ErrorKind.VALIDATION, "Role title is required"),
            ("user_id", ErrorKind.AUTH, "User authentication required"),
            ("resource_id", ErrorKind.VALIDATION, "Application ID is required"),
        ],
    )
    @pytest.mark.parametrize("blank", [None, "", "   "])
    def test_missing_fields(self, context, field, kind, message, blank):
        with pytest.raises(AnalysisError) as exc_info:
            validate_context("interview", replace(context, **{field: blank}))
        assert exc_info.value.kind is kind
        assert exc_info.value.message == message
        assert exc_info.value.retryable is False

    def test_first_failure_wins(self, context):
        broken = replace(context, company="", user_id=None)
        with pytest.raises(AnalysisError) as exc_info:
            validate_context("interview", broken)
        assert exc_info.value.message == "Company name is required"

    def test_job_description_required_for_job_fit(self, context):
        no_jd = replace(context, job_description=None)
        with pytest.raises(AnalysisError) as exc_info:
            validate_context("job-fit", no_jd)
        assert exc_info.value.message == "Job description is required for this analysis"
        assert validate_context("interview", no_jd).kind == "interview"

    def test_custom_registry(self, context):
        registry = {"jobFit": OperationSpec("jobFit", "Job fit", requires_job_description=True)}
        assert validate_context("jobFit", context, registry).label == "Job fit"
        with pytest.raises(AnalysisError):
            validate_context("job-fit", context, registry)

    def test_context_to_dict(self, context):
        data = context.to_dict()
        assert data["user_id"] == "userA"
        assert data["extra"] == {}
