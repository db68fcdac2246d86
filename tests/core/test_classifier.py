"""Tests for analysis_spine.core.classifier."""

from __future__ import annotations

import errno
from types import SimpleNamespace

import pytest

from analysis_spine.core.classifier import (
    classify,
    error_summary,
    extract_status,
    kind_from_status,
    kind_from_text,
    should_notify_user,
)
from analysis_spine.core.errors import AnalysisError, ErrorKind, UpstreamHTTPError
from analysis_spine.execution.timeout import TimeoutExpired


class TestStatusClassification:
    @pytest.mark.parametrize(
        "status, kind",
        [
            (401, ErrorKind.AUTH),
            (403, ErrorKind.AUTH),
            (400, ErrorKind.VALIDATION),
            (404, ErrorKind.VALIDATION),
            (422, ErrorKind.VALIDATION),
            (429, ErrorKind.VALIDATION),
            (500, ErrorKind.SERVER),
            (503, ErrorKind.SERVER),
            (302, ErrorKind.UNKNOWN),
        ],
    )
    def test_kind_from_status(self, status, kind):
        assert kind_from_status(status) is kind
        assert classify(UpstreamHTTPError(status)).kind is kind

    def test_status_code_kept(self):
        err = classify(UpstreamHTTPError(503, "Service Unavailable"))
        assert err.status_code == 503
        assert err.retryable is True

    def test_status_attribute_on_arbitrary_object(self):
        assert classify(SimpleNamespace(status=401)).kind is ErrorKind.AUTH

    def test_response_status_code(self):
        exc = RuntimeError("bad gateway")
        exc.response = SimpleNamespace(status_code=502)  # type: ignore[attr-defined]
        assert extract_status(exc) == 502
        assert classify(exc).kind is ErrorKind.SERVER

    def test_bool_is_not_a_status(self):
        assert extract_status(SimpleNamespace(status=True)) is None


class TestTransportFailures:
    def test_timeout_error(self):
        assert classify(TimeoutError()).kind is ErrorKind.NETWORK

    def test_timeout_expired(self):
        err = classify(TimeoutExpired(30.0, operation="job-fit"))
        assert err.kind is ErrorKind.NETWORK
        assert err.retryable is True

    def test_connection_error(self):
        assert classify(ConnectionRefusedError("refused")).kind is ErrorKind.NETWORK

    def test_oserror_with_retryable_errno(self):
        exc = OSError(errno.ECONNRESET, "reset")
        assert classify(exc).kind is ErrorKind.NETWORK

    def test_oserror_with_node_style_code(self):
        exc = OSError("getaddrinfo failed")
        exc.code = "ENOTFOUND"  # type: ignore[attr-defined]
        assert classify(exc).kind is ErrorKind.NETWORK


class TestTextClassification:
    @pytest.mark.parametrize(
        "text, kind",
        [
            ("Failed to fetch", ErrorKind.NETWORK),
            ("Network request failed", ErrorKind.NETWORK),
            ("Request timeout", ErrorKind.NETWORK),
            ("Connection refused", ErrorKind.NETWORK),
            ("Unauthorized", ErrorKind.AUTH),
            ("Invalid token", ErrorKind.AUTH),
            ("Field is required", ErrorKind.VALIDATION),
            ("Invalid response format", ErrorKind.VALIDATION),
            ("Something exploded", ErrorKind.SERVER),
        ],
    )
    def test_exception_messages(self, text, kind):
        assert kind_from_text(text) is kind
        assert classify(RuntimeError(text)).kind is kind

    def test_network_markers_win_over_auth(self):
        assert classify(RuntimeError("auth service connection lost")).kind is ErrorKind.NETWORK

    def test_plain_string(self):
        assert classify("Failed to fetch").kind is ErrorKind.NETWORK
        assert classify("boom").kind is ErrorKind.SERVER


class TestFallbacks:
    @pytest.mark.parametrize("raw", [None, 42, object(), {"error": "x"}])
    def test_unknown(self, raw):
        err = classify(raw)
        assert err.kind is ErrorKind.UNKNOWN
        assert err.retryable is False

    def test_already_classified_passthrough(self):
        original = AnalysisError(ErrorKind.AUTH, details="expired session")
        assert classify(original) is original

    def test_context_appended_to_details(self):
        err = classify(RuntimeError("boom"), context="Analysis API: job-fit")
        assert err.details == "boom | Context: Analysis API: job-fit"

    def test_context_without_text(self):
        err = classify(None, context="x")
        assert err.details.endswith("Context: x")


class Unprintable(Exception):
    def __str__(self):
        raise RuntimeError("cannot render")


class ExplodingStatus:
    @property
    def status_code(self):
        raise KeyError("status_code")


class ExplodingResponseError(Exception):
    @property
    def response(self):
        raise RuntimeError("response already closed")


class TestHostileInputs:
    def test_unprintable_exception(self):
        err = classify(Unprintable(), context="Analysis API: interview")
        assert err.kind is ErrorKind.SERVER
        assert err.details == "Unprintable | Context: Analysis API: interview"

    def test_unprintable_exception_with_status(self):
        raw = Unprintable()
        raw.status_code = 503
        err = classify(raw)
        assert err.kind is ErrorKind.SERVER
        assert err.status_code == 503
        assert err.details == "Unprintable"

    def test_raising_status_property(self):
        assert extract_status(ExplodingStatus()) is None
        assert classify(ExplodingStatus()).kind is ErrorKind.UNKNOWN

    def test_raising_response_property(self):
        err = classify(ExplodingResponseError("upstream hiccup"))
        assert err.kind is ErrorKind.SERVER
        assert err.details == "upstream hiccup"


class TestDeterminism:
    @pytest.mark.parametrize(
        "raw",
        [
            UpstreamHTTPError(500),
            TimeoutError(),
            RuntimeError("Invalid input"),
            "Unauthorized",
            None,
        ],
    )
    def test_same_input_same_classification(self, raw):
        results = {(classify(raw).kind, classify(raw).retryable) for _ in range(20)}
        assert len(results) == 1


class TestNotificationAndSummary:
    @pytest.mark.parametrize(
        "kind, expected",
        [
            (ErrorKind.VALIDATION, True),
            (ErrorKind.AUTH, True),
            (ErrorKind.SERVER, True),
            (ErrorKind.RATE_LIMITED, True),
            (ErrorKind.NETWORK, False),
            (ErrorKind.UNKNOWN, False),
        ],
    )
    def test_should_notify_user(self, kind, expected):
        assert should_notify_user(AnalysisError(kind)) is expected

    def test_error_summary(self):
        err = AnalysisError(ErrorKind.SERVER, details="HTTP 500")
        summary = error_summary(err, "job-fit")
        assert summary.startswith("Type: server | Message: ")
        assert "Retryable: True" in summary
        assert "Details: HTTP 500" in summary
        assert summary.endswith("Context: job-fit")
