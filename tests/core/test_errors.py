"""Tests for analysis_spine.core.errors — taxonomy, messages, serialisation."""

from __future__ import annotations

import pytest

from analysis_spine.core.errors import (
    ERROR_MESSAGES,
    AnalysisError,
    AnalysisSpineError,
    ConfigError,
    ErrorKind,
    StorageError,
    UpstreamHTTPError,
    is_retryable_kind,
)


class TestErrorKind:
    """Retry semantics are a pure function of the kind."""

    @pytest.mark.parametrize(
        "kind, retryable",
        [
            (ErrorKind.NETWORK, True),
            (ErrorKind.SERVER, True),
            (ErrorKind.RATE_LIMITED, True),
            (ErrorKind.AUTH, False),
            (ErrorKind.VALIDATION, False),
            (ErrorKind.UNKNOWN, False),
        ],
    )
    def test_retryable_by_kind(self, kind, retryable):
        assert is_retryable_kind(kind) is retryable
        assert AnalysisError(kind).retryable is retryable

    def test_every_kind_has_a_message(self):
        assert set(ERROR_MESSAGES) == set(ErrorKind)

    def test_string_values(self):
        assert ErrorKind("rate_limited") is ErrorKind.RATE_LIMITED
        assert ErrorKind.NETWORK.value == "network"


class TestAnalysisError:
    def test_default_message_from_kind(self):
        err = AnalysisError(ErrorKind.SERVER, details="HTTP 503")
        assert err.message == "Server error. Our team has been notified. Please try again later."
        assert str(err) == err.message

    def test_explicit_message_wins(self):
        err = AnalysisError(ErrorKind.VALIDATION, "Company name is required")
        assert err.message == "Company name is required"

    def test_kind_accepts_string(self):
        assert AnalysisError("auth").kind is ErrorKind.AUTH

    def test_retryable_is_read_only(self):
        err = AnalysisError(ErrorKind.NETWORK)
        with pytest.raises(AttributeError):
            err.retryable = False  # type: ignore[misc]

    def test_to_dict_hides_details(self):
        err = AnalysisError(ErrorKind.NETWORK, details="ECONNRESET at 10.0.0.1", status_code=None)
        data = err.to_dict()
        assert data == {
            "kind": "network",
            "message": ERROR_MESSAGES[ErrorKind.NETWORK],
            "retryable": True,
        }
        assert "details" not in data

    def test_to_dict_includes_rate_limit_fields(self):
        err = AnalysisError(ErrorKind.RATE_LIMITED, reset_at=1234.5, retry_after_seconds=7)
        data = err.to_dict()
        assert data["reset_at"] == 1234.5
        assert data["retry_after_seconds"] == 7

    def test_to_log_dict_includes_diagnostics(self):
        cause = ConnectionResetError("peer reset")
        try:
            raise AnalysisError(ErrorKind.NETWORK, details="peer reset", status_code=None) from cause
        except AnalysisError as err:
            data = err.to_log_dict()
        assert data["details"] == "peer reset"
        assert "ConnectionResetError" in data["cause"]

    def test_equality_by_value(self):
        a = AnalysisError(ErrorKind.SERVER, details="x", status_code=500)
        b = AnalysisError(ErrorKind.SERVER, details="x", status_code=500)
        assert a == b
        assert hash(a) == hash(b)
        assert a != AnalysisError(ErrorKind.SERVER, details="y", status_code=500)

    def test_hierarchy(self):
        assert issubclass(AnalysisError, AnalysisSpineError)
        assert issubclass(UpstreamHTTPError, AnalysisSpineError)
        assert issubclass(StorageError, AnalysisSpineError)
        assert issubclass(ConfigError, AnalysisSpineError)


class TestUpstreamHTTPError:
    def test_default_message(self):
        err = UpstreamHTTPError(502)
        assert err.status_code == 502
        assert "502" in str(err)


class TestConfigError:
    def test_message_names_key(self):
        err = ConfigError("per_user_limit", 0)
        assert err.key == "per_user_limit"
        assert "per_user_limit" in str(err)
