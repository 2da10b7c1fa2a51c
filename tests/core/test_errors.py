"""Tests for error types and codes."""

import pytest

from docplane.core.errors import (
    ConfigError,
    DocPlaneError,
    ErrorCode,
    ExtractionError,
    InternalError,
    QuerySyntaxError,
    StrategyFailure,
    ValidationError,
)


class TestErrorCode:
    """Error code value tests."""

    @pytest.mark.parametrize(
        ("code", "expected_range"),
        [
            (ErrorCode.CONFIG_PARSE_ERROR, 2000),
            (ErrorCode.CONFIG_INVALID_VALUE, 2000),
            (ErrorCode.EXTRACTION_READ_FAILED, 3000),
            (ErrorCode.EXTRACTION_UNKNOWN_DOCUMENT, 3000),
            (ErrorCode.VALIDATION_INVALID_FIELD_PATH, 4000),
            (ErrorCode.QUERY_SYNTAX_ERROR, 4000),
            (ErrorCode.STRATEGY_TIMEOUT, 4000),
            (ErrorCode.INTERNAL_ERROR, 9000),
        ],
    )
    def test_given_error_code_when_checked_then_in_correct_range(
        self, code: ErrorCode, expected_range: int
    ) -> None:
        """Error codes fall within their designated numeric range."""
        assert expected_range <= code.value < expected_range + 1000

    def test_codes_are_unique(self) -> None:
        """No two error names share a numeric code."""
        values = [code.value for code in ErrorCode]
        assert len(values) == len(set(values))


class TestDocPlaneError:
    """Base error behavior tests."""

    def test_given_error_when_to_dict_then_serializes_all_fields(self) -> None:
        """Error serializes to dict with all required fields."""
        error = DocPlaneError(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message="Test message",
            retryable=True,
            details={"key": "value"},
        )

        assert error.to_dict() == {
            "code": 2001,
            "error": "CONFIG_PARSE_ERROR",
            "message": "Test message",
            "retryable": True,
            "details": {"key": "value"},
        }

    def test_given_error_when_str_then_includes_code_and_name(self) -> None:
        """String form is '[code] NAME: message'."""
        error = DocPlaneError(code=ErrorCode.INTERNAL_ERROR, message="boom")
        assert str(error) == "[9001] INTERNAL_ERROR: boom"

    def test_given_error_when_raised_then_catchable_as_exception(self) -> None:
        """Errors are real exceptions and keep their fields when caught."""
        with pytest.raises(DocPlaneError) as exc_info:
            raise ValidationError.invalid_field_path("bad'path")

        assert exc_info.value.code == ErrorCode.VALIDATION_INVALID_FIELD_PATH
        assert exc_info.value.details == {"path": "bad'path"}

    def test_defaults(self) -> None:
        """retryable defaults to False and details to an empty dict."""
        error = DocPlaneError(code=ErrorCode.INTERNAL_ERROR, message="x")
        assert error.retryable is False
        assert error.details == {}


class TestValidationError:
    """ValidationError factory tests."""

    def test_invalid_field_path_names_offending_path(self) -> None:
        error = ValidationError.invalid_field_path("x'); --")
        assert error.code == ErrorCode.VALIDATION_INVALID_FIELD_PATH
        assert "x'); --" in error.message
        assert error.details["path"] == "x'); --"

    def test_unsupported_filter(self) -> None:
        error = ValidationError.unsupported_filter("title")
        assert error.code == ErrorCode.VALIDATION_UNSUPPORTED_FILTER
        assert error.details == {"key": "title"}

    def test_invalid_value(self) -> None:
        error = ValidationError.invalid_value("limit", -1, "must be >= 0")
        assert error.code == ErrorCode.VALIDATION_INVALID_VALUE
        assert error.details["value"] == "-1"


class TestExtractionError:
    """ExtractionError factory tests."""

    def test_read_failed_message_is_path_prefixed(self) -> None:
        error = ExtractionError.read_failed("docs/a.md", "Permission denied")
        assert error.code == ErrorCode.EXTRACTION_READ_FAILED
        assert error.message == "docs/a.md: Permission denied"

    def test_parse_failed(self) -> None:
        error = ExtractionError.parse_failed("docs/a.md", "not UTF-8")
        assert error.code == ErrorCode.EXTRACTION_PARSE_FAILED
        assert error.message.startswith("docs/a.md: ")

    def test_unknown_document(self) -> None:
        error = ExtractionError.unknown_document("missing.md")
        assert error.code == ErrorCode.EXTRACTION_UNKNOWN_DOCUMENT
        assert error.details == {"path": "missing.md"}


class TestSearchErrors:
    """QuerySyntaxError and StrategyFailure factory tests."""

    def test_malformed_query_keeps_query_and_reason(self) -> None:
        error = QuerySyntaxError.malformed('"open', "unterminated string")
        assert error.code == ErrorCode.QUERY_SYNTAX_ERROR
        assert error.details == {"query": '"open', "reason": "unterminated string"}

    def test_strategy_failed_is_not_retryable(self) -> None:
        error = StrategyFailure.failed("fulltext", "boom")
        assert error.code == ErrorCode.STRATEGY_FAILED
        assert error.retryable is False

    def test_strategy_timeout_is_retryable(self) -> None:
        error = StrategyFailure.timed_out("metadata", 0.5)
        assert error.code == ErrorCode.STRATEGY_TIMEOUT
        assert error.retryable is True
        assert error.details["timeout_sec"] == 0.5


class TestConfigAndInternalErrors:
    """ConfigError and InternalError factory tests."""

    def test_parse_error(self) -> None:
        error = ConfigError.parse_error("/x/config.yaml", "bad indent")
        assert error.code == ErrorCode.CONFIG_PARSE_ERROR
        assert "/x/config.yaml" in error.message

    def test_invalid_value(self) -> None:
        error = ConfigError.invalid_value("index.max_workers", 0, "must be >= 1")
        assert error.code == ErrorCode.CONFIG_INVALID_VALUE
        assert error.details["field"] == "index.max_workers"

    def test_unexpected_carries_details(self) -> None:
        error = InternalError.unexpected("oops", where="indexer")
        assert error.code == ErrorCode.INTERNAL_ERROR
        assert error.details == {"where": "indexer"}
