"""DocPlane error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Index
- 4xxx: Search
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002

    # Index (3xxx)
    EXTRACTION_READ_FAILED = 3001
    EXTRACTION_PARSE_FAILED = 3002
    EXTRACTION_UNKNOWN_DOCUMENT = 3003

    # Search (4xxx)
    VALIDATION_INVALID_FIELD_PATH = 4001
    VALIDATION_UNSUPPORTED_FILTER = 4002
    VALIDATION_INVALID_VALUE = 4003
    QUERY_SYNTAX_ERROR = 4101
    STRATEGY_FAILED = 4201
    STRATEGY_TIMEOUT = 4202

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(eq=False)
class DocPlaneError(Exception):
    """Base error with structured context for CLI and JSON responses.

    Not frozen: the interpreter assigns __traceback__ and __context__ while
    the error unwinds through context managers.
    """

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'QUERY_SYNTAX_ERROR')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(DocPlaneError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


class ValidationError(DocPlaneError):
    """Malformed or unsafe query input. Always surfaced to the caller."""

    @classmethod
    def invalid_field_path(cls, path: str) -> "ValidationError":
        return cls(
            code=ErrorCode.VALIDATION_INVALID_FIELD_PATH,
            message=(
                f"Invalid field path: {path!r}. Only alphanumeric characters, "
                "underscores, and dots are allowed."
            ),
            details={"path": path},
        )

    @classmethod
    def unsupported_filter(cls, key: str) -> "ValidationError":
        return cls(
            code=ErrorCode.VALIDATION_UNSUPPORTED_FILTER,
            message=f"Unsupported filter key: {key!r}. Use 'type' or 'frontmatter.<path>'.",
            details={"key": key},
        )

    @classmethod
    def invalid_value(cls, name: str, value: Any, reason: str) -> "ValidationError":
        return cls(
            code=ErrorCode.VALIDATION_INVALID_VALUE,
            message=f"Invalid value for '{name}': {reason}",
            details={"name": name, "value": repr(value), "reason": reason},
        )


class ExtractionError(DocPlaneError):
    """A single file failed to read or parse during indexing."""

    @classmethod
    def read_failed(cls, path: str, reason: str) -> "ExtractionError":
        return cls(
            code=ErrorCode.EXTRACTION_READ_FAILED,
            message=f"{path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def parse_failed(cls, path: str, reason: str) -> "ExtractionError":
        return cls(
            code=ErrorCode.EXTRACTION_PARSE_FAILED,
            message=f"{path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def unknown_document(cls, path: str) -> "ExtractionError":
        return cls(
            code=ErrorCode.EXTRACTION_UNKNOWN_DOCUMENT,
            message=f"{path}: not an indexed document",
            details={"path": path},
        )


class QuerySyntaxError(DocPlaneError):
    """Malformed full-text query syntax."""

    @classmethod
    def malformed(cls, query: str, reason: str) -> "QuerySyntaxError":
        return cls(
            code=ErrorCode.QUERY_SYNTAX_ERROR,
            message=f"Malformed full-text query {query!r}: {reason}",
            details={"query": query, "reason": reason},
        )


class StrategyFailure(DocPlaneError):
    """A fan-out search strategy raised or timed out."""

    @classmethod
    def failed(cls, strategy: str, reason: str) -> "StrategyFailure":
        return cls(
            code=ErrorCode.STRATEGY_FAILED,
            message=f"Search strategy '{strategy}' failed: {reason}",
            details={"strategy": strategy, "reason": reason},
        )

    @classmethod
    def timed_out(cls, strategy: str, timeout_sec: float) -> "StrategyFailure":
        return cls(
            code=ErrorCode.STRATEGY_TIMEOUT,
            message=f"Search strategy '{strategy}' timed out after {timeout_sec}s",
            retryable=True,
            details={"strategy": strategy, "timeout_sec": timeout_sec},
        )


class InternalError(DocPlaneError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
