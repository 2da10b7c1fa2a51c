"""Core module exports."""

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
from docplane.core.logging import configure_logging, get_logger

__all__ = [
    # Errors
    "DocPlaneError",
    "ErrorCode",
    "ConfigError",
    "ExtractionError",
    "InternalError",
    "QuerySyntaxError",
    "StrategyFailure",
    "ValidationError",
    # Logging
    "configure_logging",
    "get_logger",
]
