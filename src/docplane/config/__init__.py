"""Config module exports."""

from docplane.config.loader import load_config, resolve_db_path
from docplane.config.models import (
    DatabaseConfig,
    DocPlaneConfig,
    GraphConfig,
    IndexConfig,
    LoggingConfig,
    SearchConfig,
)

__all__ = [
    "load_config",
    "resolve_db_path",
    "DocPlaneConfig",
    "DatabaseConfig",
    "GraphConfig",
    "IndexConfig",
    "LoggingConfig",
    "SearchConfig",
]
