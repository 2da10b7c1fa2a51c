"""Database layer for the index."""

from docplane.index._internal.db.database import BulkWriter, Database, is_database_locked_error
from docplane.index._internal.db.schema import (
    CURRENT_SCHEMA_VERSION,
    FTS_TABLE,
    get_schema_version,
    initialize_schema,
    table_exists,
)

__all__ = [
    "Database",
    "BulkWriter",
    "is_database_locked_error",
    "CURRENT_SCHEMA_VERSION",
    "FTS_TABLE",
    "get_schema_version",
    "initialize_schema",
    "table_exists",
]
