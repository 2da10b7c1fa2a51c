"""Versioned schema for the document index.

The Store is three durable tables (documents, dependencies, schema_version)
plus the ``fts_documents`` FTS5 table. The FTS5 table is a projection of
documents maintained exclusively by AFTER INSERT/UPDATE/DELETE triggers, so
every write to documents re-derives its full-text row inside the same
statement transaction. No application code writes fts_documents directly.

Trigger bodies key the projection on ``path`` rather than rowid: documents
has a TEXT primary key, so its implicit rowid is not stable across VACUUM.

Call initialize_schema() after opening a Database. It is idempotent.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import text
from sqlmodel import SQLModel

from docplane.core.errors import InternalError
from docplane.index.models import Dependency, Document, SchemaVersion

if TYPE_CHECKING:
    from sqlalchemy import Connection

    from docplane.index._internal.db.database import Database

logger = structlog.get_logger()

CURRENT_SCHEMA_VERSION = 1

FTS_TABLE = "fts_documents"

FTS_DDL = [
    f"""
    CREATE VIRTUAL TABLE IF NOT EXISTS {FTS_TABLE} USING fts5(
        path,
        frontmatter,
        content,
        tokenize='porter unicode61'
    )
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS fts_documents_insert AFTER INSERT ON documents BEGIN
        INSERT INTO {FTS_TABLE}(path, frontmatter, content)
        VALUES (NEW.path, NEW.frontmatter, NEW.content);
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS fts_documents_update AFTER UPDATE ON documents BEGIN
        DELETE FROM {FTS_TABLE} WHERE path = OLD.path;
        INSERT INTO {FTS_TABLE}(path, frontmatter, content)
        VALUES (NEW.path, NEW.frontmatter, NEW.content);
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS fts_documents_delete AFTER DELETE ON documents BEGIN
        DELETE FROM {FTS_TABLE} WHERE path = OLD.path;
    END
    """,
]

# Re-derive the projection from documents (covers stores created before the
# triggers existed).
FTS_REBUILD = [
    f"DELETE FROM {FTS_TABLE}",
    f"""
    INSERT INTO {FTS_TABLE}(path, frontmatter, content)
    SELECT path, frontmatter, content FROM documents
    """,
]


def _migrate_v1(conn: Connection) -> None:
    """Documents, dependencies, version marker and the full-text projection."""
    SQLModel.metadata.create_all(
        conn,
        tables=[
            Document.__table__,  # type: ignore[attr-defined]
            Dependency.__table__,  # type: ignore[attr-defined]
            SchemaVersion.__table__,  # type: ignore[attr-defined]
        ],
    )
    for ddl in FTS_DDL:
        conn.exec_driver_sql(ddl)
    for sql in FTS_REBUILD:
        conn.exec_driver_sql(sql)


MIGRATIONS: dict[int, Callable[[Connection], None]] = {
    1: _migrate_v1,
}


def table_exists(db: Database, table_name: str) -> bool:
    """Check whether a table (including virtual tables) exists."""
    rows = db.execute_raw(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name = :name",
        {"name": table_name},
    )
    return bool(rows)


def get_schema_version(db: Database) -> int:
    """Current schema version, or 0 when the marker table is absent."""
    if not table_exists(db, SchemaVersion.__tablename__):  # type: ignore[arg-type]
        return 0
    rows = db.execute_raw("SELECT MAX(version) FROM schema_version")
    return int(rows[0][0] or 0) if rows else 0


def initialize_schema(db: Database) -> bool:
    """Bring the store up to CURRENT_SCHEMA_VERSION.

    A current schema is a no-op. A stale or absent schema gets exactly the
    pending migrations, all inside one write transaction.

    Raises:
        InternalError: the store was written by a newer schema version.

    Returns:
        True if any migration was applied.
    """
    current = get_schema_version(db)
    if current > CURRENT_SCHEMA_VERSION:
        raise InternalError.unexpected(
            f"index schema version {current} is newer than supported version "
            f"{CURRENT_SCHEMA_VERSION}; rebuild the index",
            found=current,
            supported=CURRENT_SCHEMA_VERSION,
        )
    if current == CURRENT_SCHEMA_VERSION:
        return False

    pending = sorted(v for v in MIGRATIONS if v > current)
    with db.immediate_transaction() as session:
        conn = session.connection()
        for version in pending:
            MIGRATIONS[version](conn)
            conn.execute(
                text(
                    "INSERT OR REPLACE INTO schema_version (version, applied_at) "
                    "VALUES (:version, :applied_at)"
                ),
                {"version": version, "applied_at": time.time()},
            )

    logger.info("schema_initialized", from_version=current, to_version=pending[-1])
    return True
