"""Database engine and bulk writer.

This module provides:
- Database: Connection manager with WAL mode for concurrent readers
- BulkWriter: Core SQL upserts/deletes for indexing batches
- Serialized write transactions (single-writer discipline)
- Retry logic for SQLite busy timeout handling

The hybrid pattern:
- Use ORM sessions for reads and low-volume writes
- Use BulkWriter for indexing batches (documents, dependency edges)
- Every write path holds the in-process write lock and BEGIN IMMEDIATE
"""

from __future__ import annotations

import threading
import time
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import event, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

if TYPE_CHECKING:
    from sqlalchemy import Connection, Engine

logger = structlog.get_logger()

MEMORY_PATH = ":memory:"

# Retry configuration for SQLite busy handling
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY = 0.1  # 100ms base
DEFAULT_RETRY_MAX_DELAY = 2.0  # 2s max
DEFAULT_BUSY_TIMEOUT_MS = 30000


def is_database_locked_error(error: Exception) -> bool:
    """Check if error is a SQLite database locked error."""
    error_str = str(error).lower()
    return "database is locked" in error_str or "database is busy" in error_str


class Database:
    """SQLite connection manager with WAL mode for concurrent access.

    Owns the engine for its whole lifetime; callers pass the Database
    handle into every indexing, search and graph function and call
    ``close()`` (or use it as a context manager) when done.

    Pass ``":memory:"`` for a private in-memory store; all sessions then
    share one connection.
    """

    def __init__(
        self,
        db_path: Path | str,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        retry_max_delay: float = DEFAULT_RETRY_MAX_DELAY,
    ) -> None:
        self.db_path = db_path if str(db_path) == MEMORY_PATH else Path(db_path)
        self._busy_timeout_ms = busy_timeout_ms
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay
        self._write_lock = threading.RLock()
        self.engine = self._create_engine()

    @property
    def is_memory(self) -> bool:
        return self.db_path == MEMORY_PATH

    def _create_engine(self) -> Engine:
        if self.is_memory:
            engine = create_engine(
                "sqlite://",
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            engine = create_engine(
                f"sqlite:///{self.db_path}",
                connect_args={"check_same_thread": False},
                pool_pre_ping=True,
            )
        busy_timeout_ms = self._busy_timeout_ms

        def _on_connect(dbapi_conn: Any, connection_record: Any) -> None:
            _configure_pragmas(dbapi_conn, connection_record, busy_timeout_ms)

        event.listen(engine, "connect", _on_connect)
        return engine

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Release all pooled connections. The handle is unusable afterwards."""
        self.engine.dispose()
        logger.debug("database_closed", db_path=str(self.db_path))

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """ORM session for reads and low-volume operations."""
        with Session(self.engine) as session:
            yield session

    @contextmanager
    def immediate_transaction(
        self,
        max_retries: int | None = None,
    ) -> Generator[Session, None, None]:
        """
        Session with BEGIN IMMEDIATE for serialized writes.

        BEGIN IMMEDIATE acquires a RESERVED lock immediately, blocking
        other writers but allowing WAL readers. Acquisition is retried with
        exponential backoff while SQLite reports the database as locked.

        The session auto-commits on successful exit and rolls back
        on exception.

        Args:
            max_retries: Override default max retries (default: 3)
        """
        with self._write_lock, Session(self.engine) as session:
            self._begin_immediate(session.connection(), max_retries)
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise

    @contextmanager
    def bulk_writer(self, max_retries: int | None = None) -> Generator[BulkWriter, None, None]:
        """
        Bulk writer for indexing batches.

        Holds the write lock for the whole batch. Auto-commits on
        successful exit, rolls back on exception.
        """
        with self._write_lock:
            writer = BulkWriter(self.engine)
            try:
                self._begin_immediate(writer.conn, max_retries)
                yield writer
                writer.commit()
            except Exception:
                writer.rollback()
                raise
            finally:
                writer.close()

    def _begin_immediate(self, conn: Connection, max_retries: int | None) -> None:
        retries = max_retries if max_retries is not None else self._max_retries
        for attempt in range(retries + 1):  # +1 for initial attempt
            try:
                conn.exec_driver_sql("BEGIN IMMEDIATE")
                return
            except OperationalError as e:
                if not is_database_locked_error(e) or attempt >= retries:
                    raise
                delay = min(self._retry_base_delay * (2**attempt), self._retry_max_delay)
                logger.warning(
                    "sqlite_busy_retry",
                    attempt=attempt + 1,
                    max_retries=retries,
                    delay_sec=delay,
                )
                time.sleep(delay)

    def execute_raw(self, sql: str, params: dict[str, Any] | None = None) -> list[Any]:
        """Execute raw SQL for ad-hoc reads and return all rows."""
        with self.engine.connect() as conn:
            return list(conn.execute(text(sql), params or {}))

    def checkpoint(self, mode: str = "PASSIVE") -> None:
        """Run WAL checkpoint.

        Args:
            mode: PASSIVE (default), FULL, RESTART, or TRUNCATE
        """
        valid_modes = {"PASSIVE", "FULL", "RESTART", "TRUNCATE"}
        if mode.upper() not in valid_modes:
            raise ValueError(f"Invalid checkpoint mode: {mode}. Must be one of {valid_modes}")

        with self.engine.connect() as conn:
            conn.execute(text(f"PRAGMA wal_checkpoint({mode.upper()})"))
            logger.debug("wal_checkpoint_completed", mode=mode)


def _configure_pragmas(dbapi_conn: Any, _connection_record: Any, busy_timeout_ms: int) -> None:
    """Configure SQLite for concurrent access and referential integrity."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
    cursor.execute("PRAGMA synchronous=NORMAL")  # Safe with WAL
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class BulkWriter:
    """Batch writes using Core SQL, bypassing ORM overhead."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self.conn = engine.connect()

    def insert_many(self, model_class: type[SQLModel], records: list[dict[str, Any]]) -> int:
        """Bulk insert records into table, returning count inserted."""
        if not records:
            return 0

        table = model_class.__table__  # type: ignore[attr-defined]
        self.conn.execute(table.insert(), records)
        return len(records)

    def upsert_many(
        self,
        model_class: type[SQLModel],
        records: list[dict[str, Any]],
        conflict_columns: list[str],
        update_columns: list[str],
    ) -> int:
        """Bulk upsert (insert or update on conflict), returning count processed.

        Uses ON CONFLICT DO UPDATE rather than INSERT OR REPLACE so that
        UPDATE triggers fire and the row keeps its rowid.
        """
        if not records:
            return 0

        table = model_class.__table__  # type: ignore[attr-defined]

        conflict_cols = ", ".join(conflict_columns)
        update_sets = ", ".join(f"{col} = excluded.{col}" for col in update_columns)

        columns = list(records[0].keys())
        col_names = ", ".join(columns)
        placeholders = ", ".join(f":{col}" for col in columns)

        sql = f"""
            INSERT INTO {table.name} ({col_names})
            VALUES ({placeholders})
            ON CONFLICT ({conflict_cols})
            DO UPDATE SET {update_sets}
        """

        for record in records:
            self.conn.execute(text(sql), record)

        return len(records)

    def delete_where(
        self,
        model_class: type[SQLModel],
        condition: str,
        params: dict[str, Any],
    ) -> int:
        """Bulk delete rows matching condition, returning count affected."""
        table = model_class.__table__  # type: ignore[attr-defined]
        sql = f"DELETE FROM {table.name} WHERE {condition}"
        result = self.conn.execute(text(sql), params)
        return int(result.rowcount)

    def commit(self) -> None:
        """Commit the current transaction."""
        self.conn.commit()

    def rollback(self) -> None:
        """Rollback the current transaction."""
        self.conn.rollback()

    def close(self) -> None:
        """Close the connection."""
        self.conn.close()
