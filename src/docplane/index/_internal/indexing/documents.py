"""Document indexer: discover, extract and persist documents.

Two modes:

- Full: every discovered file is extracted and upserted.
- Incremental: stored content hashes are compared with disk; only changed
  files are written and documents whose file vanished are removed.

Extraction (read, hash, parse) runs on a thread pool. Every write of a
batch happens inside one bulk_writer transaction, so readers never observe
a half-applied batch. Per-file failures are collected, never raised.

Usage::

    indexer = DocumentIndexer(db, root)
    result = indexer.index_directory()
    diff = indexer.index_incremental()
"""

from __future__ import annotations

import json
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from sqlmodel import select

from docplane.config.models import IndexConfig
from docplane.core.errors import ExtractionError
from docplane.index._internal.discovery import find_documents, relative_posix
from docplane.index._internal.indexing.dependencies import replace_file_dependencies
from docplane.index._internal.indexing.frontmatter import (
    compute_file_hash,
    detect_document_type,
    parse_frontmatter,
)
from docplane.index.models import Document, IncrementalResult, IndexResult

if TYPE_CHECKING:
    from docplane.index._internal.db.database import BulkWriter, Database

logger = structlog.get_logger()

DOCUMENT_UPDATE_COLUMNS = [
    "document_type",
    "frontmatter",
    "content",
    "content_hash",
    "file_size",
    "modified_at",
    "indexed_at",
]


@dataclass
class ExtractionResult:
    """Extracted document fields for one file, or the reason it failed."""

    path: str
    document_type: str = ""
    frontmatter: str = "{}"
    content: str = ""
    raw_text: str = ""
    content_hash: str = ""
    file_size: int = 0
    modified_at: float = 0.0
    error: ExtractionError | None = None

    def to_record(self, indexed_at: float) -> dict[str, Any]:
        return {
            "path": self.path,
            "document_type": self.document_type,
            "frontmatter": self.frontmatter,
            "content": self.content,
            "content_hash": self.content_hash,
            "file_size": self.file_size,
            "modified_at": self.modified_at,
            "indexed_at": indexed_at,
        }


def extract_document(root: Path, file_path: Path) -> ExtractionResult:
    """Read, fingerprint and parse one file. Never raises for file errors."""
    rel_path = relative_posix(root, file_path)
    try:
        data = file_path.read_bytes()
        stat = file_path.stat()
    except OSError as e:
        return ExtractionResult(
            path=rel_path, error=ExtractionError.read_failed(rel_path, e.strerror or str(e))
        )

    try:
        raw_text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        return ExtractionResult(
            path=rel_path, error=ExtractionError.parse_failed(rel_path, f"not UTF-8: {e.reason}")
        )

    try:
        parsed = parse_frontmatter(raw_text)
        frontmatter = json.dumps(parsed.frontmatter, ensure_ascii=False)
    except Exception as e:
        return ExtractionResult(
            path=rel_path, error=ExtractionError.parse_failed(rel_path, str(e) or type(e).__name__)
        )

    return ExtractionResult(
        path=rel_path,
        document_type=detect_document_type(rel_path).value,
        frontmatter=frontmatter,
        content=parsed.content,
        raw_text=raw_text,
        content_hash=compute_file_hash(data),
        file_size=len(data),
        modified_at=stat.st_mtime,
    )


class DocumentIndexer:
    """Indexes a root directory into a Store.

    Dependency edges are (re)computed for written documents only when
    ``dependencies`` is set; otherwise existing edges are left as they are.
    """

    def __init__(
        self,
        db: Database,
        root: Path | str,
        config: IndexConfig | None = None,
        *,
        dependencies: bool = False,
    ) -> None:
        self.db = db
        self.root = Path(root)
        self.config = config or IndexConfig()
        self.dependencies = dependencies

    def extract_files(self, files: list[Path]) -> list[ExtractionResult]:
        """Extract files on the thread pool, returned in input order."""
        workers = self.config.max_workers
        if workers <= 1 or len(files) <= 1:
            return [extract_document(self.root, f) for f in files]

        results: dict[Path, ExtractionResult] = {}
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(extract_document, self.root, f): f for f in files}
            for future in as_completed(futures):
                results[futures[future]] = future.result()
        return [results[f] for f in files]

    def index_file(self, file_path: Path | str) -> ExtractionResult:
        """Index a single file immediately.

        Raises:
            ExtractionError: The file could not be read or decoded.
        """
        path = Path(file_path)
        if not path.is_absolute():
            path = self.root / path
        extraction = extract_document(self.root, path)
        if extraction.error is not None:
            raise extraction.error

        with self.db.bulk_writer() as writer:
            self._write(writer, [extraction])
        logger.debug("document_indexed", path=extraction.path)
        return extraction

    def index_directory(self) -> IndexResult:
        """Full index: upsert every discovered document."""
        start = time.monotonic()
        files = find_documents(self.root, self.config)
        extractions = self.extract_files(files)

        result = IndexResult()
        ok = self._collect(extractions, result.errors)
        with self.db.bulk_writer() as writer:
            result.indexed = self._write(writer, ok)

        logger.info(
            "index_directory_completed",
            root=str(self.root),
            indexed=result.indexed,
            errors=len(result.errors),
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        return result

    def index_incremental(self) -> IncrementalResult:
        """Incremental index: write changed documents, remove vanished ones.

        A file that exists but fails to read is reported in ``errors`` and
        keeps its stored row; only files absent from disk are deleted.
        """
        start = time.monotonic()
        with self.db.session() as session:
            stored = {
                path: content_hash
                for path, content_hash in session.exec(
                    select(Document.path, Document.content_hash)
                ).all()
            }

        files = find_documents(self.root, self.config)
        on_disk = {relative_posix(self.root, f) for f in files}
        extractions = self.extract_files(files)

        result = IncrementalResult()
        ok = self._collect(extractions, result.errors)
        changed = [e for e in ok if stored.get(e.path) != e.content_hash]
        vanished = sorted(path for path in stored if path not in on_disk)
        result.unchanged = len(ok) - len(changed)

        if changed or vanished:
            with self.db.bulk_writer() as writer:
                for path in vanished:
                    # Cascades to outgoing dependency edges
                    writer.delete_where(Document, "path = :path", {"path": path})
                result.deleted = len(vanished)
                result.updated = self._write(writer, changed)

        logger.info(
            "index_incremental_completed",
            root=str(self.root),
            updated=result.updated,
            deleted=result.deleted,
            unchanged=result.unchanged,
            errors=len(result.errors),
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        return result

    def _collect(
        self, extractions: list[ExtractionResult], errors: list[str]
    ) -> list[ExtractionResult]:
        ok: list[ExtractionResult] = []
        for extraction in extractions:
            if extraction.error is not None:
                logger.warning(
                    "document_extraction_failed",
                    path=extraction.path,
                    error=extraction.error.error_name,
                    reason=extraction.error.details.get("reason"),
                )
                errors.append(extraction.error.message)
                continue
            ok.append(extraction)
        return ok

    def _write(self, writer: BulkWriter, extractions: list[ExtractionResult]) -> int:
        indexed_at = time.time()
        count = writer.upsert_many(
            Document,
            [e.to_record(indexed_at) for e in extractions],
            conflict_columns=["path"],
            update_columns=DOCUMENT_UPDATE_COLUMNS,
        )
        if self.dependencies:
            for extraction in extractions:
                replace_file_dependencies(
                    writer,
                    extraction.path,
                    extraction.raw_text,
                    self.root,
                    retain_external=self.config.retain_external,
                )
        return count


def index_file(
    db: Database,
    file_path: Path | str,
    root: Path | str,
    config: IndexConfig | None = None,
    *,
    dependencies: bool = False,
) -> ExtractionResult:
    """Convenience wrapper around DocumentIndexer.index_file."""
    return DocumentIndexer(db, root, config, dependencies=dependencies).index_file(file_path)


def index_directory(
    db: Database,
    root: Path | str,
    config: IndexConfig | None = None,
    *,
    dependencies: bool = False,
) -> IndexResult:
    """Convenience wrapper around DocumentIndexer.index_directory."""
    return DocumentIndexer(db, root, config, dependencies=dependencies).index_directory()


def index_incremental(
    db: Database,
    root: Path | str,
    config: IndexConfig | None = None,
    *,
    dependencies: bool = False,
) -> IncrementalResult:
    """Convenience wrapper around DocumentIndexer.index_incremental."""
    return DocumentIndexer(db, root, config, dependencies=dependencies).index_incremental()
