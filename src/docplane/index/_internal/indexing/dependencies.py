"""Dependency extraction: reference statements to directed edges.

Recognized syntaxes (pattern-matched, no parsing):

1. Static imports        ``import x from './y'``, ``import './y'``
2. Re-exports            ``export { x } from './y'``
3. Dynamic imports       ``import('./y')``
4. Require calls         ``require('./y')``
5. Markdown links        ``[text](./y.md)``, ``[text](y.mdc#section)``

Edges for a file are always replaced wholesale, never merged, so a removed
reference cannot leave a stale edge behind.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from sqlmodel import select

from docplane.core.errors import ExtractionError
from docplane.index.models import Dependency, DependencyResult, Document, ImportKind

if TYPE_CHECKING:
    from docplane.index._internal.db.database import BulkWriter, Database

logger = structlog.get_logger()

_PATTERNS: tuple[tuple[re.Pattern[str], ImportKind], ...] = (
    (
        re.compile(r"""\bimport\s+(?:[\w*{}\s,$]+\s+from\s+)?['"]([^'"\n]+)['"]"""),
        ImportKind.IMPORT,
    ),
    (
        re.compile(r"""\bexport\s+(?:[\w*{}\s,$]+\s+)?from\s+['"]([^'"\n]+)['"]"""),
        ImportKind.RE_EXPORT,
    ),
    (
        re.compile(r"""\bimport\s*\(\s*['"]([^'"\n]+)['"]\s*\)"""),
        ImportKind.DYNAMIC_IMPORT,
    ),
    (
        re.compile(r"""\brequire\s*\(\s*['"]([^'"\n]+)['"]\s*\)"""),
        ImportKind.REQUIRE,
    ),
    (
        re.compile(r"""\[[^\]\n]*\]\(([^)\s]+\.mdc?(?:#[^)\s]*)?)(?:\s+"[^"\n]*")?\)"""),
        ImportKind.REFERENCE,
    ),
)

# Probed in order when a specifier omits its extension
PROBE_EXTENSIONS = (".js", ".mjs", ".cjs", ".ts", ".jsx", ".tsx", ".md", ".mdc")
DOCUMENT_EXTENSIONS = (".md", ".mdc")

_URL_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")


@dataclass(frozen=True)
class ExtractedDependency:
    """A reference found in document content."""

    source: str  # specifier as written
    import_kind: ImportKind
    line: int  # 1-based
    raw_text: str


def extract_dependencies(content: str) -> list[ExtractedDependency]:
    """Find every recognized reference, ordered by position in content."""
    found: list[tuple[int, ExtractedDependency]] = []
    for pattern, kind in _PATTERNS:
        for match in pattern.finditer(content):
            offset = match.start()
            found.append(
                (
                    offset,
                    ExtractedDependency(
                        source=match.group(1),
                        import_kind=kind,
                        line=content.count("\n", 0, offset) + 1,
                        raw_text=match.group(0),
                    ),
                )
            )
    found.sort(key=lambda item: item[0])
    return [dep for _, dep in found]


def _is_local(specifier: str) -> bool:
    if specifier.startswith(("./", "../", "/")):
        return True
    # Markdown links are relative without a ./ prefix
    return specifier.lower().endswith(DOCUMENT_EXTENSIONS)


def resolve_import_path(import_path: str, from_file: str, root_dir: Path | str) -> str | None:
    """Resolve a reference to a repo-relative path of an existing file.

    Returns None for package names, URLs, anchors, paths escaping the root
    (lexically or through a symlink), and targets that do not exist.
    """
    specifier = import_path.split("#", 1)[0].split("?", 1)[0].strip()
    if not specifier or _URL_SCHEME.match(specifier) or not _is_local(specifier):
        return None

    if specifier.startswith("/"):
        target = posixpath.normpath(specifier.lstrip("/"))
    else:
        from_dir = posixpath.dirname(from_file.replace("\\", "/"))
        target = posixpath.normpath(posixpath.join(from_dir, specifier))
    if target == ".." or target.startswith("../") or target == ".":
        return None

    root = Path(root_dir).resolve()
    candidates = [target]
    candidates.extend(f"{target}{ext}" for ext in PROBE_EXTENSIONS)
    candidates.extend(f"{target}/index{ext}" for ext in PROBE_EXTENSIONS)
    for candidate in candidates:
        path = root / candidate
        if path.is_file() and path.resolve().is_relative_to(root):
            return candidate
    return None


def _build_records(
    from_path: str,
    content: str,
    root_dir: Path | str,
    retain_external: bool,
) -> list[dict[str, object]]:
    records: list[dict[str, object]] = []
    seen: set[tuple[str, str]] = set()
    for dep in extract_dependencies(content):
        to_path = resolve_import_path(dep.source, from_path, root_dir)
        if to_path is None:
            if not retain_external:
                continue
            to_path = dep.source
        key = (to_path, dep.import_kind.value)
        if to_path == from_path or key in seen:
            continue
        seen.add(key)
        records.append(
            {
                "from_path": from_path,
                "to_path": to_path,
                "import_kind": dep.import_kind.value,
                "line_number": dep.line,
                "raw_text": dep.raw_text,
            }
        )
    return records


def replace_file_dependencies(
    writer: BulkWriter,
    from_path: str,
    content: str,
    root_dir: Path | str,
    *,
    retain_external: bool = False,
) -> int:
    """Replace all outgoing edges of from_path inside an open write batch."""
    records = _build_records(from_path, content, root_dir, retain_external)
    writer.delete_where(Dependency, "from_path = :from_path", {"from_path": from_path})
    return writer.insert_many(Dependency, records)


def index_file_dependencies(
    db: Database,
    file_path: str,
    content: str,
    root_dir: Path | str,
    *,
    retain_external: bool = False,
) -> int:
    """Extract, resolve and store the outgoing edges of one indexed document.

    Raises:
        ExtractionError: file_path is not an indexed document.
    """
    if not db.execute_raw("SELECT 1 FROM documents WHERE path = :path", {"path": file_path}):
        raise ExtractionError.unknown_document(file_path)
    with db.bulk_writer() as writer:
        count = replace_file_dependencies(
            writer, file_path, content, root_dir, retain_external=retain_external
        )
    logger.debug("file_dependencies_indexed", path=file_path, edges=count)
    return count


def index_all_dependencies(
    db: Database,
    root_dir: Path | str,
    *,
    retain_external: bool = False,
) -> DependencyResult:
    """Recompute edges for every indexed document from its file on disk.

    A file that cannot be read is recorded in ``errors`` and keeps no
    outgoing edges; the batch continues.
    """
    root = Path(root_dir)
    with db.session() as session:
        paths = list(session.exec(select(Document.path).order_by(Document.path)).all())

    result = DependencyResult(files=len(paths))
    with db.bulk_writer() as writer:
        for path in paths:
            try:
                content = (root / path).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                error = ExtractionError.read_failed(path, str(e))
                logger.warning("dependency_extraction_failed", path=path, error=str(e))
                result.errors.append(error.message)
                writer.delete_where(Dependency, "from_path = :from_path", {"from_path": path})
                continue
            result.indexed += replace_file_dependencies(
                writer, path, content, root, retain_external=retain_external
            )

    logger.info(
        "dependencies_indexed",
        files=result.files,
        edges=result.indexed,
        errors=len(result.errors),
    )
    return result
