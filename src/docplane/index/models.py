"""SQLModel definitions for the document index.

Single source of truth for the durable tables:
- documents: one row per indexed file (path is the identity)
- dependencies: directed reference edges between files
- schema_version: migration marker

The full-text projection (fts_documents) is an FTS5 virtual table kept in
sync by triggers; it has no model here and is created by
``docplane.index._internal.db.schema``.
"""

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Union

from sqlalchemy import Column, ForeignKey, String, UniqueConstraint
from sqlmodel import Field, SQLModel

# Semi-structured frontmatter value: string, number, boolean, null, list, or object
FrontmatterValue = Union[
    str, int, float, bool, None, list["FrontmatterValue"], dict[str, "FrontmatterValue"]
]


# ============================================================================
# ENUMS
# ============================================================================


class DocumentType(str, Enum):
    """Document classification derived from the repo-relative path."""

    RULE = "rule"
    COMMAND = "command"
    SKILL = "skill"
    TASK = "task"
    STORY_MAP = "story-map"
    OTHER = "other"


class ImportKind(str, Enum):
    """Reference syntax that produced a dependency edge."""

    IMPORT = "import"  # import x from './y'
    RE_EXPORT = "re-export"  # export { x } from './y'
    DYNAMIC_IMPORT = "dynamic-import"  # import('./y')
    REQUIRE = "require"  # require('./y')
    REFERENCE = "reference"  # [text](./y.md)


class Direction(str, Enum):
    """Graph traversal direction."""

    FORWARD = "forward"
    REVERSE = "reverse"
    BOTH = "both"


# ============================================================================
# TABLES
# ============================================================================


class Document(SQLModel, table=True):
    """Indexed document. The full-text projection mirrors this table."""

    __tablename__ = "documents"

    path: str = Field(primary_key=True)  # repo-relative, forward slashes
    document_type: str = Field(default=DocumentType.OTHER.value, index=True)
    frontmatter: str = Field(default="{}")  # JSON object
    content: str = Field(default="")  # body with frontmatter stripped
    content_hash: str = Field(index=True)  # sha3-256 of raw file bytes
    file_size: int | None = None
    modified_at: float | None = None  # file mtime, epoch seconds
    indexed_at: float | None = None

    def get_frontmatter(self) -> dict[str, Any]:
        """Parse the stored frontmatter JSON."""
        result: dict[str, Any] = json.loads(self.frontmatter or "{}")
        return result


class Dependency(SQLModel, table=True):
    """Directed edge from a document to a file it references."""

    __tablename__ = "dependencies"
    __table_args__ = (UniqueConstraint("from_path", "to_path", "import_kind"),)

    id: int | None = Field(default=None, primary_key=True)
    from_path: str = Field(
        sa_column=Column(
            String,
            ForeignKey("documents.path", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    to_path: str = Field(index=True)  # may name a file outside the indexed set
    import_kind: str = Field(default=ImportKind.IMPORT.value)
    line_number: int | None = None  # 1-based
    raw_text: str | None = None


class SchemaVersion(SQLModel, table=True):
    """Applied schema versions. The highest row is the current version."""

    __tablename__ = "schema_version"

    version: int = Field(primary_key=True)
    applied_at: float


# ============================================================================
# RESULT TYPES (not persisted)
# ============================================================================


@dataclass
class SearchResult:
    """Uniform result shape returned by every search strategy.

    ``score`` is higher-is-better for every strategy. Full-text search
    reports the negated FTS5 bm25 rank; metadata search reports 0.0.
    """

    path: str
    document_type: str
    frontmatter: dict[str, Any] = field(default_factory=dict)
    snippet: str | None = None
    score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class FanOutResult(SearchResult):
    """Merged fan-out result with explainability."""

    relevance_score: float = 0.0
    matched_strategies: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RelatedFile:
    """File reached by a dependency graph traversal."""

    path: str
    depth: int
    direction: Direction

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "depth": self.depth, "direction": self.direction.value}


@dataclass
class IndexResult:
    """Result of a full directory index."""

    indexed: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class IncrementalResult:
    """Result of an incremental (diff) index."""

    updated: int = 0
    deleted: int = 0
    unchanged: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def files_changed(self) -> int:
        """Total documents written or removed."""
        return self.updated + self.deleted


@dataclass
class DependencyResult:
    """Result of a dependency extraction batch."""

    indexed: int = 0  # edges written
    files: int = 0  # documents scanned
    errors: list[str] = field(default_factory=list)
