"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (DOCPLANE__SECTION__KEY)
3. Repo YAML (.docplane/config.yaml)
4. Built-in defaults (this file)

Environment Variable Format:
    DOCPLANE__<SECTION>__<KEY>=<VALUE>

Examples:
    DOCPLANE__LOGGING__LEVEL=DEBUG
    DOCPLANE__SEARCH__DEFAULT_LIMIT=50
    DOCPLANE__GRAPH__DEFAULT_MAX_DEPTH=5
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        DOCPLANE__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG is verbose and may impact performance.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class IndexConfig(BaseModel):
    """Document discovery and extraction configuration.

    Env vars:
        DOCPLANE__INDEX__MAX_FILE_SIZE_MB: Skip files larger than this
        DOCPLANE__INDEX__MAX_WORKERS: Parallel read/hash/parse workers
    """

    extensions: list[str] = Field(
        default_factory=lambda: [".md", ".mdc"],
        description="File extensions (lowercase, with dot) that are indexed as documents.",
    )
    skip_directories: list[str] = Field(
        default_factory=lambda: ["node_modules", ".git", ".aidd", ".docplane", "dist", "build"],
        description="Directory names never descended into. Hidden directories are always skipped.",
    )
    excluded_names: list[str] = Field(
        default_factory=lambda: ["index.md"],
        description="File names excluded from indexing (generated listings).",
    )
    max_file_size_mb: int = Field(
        default=10,
        description="Skip files larger than this (MB).",
    )
    max_workers: int = Field(
        default=4,
        description="Threads used to read, hash and parse files. Writes stay serialized.",
    )
    retain_external: bool = Field(
        default=False,
        description="Keep dependency edges whose target cannot be resolved inside the root. "
        "The raw specifier is stored as the target path.",
    )

    @field_validator("extensions")
    @classmethod
    def normalize_extensions(cls, v: list[str]) -> list[str]:
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in v]

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_workers must be >= 1, got {v}")
        return v


class DatabaseConfig(BaseModel):
    """Database connection configuration.

    Env vars:
        DOCPLANE__DATABASE__PATH: Index database location (relative to the root)
        DOCPLANE__DATABASE__BUSY_TIMEOUT_MS: SQLite busy timeout
    """

    path: str = Field(
        default=".docplane/index.db",
        description="Index database file. Relative paths resolve against the indexed root.",
    )
    busy_timeout_ms: int = Field(
        default=30000,
        description="SQLite busy timeout (ms). How long to wait for locks.",
    )
    max_retries: int = Field(
        default=3,
        description="Max retry attempts for locked database errors.",
    )


class StrategyWeights(BaseModel):
    """Per-strategy fan-out weights. Full-text >= metadata >= semantic."""

    fulltext: float = 1.0
    metadata: float = 0.8
    semantic: float = 0.6

    def as_dict(self) -> dict[str, float]:
        return {"fulltext": self.fulltext, "metadata": self.metadata, "semantic": self.semantic}


class SearchConfig(BaseModel):
    """Search and fan-out configuration.

    Env vars:
        DOCPLANE__SEARCH__DEFAULT_LIMIT: Default number of results
        DOCPLANE__SEARCH__STRATEGY_TIMEOUT_SEC: Per-strategy fan-out timeout
    """

    default_limit: int = Field(default=20, description="Default search results.")
    candidate_multiplier: int = Field(
        default=2,
        description="Each fan-out strategy fetches limit * multiplier candidates before merging.",
    )
    strategy_timeout_sec: float | None = Field(
        default=5.0,
        description="A strategy slower than this is treated as failed. None disables the timeout.",
    )
    snippet_context_chars: int = Field(
        default=100,
        description="Characters of context on each side of the first match in snippets.",
    )
    weights: StrategyWeights = Field(default_factory=StrategyWeights)

    @field_validator("default_limit", "candidate_multiplier")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be >= 1, got {v}")
        return v


class GraphConfig(BaseModel):
    """Dependency graph traversal configuration.

    Env vars:
        DOCPLANE__GRAPH__DEFAULT_MAX_DEPTH: Default traversal depth
        DOCPLANE__GRAPH__INCLUDE_EXTERNAL: Follow edges to non-indexed targets
    """

    default_max_depth: int = Field(default=3, description="Default traversal depth.")
    include_external: bool = Field(
        default=False,
        description="Include edges whose target is not an indexed document.",
    )


class DocPlaneConfig(BaseModel):
    """Root configuration for DocPlane.

    All settings can be configured via:
    1. Environment variables: DOCPLANE__SECTION__KEY
    2. YAML config file (.docplane/config.yaml under the indexed root)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    graph: GraphConfig = Field(default_factory=GraphConfig)
