"""Index module - document store, indexer, dependency graph.

This module provides:
- Store: SQLite documents table with an FTS5 projection kept in sync by triggers
- Indexer: full and incremental indexing of a document tree
- Dependency extraction: reference statements resolved to repo-relative edges
- Graph traversal: forward/reverse reachability, entry points, leaf nodes

Internal implementations are in `docplane.index._internal/`.
"""

from docplane.index._internal.db import (
    CURRENT_SCHEMA_VERSION,
    BulkWriter,
    Database,
    get_schema_version,
    initialize_schema,
    table_exists,
)
from docplane.index._internal.discovery import find_documents
from docplane.index._internal.indexing import (
    DependencyGraph,
    DocumentIndexer,
    compute_file_hash,
    detect_document_type,
    extract_dependencies,
    find_entry_points,
    find_leaf_nodes,
    find_related,
    get_dependency_graph,
    get_forward_deps,
    get_reverse_deps,
    index_all_dependencies,
    index_directory,
    index_file,
    index_file_dependencies,
    index_incremental,
    parse_frontmatter,
    resolve_import_path,
)
from docplane.index.models import (
    Dependency,
    DependencyResult,
    Direction,
    Document,
    DocumentType,
    FanOutResult,
    ImportKind,
    IncrementalResult,
    IndexResult,
    RelatedFile,
    SearchResult,
)

__all__ = [
    # Store
    "Database",
    "BulkWriter",
    "CURRENT_SCHEMA_VERSION",
    "get_schema_version",
    "initialize_schema",
    "table_exists",
    # Indexer
    "DocumentIndexer",
    "find_documents",
    "compute_file_hash",
    "detect_document_type",
    "parse_frontmatter",
    "index_directory",
    "index_file",
    "index_incremental",
    # Dependencies
    "extract_dependencies",
    "resolve_import_path",
    "index_file_dependencies",
    "index_all_dependencies",
    # Graph
    "DependencyGraph",
    "get_forward_deps",
    "get_reverse_deps",
    "find_related",
    "find_entry_points",
    "find_leaf_nodes",
    "get_dependency_graph",
    # Models
    "Document",
    "Dependency",
    "DocumentType",
    "ImportKind",
    "Direction",
    "SearchResult",
    "FanOutResult",
    "RelatedFile",
    "IndexResult",
    "IncrementalResult",
    "DependencyResult",
]
