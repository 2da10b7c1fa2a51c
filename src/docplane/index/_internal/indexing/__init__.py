"""Indexing layers: document extraction, dependency edges, graph traversal."""

from docplane.index._internal.indexing.dependencies import (
    ExtractedDependency,
    extract_dependencies,
    index_all_dependencies,
    index_file_dependencies,
    replace_file_dependencies,
    resolve_import_path,
)
from docplane.index._internal.indexing.documents import (
    DocumentIndexer,
    ExtractionResult,
    extract_document,
    index_directory,
    index_file,
    index_incremental,
)
from docplane.index._internal.indexing.frontmatter import (
    ParsedDocument,
    compute_file_hash,
    detect_document_type,
    parse_frontmatter,
)
from docplane.index._internal.indexing.graph import (
    DependencyGraph,
    find_entry_points,
    find_leaf_nodes,
    find_related,
    get_dependency_graph,
    get_forward_deps,
    get_reverse_deps,
)

__all__ = [
    # Documents
    "DocumentIndexer",
    "ExtractionResult",
    "extract_document",
    "index_directory",
    "index_file",
    "index_incremental",
    # Frontmatter
    "ParsedDocument",
    "compute_file_hash",
    "detect_document_type",
    "parse_frontmatter",
    # Dependencies
    "ExtractedDependency",
    "extract_dependencies",
    "index_all_dependencies",
    "index_file_dependencies",
    "replace_file_dependencies",
    "resolve_import_path",
    # Graph
    "DependencyGraph",
    "find_entry_points",
    "find_leaf_nodes",
    "find_related",
    "get_dependency_graph",
    "get_forward_deps",
    "get_reverse_deps",
]
