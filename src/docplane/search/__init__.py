"""Search strategies and the fan-out aggregator."""

from docplane.search.fanout import (
    DEFAULT_REGISTRY,
    DEFAULT_STRATEGIES,
    DEFAULT_WEIGHTS,
    Strategy,
    StrategyRequest,
    aggregate_results,
    fan_out_search,
)
from docplane.search.fulltext import extract_snippet, highlight_matches, search_fulltext
from docplane.search.metadata import (
    get_document_types,
    get_field_values,
    search_metadata,
    validate_field_path,
)

__all__ = [
    # Fan-out
    "DEFAULT_REGISTRY",
    "DEFAULT_STRATEGIES",
    "DEFAULT_WEIGHTS",
    "Strategy",
    "StrategyRequest",
    "aggregate_results",
    "fan_out_search",
    # Full-text
    "extract_snippet",
    "highlight_matches",
    "search_fulltext",
    # Metadata
    "get_document_types",
    "get_field_values",
    "search_metadata",
    "validate_field_path",
]
