"""Full-text search over the FTS5 projection.

Scores are the negated FTS5 bm25 rank, so higher is better and scores are
comparable with other strategies' "higher is better" convention. Results
come back best first.

The query string is passed to FTS5 as-is, so its operators (AND, OR, NOT,
NEAR, "phrases", prefix*) are available. A malformed query is reported as
a QuerySyntaxError: raised in strict mode, logged and treated as no
results otherwise.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING

import structlog
from sqlalchemy.exc import OperationalError

from docplane.core.errors import QuerySyntaxError, ValidationError
from docplane.index._internal.db import FTS_TABLE, is_database_locked_error
from docplane.index.models import SearchResult

if TYPE_CHECKING:
    from docplane.index._internal.db import Database

logger = structlog.get_logger()

DEFAULT_CONTEXT_CHARS = 100
FTS_OPERATORS = frozenset({"AND", "OR", "NOT", "NEAR"})

_SEARCH_SQL = f"""
    SELECT
        d.path,
        d.document_type,
        d.frontmatter,
        d.content,
        -bm25({FTS_TABLE}) AS score
    FROM {FTS_TABLE}
    JOIN documents d ON d.path = {FTS_TABLE}.path
    WHERE {FTS_TABLE} MATCH :query
"""


def query_terms(query: str) -> list[str]:
    """Literal words of a query, operators and syntax stripped."""
    cleaned = re.sub(r"['\"()*^:+]", " ", query)
    return [w for w in cleaned.split() if w.upper() not in FTS_OPERATORS]


def extract_snippet(content: str, query: str, context_chars: int = DEFAULT_CONTEXT_CHARS) -> str:
    """Window of content around the first literal query term.

    Falls back to the head of the content when no term occurs literally
    (stemmed matches, pure operator queries).
    """
    content_lower = content.lower()
    for term in query_terms(query):
        idx = content_lower.find(term.lower())
        if idx == -1:
            continue
        start = max(0, idx - context_chars)
        end = min(len(content), idx + len(term) + context_chars)
        snippet = content[start:end]
        if start > 0:
            snippet = "..." + snippet
        if end < len(content):
            snippet += "..."
        return snippet

    head = content[: context_chars * 2]
    return head + "..." if len(content) > len(head) else head


def highlight_matches(text: str, query: str) -> str:
    """Wrap every case-insensitive occurrence of a query term in ``**``."""
    terms = sorted({t for t in query_terms(query) if t}, key=len, reverse=True)
    if not terms:
        return text
    pattern = re.compile("|".join(re.escape(t) for t in terms), re.IGNORECASE)
    return pattern.sub(lambda m: f"**{m.group(0)}**", text)


def search_fulltext(
    db: Database,
    query: str,
    *,
    document_type: str | None = None,
    limit: int = 20,
    offset: int = 0,
    strict: bool = False,
    context_chars: int = DEFAULT_CONTEXT_CHARS,
) -> list[SearchResult]:
    """Rank documents matching an FTS5 query.

    Args:
        db: Open index database.
        query: FTS5 query. Blank queries return no results.
        document_type: Only return documents of this type.
        limit: Maximum results.
        offset: Results to skip (pagination).
        strict: Raise QuerySyntaxError instead of returning [] on bad syntax.
        context_chars: Snippet context on each side of the first match.

    Raises:
        ValidationError: limit or offset is negative.
        QuerySyntaxError: malformed query, strict mode only.
    """
    if limit < 0:
        raise ValidationError.invalid_value("limit", limit, "must be >= 0")
    if offset < 0:
        raise ValidationError.invalid_value("offset", offset, "must be >= 0")
    if not query or not query.strip() or limit == 0:
        return []

    sql = _SEARCH_SQL
    params: dict[str, object] = {"query": query, "limit": limit, "offset": offset}
    if document_type:
        sql += " AND d.document_type = :document_type"
        params["document_type"] = document_type
    sql += f" ORDER BY bm25({FTS_TABLE}) LIMIT :limit OFFSET :offset"

    try:
        rows = db.execute_raw(sql, params)
    except OperationalError as e:
        if is_database_locked_error(e):
            raise
        error = QuerySyntaxError.malformed(query, str(e.orig) if e.orig else str(e))
        if strict:
            raise error from e
        logger.warning("fts_query_error", query=query, error=error.details["reason"])
        return []

    return [
        SearchResult(
            path=row.path,
            document_type=row.document_type,
            frontmatter=json.loads(row.frontmatter or "{}"),
            snippet=extract_snippet(row.content or "", query, context_chars),
            score=float(row.score),
        )
        for row in rows
    ]
