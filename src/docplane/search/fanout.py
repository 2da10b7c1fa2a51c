"""Fan-out search: run several strategies concurrently and merge by path.

Each strategy is a synchronous function over the index run on a worker
thread. All strategies are joined before ranking. A strategy that raises
or exceeds the timeout is logged and contributes no results.

Ranking: a document at 0-based position ``i`` of a strategy's list earns
``weight(strategy) / (i + 1)``; earnings for the same path are summed and
results are sorted by the sum, best first.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from docplane.core.errors import StrategyFailure, ValidationError
from docplane.index.models import FanOutResult, SearchResult
from docplane.search.fulltext import search_fulltext
from docplane.search.metadata import build_filter_clause, search_metadata

if TYPE_CHECKING:
    from docplane.index._internal.db import Database

logger = structlog.get_logger()

FULLTEXT = "fulltext"
METADATA = "metadata"
SEMANTIC = "semantic"

DEFAULT_WEIGHTS: dict[str, float] = {FULLTEXT: 1.0, METADATA: 0.8, SEMANTIC: 0.6}
DEFAULT_STRATEGIES = (FULLTEXT, METADATA)
UNKNOWN_STRATEGY_WEIGHT = 0.5
CANDIDATE_MULTIPLIER = 2
DEFAULT_TIMEOUT_SEC = 5.0


@dataclass(frozen=True)
class StrategyRequest:
    """Inputs handed to every strategy of one fan-out call."""

    db: Database
    query: str
    limit: int
    filters: Mapping[str, Any] = field(default_factory=dict)
    document_type: str | None = None


Strategy = Callable[[StrategyRequest], list[SearchResult]]


def fulltext_strategy(request: StrategyRequest) -> list[SearchResult]:
    return search_fulltext(
        request.db,
        request.query,
        document_type=request.document_type,
        limit=request.limit,
    )


def metadata_strategy(request: StrategyRequest) -> list[SearchResult]:
    # Without filters every document would match; contribute nothing instead
    if not request.filters and not request.document_type:
        return []
    filters = dict(request.filters)
    if request.document_type:
        filters["type"] = request.document_type
    return search_metadata(request.db, filters, limit=request.limit)


def semantic_strategy(request: StrategyRequest) -> list[SearchResult]:  # noqa: ARG001
    """Extension point for embedding search. Not part of the default set."""
    return []


DEFAULT_REGISTRY: dict[str, Strategy] = {
    FULLTEXT: fulltext_strategy,
    METADATA: metadata_strategy,
    SEMANTIC: semantic_strategy,
}


def aggregate_results(
    results_by_strategy: Mapping[str, list[SearchResult]],
    weights: Mapping[str, float] | None = None,
    limit: int = 20,
) -> list[FanOutResult]:
    """Merge per-strategy result lists by path with position-weighted scoring.

    The first strategy to surface a path supplies its fields; a later
    strategy only fills in a missing snippet.
    """
    weights = {**DEFAULT_WEIGHTS, **(weights or {})}
    merged: dict[str, FanOutResult] = {}

    for strategy, results in results_by_strategy.items():
        weight = weights.get(strategy, UNKNOWN_STRATEGY_WEIGHT)
        for idx, doc in enumerate(results):
            contribution = weight / (idx + 1)
            existing = merged.get(doc.path)
            if existing is None:
                merged[doc.path] = FanOutResult(
                    path=doc.path,
                    document_type=doc.document_type,
                    frontmatter=doc.frontmatter,
                    snippet=doc.snippet,
                    score=doc.score,
                    relevance_score=contribution,
                    matched_strategies=[strategy],
                )
                continue
            existing.relevance_score += contribution
            if strategy not in existing.matched_strategies:
                existing.matched_strategies.append(strategy)
            if existing.snippet is None:
                existing.snippet = doc.snippet

    ranked = sorted(merged.values(), key=lambda r: (-r.relevance_score, r.path))
    return ranked[:limit]


async def _run_strategy(
    name: str,
    strategy: Strategy,
    request: StrategyRequest,
    timeout: float | None,
) -> list[SearchResult]:
    start = time.monotonic()
    try:
        results = await asyncio.wait_for(asyncio.to_thread(strategy, request), timeout=timeout)
    except TimeoutError:
        failure = StrategyFailure.timed_out(name, timeout or 0.0)
        logger.warning("search_strategy_failed", strategy=name, error=failure.message)
        return []
    except Exception as e:
        failure = StrategyFailure.failed(name, str(e))
        logger.warning(
            "search_strategy_failed",
            strategy=name,
            error=failure.message,
            exc_type=type(e).__name__,
        )
        return []

    logger.debug(
        "search_strategy_completed",
        strategy=name,
        results=len(results),
        duration_ms=int((time.monotonic() - start) * 1000),
    )
    return results


async def fan_out_search(
    db: Database,
    query: str,
    *,
    strategies: Iterable[str] = DEFAULT_STRATEGIES,
    filters: Mapping[str, Any] | None = None,
    document_type: str | None = None,
    limit: int = 20,
    weights: Mapping[str, float] | None = None,
    timeout: float | None = DEFAULT_TIMEOUT_SEC,
    candidate_multiplier: int = CANDIDATE_MULTIPLIER,
    registry: Mapping[str, Strategy] | None = None,
) -> list[FanOutResult]:
    """Run strategies concurrently and return merged, ranked results.

    A blank query returns [] without invoking any strategy. Unknown
    strategy names are skipped.

    Raises:
        ValidationError: invalid filters or limit. These are fatal to the call.
    """
    if not query or not query.strip():
        return []
    if limit < 1:
        raise ValidationError.invalid_value("limit", limit, "must be >= 1")
    if filters:
        build_filter_clause(filters)

    registry = DEFAULT_REGISTRY if registry is None else registry
    requested = list(dict.fromkeys(strategies))
    active = [name for name in requested if name in registry]
    skipped = [name for name in requested if name not in registry]
    if skipped:
        logger.debug("search_strategies_skipped", strategies=skipped)

    request = StrategyRequest(
        db=db,
        query=query,
        limit=limit * candidate_multiplier,
        filters=dict(filters or {}),
        document_type=document_type,
    )
    results = await asyncio.gather(
        *(_run_strategy(name, registry[name], request, timeout) for name in active)
    )
    merged = aggregate_results(dict(zip(active, results, strict=True)), weights, limit)

    logger.debug(
        "fan_out_search_completed",
        query=query,
        strategies=active,
        results=len(merged),
    )
    return merged
