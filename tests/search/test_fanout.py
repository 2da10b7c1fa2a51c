"""Tests for fan-out search and result aggregation."""

from __future__ import annotations

import time

import pytest
from structlog.testing import capture_logs

from docplane.core.errors import ValidationError
from docplane.index._internal.db import Database
from docplane.index.models import SearchResult
from docplane.search.fanout import (
    DEFAULT_REGISTRY,
    StrategyRequest,
    aggregate_results,
    fan_out_search,
    metadata_strategy,
)


def _hits(*paths: str) -> list[SearchResult]:
    return [SearchResult(path=p, document_type="other") for p in paths]


class RecordingStrategy:
    """Strategy stub that records the requests it receives."""

    def __init__(self, results: list[SearchResult]) -> None:
        self.results = results
        self.requests: list[StrategyRequest] = []

    def __call__(self, request: StrategyRequest) -> list[SearchResult]:
        self.requests.append(request)
        return self.results


class TestAggregateResults:
    """Position-weighted merging."""

    def test_shared_hit_outranks_single_hits(self) -> None:
        merged = aggregate_results(
            {"s1": _hits("both.md", "solo1.md"), "s2": _hits("solo2.md", "both.md")},
            weights={"s1": 1.0, "s2": 1.0},
        )

        assert [r.path for r in merged] == ["both.md", "solo2.md", "solo1.md"]
        assert merged[0].relevance_score == pytest.approx(1.5)
        assert merged[0].matched_strategies == ["s1", "s2"]
        assert merged[1].relevance_score == pytest.approx(1.0)
        assert merged[2].relevance_score == pytest.approx(0.5)

    def test_weights_scale_contributions(self) -> None:
        merged = aggregate_results(
            {"fulltext": _hits("a.md"), "metadata": _hits("b.md")},
        )

        assert [(r.path, r.relevance_score) for r in merged] == [("a.md", 1.0), ("b.md", 0.8)]

    def test_partial_weights_keep_defaults(self) -> None:
        merged = aggregate_results(
            {"fulltext": _hits("a.md"), "metadata": _hits("b.md")},
            weights={"fulltext": 2.0},
        )

        assert [(r.path, r.relevance_score) for r in merged] == [("a.md", 2.0), ("b.md", 0.8)]

    def test_unknown_strategy_uses_default_weight(self) -> None:
        merged = aggregate_results({"custom": _hits("a.md")})
        assert merged[0].relevance_score == pytest.approx(0.5)

    def test_ties_broken_by_path(self) -> None:
        merged = aggregate_results({"s1": _hits("b.md"), "s2": _hits("a.md")}, {"s1": 1, "s2": 1})
        assert [r.path for r in merged] == ["a.md", "b.md"]

    def test_limit(self) -> None:
        merged = aggregate_results({"fulltext": _hits("a.md", "b.md", "c.md")}, limit=2)
        assert [r.path for r in merged] == ["a.md", "b.md"]

    def test_first_snippet_kept_missing_snippet_filled(self) -> None:
        first = [SearchResult(path="a.md", document_type="rule", snippet=None)]
        second = [SearchResult(path="a.md", document_type="rule", snippet="...match...")]

        merged = aggregate_results({"metadata": first, "fulltext": second})

        assert merged[0].snippet == "...match..."
        assert merged[0].to_dict()["matched_strategies"] == ["metadata", "fulltext"]


class TestFanOutSearch:
    """Concurrent execution, isolation and validation."""

    @pytest.mark.asyncio
    async def test_merges_registered_strategies(self, temp_db: Database) -> None:
        s1 = RecordingStrategy(_hits("both.md", "solo1.md"))
        s2 = RecordingStrategy(_hits("solo2.md", "both.md"))

        merged = await fan_out_search(
            temp_db,
            "anything",
            strategies=["s1", "s2"],
            registry={"s1": s1, "s2": s2},
            weights={"s1": 1.0, "s2": 1.0},
            limit=5,
        )

        assert merged[0].path == "both.md"
        assert len(merged[0].matched_strategies) == 2
        assert merged[0].relevance_score > merged[1].relevance_score

    @pytest.mark.asyncio
    async def test_candidates_over_fetched(self, temp_db: Database) -> None:
        strategy = RecordingStrategy([])

        await fan_out_search(
            temp_db, "q", strategies=["s"], registry={"s": strategy}, limit=5
        )

        assert strategy.requests[0].limit == 10

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "   "])
    async def test_blank_query_runs_nothing(self, temp_db: Database, query: str) -> None:
        strategy = RecordingStrategy(_hits("a.md"))

        merged = await fan_out_search(temp_db, query, strategies=["s"], registry={"s": strategy})

        assert merged == []
        assert strategy.requests == []

    @pytest.mark.asyncio
    async def test_failing_strategy_is_isolated(self, temp_db: Database) -> None:
        def broken(_request: StrategyRequest) -> list[SearchResult]:
            raise RuntimeError("index unavailable")

        healthy = RecordingStrategy(_hits("a.md"))

        with capture_logs() as logs:
            merged = await fan_out_search(
                temp_db,
                "q",
                strategies=["broken", "healthy"],
                registry={"broken": broken, "healthy": healthy},
            )

        assert [r.path for r in merged] == ["a.md"]
        failures = [e for e in logs if e["event"] == "search_strategy_failed"]
        assert len(failures) == 1
        assert failures[0]["strategy"] == "broken"
        assert failures[0]["log_level"] == "warning"
        assert "index unavailable" in failures[0]["error"]

    @pytest.mark.asyncio
    async def test_slow_strategy_times_out(self, temp_db: Database) -> None:
        def slow(_request: StrategyRequest) -> list[SearchResult]:
            time.sleep(0.5)
            return _hits("slow.md")

        fast = RecordingStrategy(_hits("fast.md"))

        with capture_logs() as logs:
            merged = await fan_out_search(
                temp_db,
                "q",
                strategies=["slow", "fast"],
                registry={"slow": slow, "fast": fast},
                timeout=0.05,
            )

        assert [r.path for r in merged] == ["fast.md"]
        assert any(
            e["event"] == "search_strategy_failed" and e["strategy"] == "slow" for e in logs
        )

    @pytest.mark.asyncio
    async def test_all_strategies_failing_returns_empty(self, temp_db: Database) -> None:
        def broken(_request: StrategyRequest) -> list[SearchResult]:
            raise RuntimeError("nope")

        merged = await fan_out_search(
            temp_db, "q", strategies=["a", "b"], registry={"a": broken, "b": broken}
        )

        assert merged == []

    @pytest.mark.asyncio
    async def test_unknown_strategy_names_skipped(self, temp_db: Database) -> None:
        strategy = RecordingStrategy(_hits("a.md"))

        merged = await fan_out_search(
            temp_db, "q", strategies=["s", "missing", "s"], registry={"s": strategy}
        )

        assert [r.path for r in merged] == ["a.md"]
        assert len(strategy.requests) == 1

    @pytest.mark.asyncio
    async def test_invalid_filters_raise(self, temp_db: Database) -> None:
        strategy = RecordingStrategy([])

        with pytest.raises(ValidationError):
            await fan_out_search(
                temp_db,
                "q",
                filters={"frontmatter.x') --": 1},
                strategies=["s"],
                registry={"s": strategy},
            )

        assert strategy.requests == []

    @pytest.mark.asyncio
    async def test_invalid_limit_raises(self, temp_db: Database) -> None:
        with pytest.raises(ValidationError):
            await fan_out_search(temp_db, "q", limit=0)


class TestDefaultStrategies:
    """Built-in full-text and metadata strategies against a real index."""

    @pytest.mark.asyncio
    async def test_fulltext_and_metadata_combined(self, seeded_db: Database) -> None:
        merged = await fan_out_search(
            seeded_db,
            "authentication",
            filters={"frontmatter.tags": {"contains": "auth"}},
        )

        assert {r.path for r in merged} == {"ai/rules/auth.md", "ai/commands/login.md"}
        for result in merged:
            assert result.matched_strategies == ["fulltext", "metadata"]
            assert result.snippet is not None

    @pytest.mark.asyncio
    async def test_fulltext_only_without_filters(self, seeded_db: Database) -> None:
        merged = await fan_out_search(seeded_db, "JWT")

        assert [r.path for r in merged] == ["ai/rules/auth.md"]
        assert merged[0].matched_strategies == ["fulltext"]
        assert merged[0].relevance_score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_document_type_applies_to_both(self, seeded_db: Database) -> None:
        merged = await fan_out_search(seeded_db, "authentication", document_type="rule")

        assert [r.path for r in merged] == ["ai/rules/auth.md"]
        assert merged[0].matched_strategies == ["fulltext", "metadata"]

    def test_metadata_strategy_without_filters_is_empty(self, seeded_db: Database) -> None:
        request = StrategyRequest(db=seeded_db, query="q", limit=10)
        assert metadata_strategy(request) == []

    def test_semantic_strategy_registered(self, seeded_db: Database) -> None:
        request = StrategyRequest(db=seeded_db, query="q", limit=10)
        assert DEFAULT_REGISTRY["semantic"](request) == []
