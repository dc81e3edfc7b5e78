"""Unit tests for optimization strategies and the context optimizer."""

from __future__ import annotations

from datetime import datetime
from datetime import timedelta
from datetime import UTC

import pytest

from contextforge.context.optimizer import ContextOptimizer
from contextforge.context.optimizer import merge_strategy_overrides
from contextforge.context.strategies import ContentCompressionStrategy
from contextforge.context.strategies import RedundancyEliminationStrategy
from contextforge.context.strategies import RelevanceBoostingStrategy
from contextforge.context.strategies import SemanticDeduplicationStrategy
from contextforge.context.strategies import strip_filler
from contextforge.context.strategies import TemporalFilteringStrategy
from contextforge.errors import ConfigurationError
from contextforge.models.context import ContextChunk
from contextforge.observability import metrics_snapshot
from contextforge.observability import reset_metrics

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

ALL_STRATEGIES = [
    "redundancy-elimination",
    "temporal-filtering",
    "relevance-boosting",
    "content-compression",
    "semantic-deduplication",
]


def _chunk(content: str, relevance: float = 0.5, tokens: int | None = None, **kwargs):
    fields = {"content": content, "relevance_score": relevance, "timestamp": NOW, **kwargs}
    if tokens is not None:
        fields["token_count"] = tokens
    return ContextChunk(**fields)


def _disable_all() -> list[dict]:
    return [{"name": name, "enabled": False} for name in ALL_STRATEGIES]


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class TestRedundancyElimination:
    def test_drops_near_duplicates(self):
        a = _chunk("hotel booking payment policy", 0.9)
        b = _chunk("hotel booking payment policy", 0.8)
        c = _chunk("weather forecast", 0.5)
        result = RedundancyEliminationStrategy().execute([c, b, a], now=NOW)
        assert [chunk.id for chunk in result.chunks] == [a.id, c.id]
        assert result.chunks_removed == 1

    def test_respects_max_pairs(self):
        chunks = [_chunk(f"word{i} other{i}", 0.5) for i in range(5)]
        result = RedundancyEliminationStrategy({"max_pairs": 2}).execute(chunks, now=NOW)
        assert len(result.chunks) == 2
        assert result.chunks_removed == 3

    def test_invalid_threshold(self):
        with pytest.raises(ConfigurationError, match="similarity_threshold"):
            RedundancyEliminationStrategy({"similarity_threshold": 2}).validate()


class TestTemporalFiltering:
    def test_retains_top_share_and_drops_oldest(self):
        fresh = [_chunk(f"fresh{i}") for i in range(4)]
        stale = _chunk("stale", timestamp=NOW - timedelta(days=30))
        result = TemporalFilteringStrategy().execute([stale, *fresh], now=NOW)
        assert len(result.chunks) == 4
        assert stale.id not in {chunk.id for chunk in result.chunks}
        assert result.chunks_removed == 1

    def test_keeps_at_least_one(self):
        result = TemporalFilteringStrategy({"retain_ratio": 0.0}).execute(
            [_chunk("only")], now=NOW
        )
        assert len(result.chunks) == 1


class TestRelevanceBoosting:
    def test_boosts_dampens_and_drops(self):
        strong = _chunk("strong", 0.8)
        middle = _chunk("middle", 0.5)
        weak = _chunk("weak", 0.3)
        result = RelevanceBoostingStrategy().execute([strong, middle, weak], now=NOW)

        scores = {chunk.content: chunk.relevance_score for chunk in result.chunks}
        assert scores["strong"] == pytest.approx(0.96)
        assert scores["middle"] == 0.5
        assert "weak" not in scores
        assert result.chunks_removed == 1

    def test_boost_capped_at_one(self):
        assert RelevanceBoostingStrategy().adjusted(0.95) == 1.0


class TestContentCompression:
    def test_strip_filler(self):
        text = "It is important to note that the room is   basically ready ."
        assert strip_filler(text) == "the room is ready."

    def test_compresses_long_filler_heavy_chunk(self):
        content = (
            "It is important to note that the hotel basically really very just "
            "needs payment. "
        ) * 20
        chunk = _chunk(content)
        result = ContentCompressionStrategy().execute([chunk], now=NOW)

        compressed = result.chunks[0]
        assert result.chunks_compressed == 1
        assert compressed.token_count < chunk.token_count
        assert compressed.metadata["compressed"] is True
        assert "basically" not in compressed.content

    def test_short_chunks_untouched(self):
        chunk = _chunk("It is basically fine.")
        result = ContentCompressionStrategy().execute([chunk], now=NOW)
        assert result.chunks == [chunk]
        assert result.chunks_compressed == 0

    def test_rejects_insufficient_savings(self):
        chunk = _chunk("plain words without any padding at all " * 20)
        result = ContentCompressionStrategy().execute([chunk], now=NOW)
        assert result.chunks[0] is chunk


class TestSemanticDeduplication:
    def test_keeps_best_per_concept_and_general_chunks(self):
        low = _chunk("booking confirmed for guest", 0.4)
        high = _chunk("new booking created", 0.9)
        general = _chunk("alpha bravo", 0.1)
        result = SemanticDeduplicationStrategy().execute([low, high, general], now=NOW)
        assert [chunk.id for chunk in result.chunks] == [high.id, general.id]
        assert result.chunks_removed == 1


# ---------------------------------------------------------------------------
# Override merging
# ---------------------------------------------------------------------------


class TestMergeStrategyOverrides:
    def test_defaults_in_priority_order(self):
        assert [spec.name for spec in merge_strategy_overrides(None)] == ALL_STRATEGIES

    def test_partial_override(self):
        specs = merge_strategy_overrides(
            [{"name": "relevance-boosting", "priority": 0, "config": {"threshold": 0.5}}]
        )
        assert specs[0].name == "relevance-boosting"
        assert specs[0].config == {"threshold": 0.5}

    def test_unknown_name_ignored(self):
        specs = merge_strategy_overrides([{"name": "does-not-exist", "enabled": False}])
        assert [spec.name for spec in specs] == ALL_STRATEGIES


# ---------------------------------------------------------------------------
# Optimizer
# ---------------------------------------------------------------------------


class TestContextOptimizer:
    def setup_method(self):
        reset_metrics()

    async def test_runs_all_strategies_in_order(self):
        names = ("alpha", "bravo", "charlie", "delta", "echo")
        chunks = [_chunk(name, 0.8, tokens=10) for name in names]
        result = await ContextOptimizer(clock=lambda: NOW).optimize_context(chunks, 100)

        assert result.metadata.strategies_used == ALL_STRATEGIES
        assert len(result.chunks) == 4
        assert result.total_tokens == 40
        assert result.compression_ratio == pytest.approx(0.8)
        assert result.strategy == "optimized-context"

    async def test_rejects_non_positive_target(self):
        with pytest.raises(ConfigurationError, match="target_tokens"):
            await ContextOptimizer().optimize_context([_chunk("x")], 0)

    async def test_rejects_invalid_strategy_config_before_running(self):
        with pytest.raises(ConfigurationError):
            await ContextOptimizer().optimize_context(
                [_chunk("x")],
                100,
                [{"name": "temporal-filtering", "config": {"retain_ratio": 3}}],
            )

    async def test_failing_strategy_is_skipped(self, monkeypatch):
        def boom(self, chunks, *, now):
            raise RuntimeError("strategy exploded")

        monkeypatch.setattr(TemporalFilteringStrategy, "execute", boom)
        chunks = [_chunk(f"word{i}", 0.8, tokens=10) for i in range(3)]
        result = await ContextOptimizer(clock=lambda: NOW).optimize_context(chunks, 100)

        assert "temporal-filtering" not in result.metadata.strategies_used
        assert len(result.chunks) == 3
        assert metrics_snapshot()["counters"]["optimizer.strategy_failures"] == 1

    async def test_final_trim_truncates_overflowing_chunk(self):
        a = _chunk("first " * 100, 0.9, tokens=100)
        b = _chunk("second " * 200, 0.5, tokens=200)
        result = await ContextOptimizer().optimize_context([b, a], 180, _disable_all())

        assert [chunk.id for chunk in result.chunks] == [a.id, b.id]
        assert result.chunks[1].token_count == 80
        assert result.total_tokens == 180
        assert result.metadata.strategies_used == ["final-trim"]

    async def test_final_trim_drops_small_remainder(self):
        a = _chunk("first " * 100, 0.9, tokens=100)
        b = _chunk("second " * 200, 0.5, tokens=200)
        result = await ContextOptimizer().optimize_context([a, b], 120, _disable_all())
        assert [chunk.id for chunk in result.chunks] == [a.id]

    async def test_compress_context(self):
        a = _chunk("first " * 100, 0.9, tokens=100)
        b = _chunk("second " * 200, 0.5, tokens=200)
        result = await ContextOptimizer(clock=lambda: NOW).compress_context([a, b], 120)

        assert result.compressed is True
        assert result.original_tokens == 300
        assert result.compressed_tokens <= 120
        assert result.compression_ratio == pytest.approx(result.compressed_tokens / 300)
        assert result.original_content.startswith("first")
