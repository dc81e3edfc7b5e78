"""Unit tests for chunk scoring and context assembly."""

from __future__ import annotations

from datetime import datetime
from datetime import timedelta
from datetime import UTC

import pytest

from contextforge.context.assembler import ContextAssembler
from contextforge.context.scoring import ChunkScorer
from contextforge.context.scoring import ChunkScores
from contextforge.context.scoring import SCORES_KEY
from contextforge.errors import ConfigurationError
from contextforge.models.context import ContextBudget
from contextforge.models.context import ContextChunk
from contextforge.models.context import ConversationTurn
from contextforge.models.context import PriorityWeights
from contextforge.models.context import QueryContext
from contextforge.models.context import Urgency

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _query(query: str = "hotel booking payment", **kwargs) -> QueryContext:
    return QueryContext(query=query, user_id="u1", session_id="s1", **kwargs)


def _chunk(content: str, tokens: int | None = None, **kwargs) -> ContextChunk:
    fields = {"content": content, "timestamp": NOW, **kwargs}
    if tokens is not None:
        fields["token_count"] = tokens
    return ContextChunk(**fields)


def _assembler() -> ContextAssembler:
    return ContextAssembler(clock=lambda: NOW)


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


class TestChunkScorer:
    def test_semantic_relevance_rewards_overlap(self):
        scorer = ChunkScorer()
        matching = scorer.semantic_relevance(_chunk("hotel booking payment"), "hotel booking")
        unrelated = scorer.semantic_relevance(_chunk("weather forecast today"), "hotel booking")
        assert 0.0 < matching <= 1.0
        assert unrelated == 0.0

    def test_conversational_relevance_neutral_without_history(self):
        assert ChunkScorer().conversational_relevance(_chunk("x"), _query()) == 0.5

    def test_conversational_relevance_counts_topics(self):
        qc = _query(
            conversation_history=[
                ConversationTurn(role="user", content="Looking for beach hotels"),
            ]
        )
        score = ChunkScorer().conversational_relevance(_chunk("beach hotels nearby"), qc)
        assert score == pytest.approx(0.4)

    def test_temporal_relevance_decays(self):
        scorer = ChunkScorer()
        fresh = scorer.temporal_relevance(_chunk("x"), now=NOW)
        week_old = scorer.temporal_relevance(
            _chunk("x", timestamp=NOW - timedelta(hours=168)), now=NOW
        )
        assert fresh == pytest.approx(1.0)
        assert week_old == pytest.approx(0.3679, abs=1e-3)

    def test_domain_relevance(self):
        chunk = _chunk("x", metadata={"domain": "travel"})
        assert ChunkScorer.domain_relevance(chunk, _query()) == 0.5
        assert ChunkScorer.domain_relevance(chunk, _query(domain="travel")) == 1.0
        assert ChunkScorer.domain_relevance(chunk, _query(domain="finance")) == 0.3

    def test_authority_score_bonuses_capped(self):
        chunk = _chunk(
            "x",
            source="official_docs",
            metadata={"has_citations": True, "peer_reviewed": True, "is_latest_version": True},
        )
        assert ChunkScorer().authority_score(chunk) == 1.0
        assert ChunkScorer().authority_score(_chunk("x")) == 0.5

    def test_combine_is_clamped(self):
        scores = ChunkScores(1.0, 1.0, 1.0, 1.0, 1.0)
        weights = PriorityWeights(relevance=1.0, recency=1.0, diversity=1.0, authority=1.0)
        assert ChunkScorer().combine(scores, weights) == 1.0


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


class TestAssembleContext:
    async def test_single_small_chunk_is_returned_whole(self):
        chunk = _chunk("Hotel booking requires payment", tokens=5)
        result = await _assembler().assemble_context(
            [chunk],
            _query(),
            {"max_tokens": 100, "target_tokens": 50, "min_tokens": 10},
        )
        assert [c.id for c in result.chunks] == [chunk.id]
        assert result.total_tokens == 5
        assert result.compression_ratio == 1.0

    async def test_empty_input(self):
        result = await _assembler().assemble_context([], _query())
        assert result.chunks == []
        assert result.total_tokens == 0
        assert result.compression_ratio == 1.0

    async def test_sub_scores_recorded_in_metadata(self):
        result = await _assembler().assemble_context([_chunk("hotel booking")], _query())
        scores = result.chunks[0].metadata[SCORES_KEY]
        assert set(scores) == {
            "semantic_relevance",
            "conversational_relevance",
            "temporal_relevance",
            "domain_relevance",
            "authority_score",
            "diversity_score",
        }

    async def test_total_never_exceeds_max_tokens(self):
        chunks = [_chunk(f"topic{i} hotel detail{i} booking", tokens=300) for i in range(15)]
        budget = ContextBudget(max_tokens=1000, target_tokens=800, min_tokens=100)
        result = await _assembler().assemble_context(chunks, _query(), budget)
        assert 0 < result.total_tokens <= budget.max_tokens
        assert 0.0 < result.compression_ratio <= 1.0

    async def test_mmr_caps_chunk_count(self):
        chunks = [_chunk(f"distinct{i} words{i} here{i}", tokens=10) for i in range(20)]
        budget = ContextBudget(max_tokens=10_000, target_tokens=5_000, min_tokens=0)
        result = await _assembler().assemble_context(chunks, _query(), budget)
        assert len(result.chunks) == 10

    async def test_highest_relevance_chunk_always_kept(self):
        best = _chunk("hotel booking payment", tokens=10)
        others = [_chunk(f"unrelated filler {i}", tokens=10) for i in range(12)]
        result = await _assembler().assemble_context(others + [best], _query())
        assert result.chunks[0].id == best.id

    async def test_near_duplicate_is_demoted(self):
        first = _chunk("hotel booking payment policy", tokens=10)
        duplicate = _chunk("hotel booking payment policy", tokens=10)
        assembler = _assembler()
        scored = assembler.score_chunks(
            [first, duplicate], _query(), PriorityWeights(), now=NOW
        )
        filtered = assembler.apply_diversity_filter(scored, PriorityWeights())
        assert filtered[0].metadata[SCORES_KEY]["diversity_score"] == 1.0
        assert filtered[1].metadata[SCORES_KEY]["diversity_score"] == 0.3
        assert filtered[1].relevance_score < filtered[0].relevance_score

    async def test_overflowing_chunk_is_truncated(self):
        relevant = _chunk("hotel booking payment policy", tokens=150)
        long_chunk = _chunk("zebra " * 320, tokens=400)
        budget = ContextBudget(max_tokens=1000, target_tokens=300, min_tokens=0)
        result = await _assembler().assemble_context([relevant, long_chunk], _query(), budget)

        assert [c.id for c in result.chunks] == [relevant.id, long_chunk.id]
        truncated = result.chunks[1]
        assert truncated.token_count == 150
        assert truncated.metadata["compressed"] is True
        assert truncated.metadata["original_token_count"] == 400
        assert truncated.content.endswith("...")
        assert len(truncated.content) <= 150 * 4
        assert result.metadata.chunks_compressed == 1
        assert result.total_tokens == 300

    async def test_small_remainder_is_dropped(self):
        relevant = _chunk("hotel booking payment policy", tokens=150)
        long_chunk = _chunk("zebra " * 320, tokens=400)
        budget = ContextBudget(max_tokens=1000, target_tokens=200, min_tokens=0)
        result = await _assembler().assemble_context([relevant, long_chunk], _query(), budget)
        assert [c.id for c in result.chunks] == [relevant.id]

    async def test_oversized_single_chunk_is_cut_to_target(self):
        chunk = _chunk("hotel " * 500, tokens=500)
        result = await _assembler().assemble_context(
            [chunk], _query(), ContextBudget(max_tokens=100, target_tokens=50, min_tokens=10)
        )
        assert result.total_tokens == 50
        assert 0.0 < result.compression_ratio <= 1.0

    async def test_invalid_budget_mapping_rejected(self):
        with pytest.raises(ConfigurationError):
            await _assembler().assemble_context(
                [_chunk("x")], _query(), {"max_tokens": 10, "target_tokens": 50}
            )


class TestAssemblyStrategyTags:
    def test_priority_first_for_critical(self):
        qc = _query(urgency=Urgency.critical, domain="travel")
        assert ContextAssembler.assembly_strategy(qc) == "priority-first"

    def test_conversation_aware_for_long_history(self):
        history = [ConversationTurn(role="user", content=f"turn {i}") for i in range(6)]
        assert ContextAssembler.assembly_strategy(_query(conversation_history=history)) == (
            "conversation-aware"
        )

    def test_domain_focused_and_default(self):
        assert ContextAssembler.assembly_strategy(_query(domain="travel")) == "domain-focused"
        assert ContextAssembler.assembly_strategy(_query()) == "balanced-optimization"

    def test_strategies_used(self):
        used = _assembler().strategies_used(
            _query(domain="travel"), ContextBudget(max_tokens=2000, target_tokens=1000)
        )
        assert used == [
            "semantic-scoring",
            "diversity-filter",
            "redundancy-removal",
            "aggressive-compression",
            "domain-filtering",
        ]
