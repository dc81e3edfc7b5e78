"""Multi-dimensional chunk scoring.

Each chunk gets five sub-scores against the query context (semantic,
conversational, temporal, domain, authority) plus a diversity score that
starts at 1.0 and is lowered later by the diversity filter. The combined
relevance is a weighted sum driven by the budget's priority weights.
"""

from __future__ import annotations

import math
from dataclasses import asdict
from dataclasses import dataclass
from datetime import datetime

from contextforge.config import AssemblyConfig
from contextforge.context.text import clamp
from contextforge.context.text import jaccard
from contextforge.context.text import keywords
from contextforge.context.text import term_frequency_score
from contextforge.context.text import words
from contextforge.models.context import ContextChunk
from contextforge.models.context import PriorityWeights
from contextforge.models.context import QueryContext

SCORES_KEY = "individual_scores"


@dataclass
class ChunkScores:
    semantic_relevance: float
    conversational_relevance: float
    temporal_relevance: float
    domain_relevance: float
    authority_score: float
    diversity_score: float = 1.0

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


class ChunkScorer:
    """Computes and combines per-chunk sub-scores."""

    def __init__(self, config: AssemblyConfig | None = None) -> None:
        self._config = config or AssemblyConfig()

    def score(
        self, chunk: ContextChunk, query_context: QueryContext, *, now: datetime
    ) -> ChunkScores:
        return ChunkScores(
            semantic_relevance=self.semantic_relevance(chunk, query_context.query),
            conversational_relevance=self.conversational_relevance(chunk, query_context),
            temporal_relevance=self.temporal_relevance(chunk, now=now),
            domain_relevance=self.domain_relevance(chunk, query_context),
            authority_score=self.authority_score(chunk),
        )

    def combine(self, scores: ChunkScores, weights: PriorityWeights) -> float:
        cfg = self._config
        combined = (
            scores.semantic_relevance * weights.relevance
            + scores.temporal_relevance * weights.recency
            + scores.diversity_score * weights.diversity
            + scores.authority_score * weights.authority
            + scores.conversational_relevance * cfg.conversational_bonus_weight
            + scores.domain_relevance * cfg.domain_bonus_weight
        )
        return clamp(combined)

    # -- dimensions --

    def semantic_relevance(self, chunk: ContextChunk, query: str) -> float:
        query_terms = words(query)
        content_terms = words(chunk.content)
        overlap = jaccard(set(query_terms), set(content_terms))
        tf_score = term_frequency_score(query_terms, content_terms)
        cfg = self._config
        return clamp(
            overlap * cfg.semantic_jaccard_weight + tf_score * cfg.semantic_bm25_weight
        )

    def conversational_relevance(
        self, chunk: ContextChunk, query_context: QueryContext
    ) -> float:
        history = query_context.conversation_history
        if not history:
            return 0.5

        cfg = self._config
        topics: list[str] = []
        for turn in history[-cfg.conversation_window :]:
            for word in keywords(turn.content):
                if word not in topics:
                    topics.append(word)
        topics = topics[: cfg.conversation_topic_limit]

        content = chunk.content.lower()
        hits = sum(1 for topic in topics if topic in content)
        return min(1.0, hits * cfg.conversation_topic_bonus)

    def temporal_relevance(self, chunk: ContextChunk, *, now: datetime) -> float:
        age_hours = max((now - chunk.timestamp).total_seconds() / 3600, 0.0)
        decay = math.exp(-age_hours / self._config.recency_half_life_hours)
        return max(self._config.min_temporal_score, decay)

    @staticmethod
    def domain_relevance(chunk: ContextChunk, query_context: QueryContext) -> float:
        if not query_context.domain:
            return 0.5
        chunk_domain = chunk.metadata.get("domain") or chunk.source
        return 1.0 if chunk_domain == query_context.domain else 0.3

    def authority_score(self, chunk: ContextChunk) -> float:
        score = 0.5
        if chunk.source in self._config.authority_sources:
            score += 0.3
        meta = chunk.metadata
        if meta.get("has_citations"):
            score += 0.1
        if meta.get("peer_reviewed"):
            score += 0.2
        if meta.get("is_latest_version"):
            score += 0.1
        return min(1.0, score)
