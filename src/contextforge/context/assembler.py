"""Context assembler: turns a raw chunk pool into a budgeted prompt context.

Pipeline: score → diversity filter → MMR redundancy removal → budget
selection → final compression. Every phase is a pure function of its input
and the injected clock, so identical inputs yield identical contexts.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from collections.abc import Mapping
from collections.abc import Sequence
from datetime import datetime
from datetime import UTC
from time import perf_counter
from typing import Any

from pydantic import ValidationError

from contextforge.config import AssemblyConfig
from contextforge.context.scoring import ChunkScorer
from contextforge.context.scoring import ChunkScores
from contextforge.context.scoring import SCORES_KEY
from contextforge.context.text import max_similarity
from contextforge.context.text import mean_relevance
from contextforge.context.text import total_tokens
from contextforge.context.text import truncate_chunk
from contextforge.errors import ConfigurationError
from contextforge.models.context import ContextBudget
from contextforge.models.context import ContextChunk
from contextforge.models.context import ContextMetadata
from contextforge.models.context import OptimizedContext
from contextforge.models.context import PriorityWeights
from contextforge.models.context import PruningStats
from contextforge.models.context import QueryContext
from contextforge.models.context import Urgency
from contextforge.observability import record_latency

logger = logging.getLogger(__name__)


def _by_relevance(chunks: list[ContextChunk]) -> list[ContextChunk]:
    # sorted() is stable, ties keep their incoming order
    return sorted(chunks, key=lambda c: c.relevance_score, reverse=True)


class ContextAssembler:
    """Builds an :class:`OptimizedContext` for one query."""

    def __init__(
        self,
        config: AssemblyConfig | None = None,
        *,
        scorer: ChunkScorer | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or AssemblyConfig()
        self._scorer = scorer or ChunkScorer(self._config)
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    async def assemble_context(
        self,
        chunks: Sequence[ContextChunk],
        query_context: QueryContext,
        budget: ContextBudget | Mapping[str, Any] | None = None,
    ) -> OptimizedContext:
        """Score, diversify, de-duplicate and budget-select *chunks*.

        A mapping *budget* is validated into a :class:`ContextBudget` first,
        so a malformed budget fails before any chunk is touched.
        """
        final_budget = self._resolve_budget(budget)
        start = perf_counter()
        original_chunks = list(chunks)
        original_tokens = total_tokens(original_chunks)

        if not original_chunks:
            return self._build_result(
                [],
                original_chunks=0,
                original_tokens=0,
                redundancy_removed=0,
                query_context=query_context,
                budget=final_budget,
                start=start,
            )

        now = self._clock()
        scored = self.score_chunks(
            original_chunks, query_context, final_budget.priority_weights, now=now
        )
        diversified = self.apply_diversity_filter(
            scored, final_budget.priority_weights
        )
        deduplicated = self.remove_redundancy(diversified)
        selected = self.select_within_budget(deduplicated, final_budget)
        optimized = self.compress_to_target(selected, final_budget)

        logger.debug(
            "Assembled %d/%d chunks for session %s (%d tokens)",
            len(optimized),
            len(original_chunks),
            query_context.session_id,
            total_tokens(optimized),
        )
        return self._build_result(
            optimized,
            original_chunks=len(original_chunks),
            original_tokens=original_tokens,
            redundancy_removed=len(diversified) - len(deduplicated),
            query_context=query_context,
            budget=final_budget,
            start=start,
        )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def score_chunks(
        self,
        chunks: Sequence[ContextChunk],
        query_context: QueryContext,
        weights: PriorityWeights,
        *,
        now: datetime,
    ) -> list[ContextChunk]:
        scored: list[ContextChunk] = []
        for chunk in chunks:
            scores = self._scorer.score(chunk, query_context, now=now)
            scored.append(
                chunk.model_copy(
                    update={
                        "relevance_score": self._scorer.combine(scores, weights),
                        "metadata": {**chunk.metadata, SCORES_KEY: scores.as_dict()},
                    }
                )
            )
        return _by_relevance(scored)

    def apply_diversity_filter(
        self, chunks: list[ContextChunk], weights: PriorityWeights
    ) -> list[ContextChunk]:
        """Demote chunks too similar to an already accepted one.

        Demoted chunks stay in the pool with a lowered diversity score.
        """
        if len(chunks) <= 1:
            return list(chunks)

        accepted: list[ContextChunk] = [chunks[0]]
        demoted: list[ContextChunk] = []
        for chunk in chunks[1:]:
            if max_similarity(chunk, accepted) > self._config.diversity_threshold:
                demoted.append(self._demote(chunk, weights))
            else:
                accepted.append(chunk)
        return _by_relevance(accepted + demoted)

    def remove_redundancy(self, chunks: list[ContextChunk]) -> list[ContextChunk]:
        """Maximal Marginal Relevance selection capped at ``mmr_max_chunks``."""
        cfg = self._config
        selected: list[ContextChunk] = []
        remaining = list(chunks)

        while remaining and len(selected) < cfg.mmr_max_chunks:
            best_index = 0
            best_score = float("-inf")
            for index, chunk in enumerate(remaining):
                redundancy = max_similarity(chunk, selected)
                mmr = (
                    cfg.mmr_relevance_weight * chunk.relevance_score
                    - cfg.mmr_redundancy_weight * redundancy
                )
                if mmr > best_score:
                    best_score = mmr
                    best_index = index
            selected.append(remaining.pop(best_index))
        return selected

    def select_within_budget(
        self, chunks: list[ContextChunk], budget: ContextBudget
    ) -> list[ContextChunk]:
        """Greedy selection in relevance order bounded by ``max_tokens``."""
        ranked = _by_relevance(chunks)
        selected_ids: set[str] = set()
        selected: list[ContextChunk] = []
        running = 0

        for chunk in ranked:
            if running + chunk.token_count <= budget.max_tokens:
                selected.append(chunk)
                selected_ids.add(chunk.id)
                running += chunk.token_count
                if running >= budget.target_tokens:
                    break

        if running < budget.min_tokens:
            for chunk in ranked:
                if chunk.id in selected_ids:
                    continue
                if running + chunk.token_count <= budget.max_tokens:
                    selected.append(chunk)
                    selected_ids.add(chunk.id)
                    running += chunk.token_count
                    if running >= budget.min_tokens:
                        break

        if not selected and ranked:
            # Nothing fits whole; keep a cut-down version of the best chunk.
            selected.append(
                truncate_chunk(
                    ranked[0], budget.target_tokens, self._config.chars_per_token
                )
            )
        return selected

    def compress_to_target(
        self, chunks: list[ContextChunk], budget: ContextBudget
    ) -> list[ContextChunk]:
        """Re-rank and truncate the overflowing chunk when over ``target_tokens``."""
        ranked = _by_relevance(chunks)
        if total_tokens(ranked) <= budget.target_tokens:
            return ranked

        kept: list[ContextChunk] = []
        running = 0
        for chunk in ranked:
            if running + chunk.token_count <= budget.target_tokens:
                kept.append(chunk)
                running += chunk.token_count
                continue
            remaining = budget.target_tokens - running
            if remaining > self._config.min_truncated_tokens:
                kept.append(
                    truncate_chunk(chunk, remaining, self._config.chars_per_token)
                )
            break
        return kept

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_budget(
        budget: ContextBudget | Mapping[str, Any] | None,
    ) -> ContextBudget:
        if budget is None:
            return ContextBudget()
        if isinstance(budget, ContextBudget):
            return budget
        try:
            return ContextBudget.model_validate(dict(budget))
        except ValidationError as exc:
            raise ConfigurationError(f"invalid context budget: {exc}") from exc

    def _demote(self, chunk: ContextChunk, weights: PriorityWeights) -> ContextChunk:
        raw = dict(chunk.metadata.get(SCORES_KEY, {}))
        raw["diversity_score"] = self._config.demoted_diversity_score
        scores = ChunkScores(**raw)
        return chunk.model_copy(
            update={
                "relevance_score": self._scorer.combine(scores, weights),
                "metadata": {**chunk.metadata, SCORES_KEY: scores.as_dict()},
            }
        )

    def _build_result(
        self,
        chunks: list[ContextChunk],
        *,
        original_chunks: int,
        original_tokens: int,
        redundancy_removed: int,
        query_context: QueryContext,
        budget: ContextBudget,
        start: float,
    ) -> OptimizedContext:
        final_tokens = total_tokens(chunks)
        ratio = final_tokens / original_tokens if original_tokens > 0 else 1.0
        elapsed_ms = (perf_counter() - start) * 1000
        record_latency(operation="context.assemble", duration_ms=elapsed_ms)
        return OptimizedContext(
            chunks=chunks,
            total_tokens=final_tokens,
            compression_ratio=ratio,
            relevance_score=mean_relevance(chunks),
            strategy=self.assembly_strategy(query_context),
            metadata=ContextMetadata(
                elapsed_ms=elapsed_ms,
                strategies_used=self.strategies_used(query_context, budget),
                pruning_stats=PruningStats(
                    original_chunks=original_chunks,
                    pruned_chunks=original_chunks - len(chunks),
                    redundancy_removed=redundancy_removed,
                ),
                chunks_compressed=sum(
                    1 for chunk in chunks if chunk.metadata.get("compressed")
                ),
            ),
        )

    @staticmethod
    def assembly_strategy(query_context: QueryContext) -> str:
        if query_context.urgency is Urgency.critical:
            return "priority-first"
        if len(query_context.conversation_history) > 5:
            return "conversation-aware"
        if query_context.domain:
            return "domain-focused"
        return "balanced-optimization"

    def strategies_used(
        self, query_context: QueryContext, budget: ContextBudget
    ) -> list[str]:
        strategies = ["semantic-scoring", "diversity-filter", "redundancy-removal"]
        if budget.max_tokens < self._config.aggressive_compression_below:
            strategies.append("aggressive-compression")
        if query_context.conversation_history:
            strategies.append("conversation-context")
        if query_context.domain:
            strategies.append("domain-filtering")
        return strategies
