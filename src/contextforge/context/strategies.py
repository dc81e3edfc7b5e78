"""Pluggable optimization strategies for the context optimizer.

Each strategy is a pure transform ``execute(chunks, now=...) -> StrategyResult``
over an immutable chunk list. Configuration is a flat mapping merged onto the
strategy's defaults; :meth:`BaseOptimizationStrategy.validate` rejects bad
values before the optimizer runs anything.
"""

from __future__ import annotations

import math
import re
from abc import ABC
from abc import abstractmethod
from collections.abc import Mapping
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from typing import ClassVar

from contextforge.context.text import CONCEPT_VOCABULARY
from contextforge.context.text import GENERAL_CONCEPT
from contextforge.context.text import chunk_similarity
from contextforge.context.text import extract_main_concept
from contextforge.context.text import max_similarity
from contextforge.errors import ConfigurationError
from contextforge.models.context import ContextChunk
from contextforge.models.context import estimate_tokens


@dataclass(frozen=True)
class StrategyResult:
    chunks: list[ContextChunk]
    chunks_removed: int = 0
    chunks_compressed: int = 0


def _by_relevance(chunks: Sequence[ContextChunk]) -> list[ContextChunk]:
    return sorted(chunks, key=lambda c: c.relevance_score, reverse=True)


class BaseOptimizationStrategy(ABC):
    """Common configuration handling for every strategy."""

    name: ClassVar[str]
    priority: ClassVar[int]
    default_config: ClassVar[Mapping[str, Any]] = {}

    def __init__(self, config: Mapping[str, Any] | None = None) -> None:
        self.config: dict[str, Any] = {**self.default_config, **(config or {})}

    @abstractmethod
    def execute(
        self, chunks: Sequence[ContextChunk], *, now: datetime
    ) -> StrategyResult:
        """Transform *chunks*; must not mutate the input."""

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` when the config is unusable."""
        errors = self.config_errors()
        if errors:
            raise ConfigurationError(f"{self.name}: {'; '.join(errors)}")

    def config_errors(self) -> list[str]:
        return []

    # -- shared checks --

    def _unit_interval(self, *keys: str) -> list[str]:
        return [
            f"{key} must be between 0 and 1"
            for key in keys
            if not 0.0 <= float(self.config[key]) <= 1.0
        ]

    def _positive(self, *keys: str) -> list[str]:
        return [f"{key} must be positive" for key in keys if self.config[key] <= 0]


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class RedundancyEliminationStrategy(BaseOptimizationStrategy):
    """Drop near-duplicates, then keep an MMR-ranked subset."""

    name = "redundancy-elimination"
    priority = 1
    default_config = {
        "similarity_threshold": 0.85,
        "max_pairs": 10,
        "relevance_weight": 0.7,
        "redundancy_weight": 0.3,
    }

    def config_errors(self) -> list[str]:
        return self._unit_interval("similarity_threshold") + self._positive("max_pairs")

    def execute(
        self, chunks: Sequence[ContextChunk], *, now: datetime
    ) -> StrategyResult:
        ranked = _by_relevance(chunks)
        if len(ranked) <= 1:
            return StrategyResult(chunks=ranked)

        threshold = self.config["similarity_threshold"]
        distinct: list[ContextChunk] = []
        for chunk in ranked:
            if all(chunk_similarity(chunk, kept) <= threshold for kept in distinct):
                distinct.append(chunk)

        selected = [distinct[0]]
        remaining = distinct[1:]
        relevance_weight = self.config["relevance_weight"]
        redundancy_weight = self.config["redundancy_weight"]
        while remaining and len(selected) < self.config["max_pairs"]:
            best_index = 0
            best_score = float("-inf")
            for index, chunk in enumerate(remaining):
                score = relevance_weight * chunk.relevance_score - (
                    redundancy_weight * max_similarity(chunk, selected)
                )
                if score > best_score:
                    best_score = score
                    best_index = index
            selected.append(remaining.pop(best_index))

        return StrategyResult(
            chunks=selected, chunks_removed=len(ranked) - len(selected)
        )


class TemporalFilteringStrategy(BaseOptimizationStrategy):
    """Blend relevance with recency and retain the top share."""

    name = "temporal-filtering"
    priority = 2
    default_config = {
        "age_decay_factor": 1.0,
        "relevance_weight": 0.7,
        "recency_weight": 0.3,
        "retain_ratio": 0.8,
    }

    def config_errors(self) -> list[str]:
        return self._positive("age_decay_factor") + self._unit_interval("retain_ratio")

    def recency(self, chunk: ContextChunk, now: datetime) -> float:
        age_hours = max((now - chunk.timestamp).total_seconds() / 3600, 0.0)
        # age_decay_factor is expressed in weeks
        return math.exp(-age_hours / (24 * 7 * self.config["age_decay_factor"]))

    def execute(
        self, chunks: Sequence[ContextChunk], *, now: datetime
    ) -> StrategyResult:
        if not chunks:
            return StrategyResult(chunks=[])
        blended = sorted(
            chunks,
            key=lambda c: (
                self.config["relevance_weight"] * c.relevance_score
                + self.config["recency_weight"] * self.recency(c, now)
            ),
            reverse=True,
        )
        keep = max(1, math.ceil(len(blended) * self.config["retain_ratio"]))
        kept = blended[:keep]
        return StrategyResult(chunks=kept, chunks_removed=len(chunks) - len(kept))


class RelevanceBoostingStrategy(BaseOptimizationStrategy):
    """Boost strong chunks, dampen weak ones and drop what falls below the floor."""

    name = "relevance-boosting"
    priority = 3
    default_config = {
        "threshold": 0.7,
        "boost_factor": 1.2,
        "dampen_factor": 0.8,
        "min_relevance": 0.3,
    }

    def config_errors(self) -> list[str]:
        return (
            self._unit_interval("threshold", "min_relevance")
            + self._positive("boost_factor", "dampen_factor")
        )

    def adjusted(self, score: float) -> float:
        threshold = self.config["threshold"]
        if score >= threshold:
            return min(1.0, score * self.config["boost_factor"])
        if score < threshold / 2:
            return score * self.config["dampen_factor"]
        return score

    def execute(
        self, chunks: Sequence[ContextChunk], *, now: datetime
    ) -> StrategyResult:
        kept: list[ContextChunk] = []
        for chunk in chunks:
            score = self.adjusted(chunk.relevance_score)
            if score >= self.config["min_relevance"]:
                kept.append(chunk.model_copy(update={"relevance_score": score}))
        return StrategyResult(chunks=kept, chunks_removed=len(chunks) - len(kept))


FILLER_PHRASES: tuple[str, ...] = (
    "as a matter of fact",
    "it is important to note that",
    "it should be noted that",
    "needless to say",
    "for what it's worth",
    "in order to",
    "at the end of the day",
    "basically",
    "actually",
    "really",
    "very",
    "just",
)

_WHITESPACE_RE = re.compile(r"\s+")
_SPACE_BEFORE_PUNCT_RE = re.compile(r"\s+([,.;:!?])")


def strip_filler(content: str, phrases: Sequence[str] = FILLER_PHRASES) -> str:
    """Remove filler phrases (whole words, case-insensitive) and collapse whitespace."""
    text = content
    for phrase in phrases:
        replacement = "to" if phrase == "in order to" else ""
        text = re.sub(
            rf"\b{re.escape(phrase)}\b", replacement, text, flags=re.IGNORECASE
        )
    text = _WHITESPACE_RE.sub(" ", text)
    return _SPACE_BEFORE_PUNCT_RE.sub(r"\1", text).strip()


class ContentCompressionStrategy(BaseOptimizationStrategy):
    """Strip filler from long chunks when it saves enough tokens."""

    name = "content-compression"
    priority = 4
    default_config = {
        "min_tokens": 100,
        "max_compression_ratio": 0.9,
        "chars_per_token": 4,
    }

    def config_errors(self) -> list[str]:
        errors = self._positive("chars_per_token")
        if self.config["min_tokens"] < 0:
            errors.append("min_tokens must not be negative")
        if not 0.0 < self.config["max_compression_ratio"] <= 1.0:
            errors.append("max_compression_ratio must be in (0, 1]")
        return errors

    def execute(
        self, chunks: Sequence[ContextChunk], *, now: datetime
    ) -> StrategyResult:
        result: list[ContextChunk] = []
        compressed = 0
        for chunk in chunks:
            candidate = self._compress(chunk)
            if candidate is not chunk:
                compressed += 1
            result.append(candidate)
        return StrategyResult(chunks=result, chunks_compressed=compressed)

    def _compress(self, chunk: ContextChunk) -> ContextChunk:
        if chunk.token_count <= self.config["min_tokens"]:
            return chunk
        content = strip_filler(chunk.content)
        tokens = estimate_tokens(content, self.config["chars_per_token"])
        ratio = tokens / chunk.token_count
        if tokens >= chunk.token_count or ratio > self.config["max_compression_ratio"]:
            return chunk
        metadata = dict(chunk.metadata)
        metadata["compressed"] = True
        metadata.setdefault("original_token_count", chunk.token_count)
        return chunk.model_copy(
            update={"content": content, "token_count": tokens, "metadata": metadata}
        )


class SemanticDeduplicationStrategy(BaseOptimizationStrategy):
    """Keep the most relevant chunk per dominant concept.

    Chunks matching no vocabulary concept are left alone.
    """

    name = "semantic-deduplication"
    priority = 5
    default_config = {"vocabulary": CONCEPT_VOCABULARY}

    def config_errors(self) -> list[str]:
        if not self.config["vocabulary"]:
            return ["vocabulary must not be empty"]
        return []

    def execute(
        self, chunks: Sequence[ContextChunk], *, now: datetime
    ) -> StrategyResult:
        best: dict[str, ContextChunk] = {}
        for chunk in chunks:
            concept = extract_main_concept(chunk.content, self.config["vocabulary"])
            if concept == GENERAL_CONCEPT:
                continue
            current = best.get(concept)
            if current is None or chunk.relevance_score > current.relevance_score:
                best[concept] = chunk

        winners = {chunk.id for chunk in best.values()}
        kept = [
            chunk
            for chunk in chunks
            if chunk.id in winners
            or extract_main_concept(chunk.content, self.config["vocabulary"])
            == GENERAL_CONCEPT
        ]
        return StrategyResult(chunks=kept, chunks_removed=len(chunks) - len(kept))


DEFAULT_STRATEGIES: tuple[type[BaseOptimizationStrategy], ...] = (
    RedundancyEliminationStrategy,
    TemporalFilteringStrategy,
    RelevanceBoostingStrategy,
    ContentCompressionStrategy,
    SemanticDeduplicationStrategy,
)
