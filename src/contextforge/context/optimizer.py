"""Context optimizer: a second, strategy-driven pass over a chunk set."""

from __future__ import annotations

import logging
from collections.abc import Callable
from collections.abc import Mapping
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from datetime import UTC
from time import perf_counter
from typing import Any

from contextforge.config import OptimizerConfig
from contextforge.context.strategies import BaseOptimizationStrategy
from contextforge.context.strategies import DEFAULT_STRATEGIES
from contextforge.context.text import mean_relevance
from contextforge.context.text import total_tokens
from contextforge.context.text import truncate_chunk
from contextforge.errors import ConfigurationError
from contextforge.models.context import ContextChunk
from contextforge.models.context import ContextCompressionResult
from contextforge.models.context import ContextMetadata
from contextforge.models.context import OptimizedContext
from contextforge.models.context import PruningStats
from contextforge.observability import increment
from contextforge.observability import record_latency

logger = logging.getLogger(__name__)

OPTIMIZED_STRATEGY_TAG = "optimized-context"


@dataclass(frozen=True)
class StrategySpec:
    """A strategy class plus its scheduling options."""

    strategy_cls: type[BaseOptimizationStrategy]
    priority: int
    enabled: bool = True
    config: Mapping[str, Any] | None = None

    @property
    def name(self) -> str:
        return self.strategy_cls.name

    def build(self) -> BaseOptimizationStrategy:
        return self.strategy_cls(self.config)


def default_specs() -> dict[str, StrategySpec]:
    return {
        cls.name: StrategySpec(strategy_cls=cls, priority=cls.priority)
        for cls in DEFAULT_STRATEGIES
    }


def merge_strategy_overrides(
    overrides: Sequence[Mapping[str, Any]] | None,
) -> list[StrategySpec]:
    """Merge partial ``{name, priority, enabled, config}`` overrides onto defaults.

    Overrides for unknown strategy names are logged and ignored. The result
    is ordered by ascending priority.
    """
    specs = default_specs()
    for override in overrides or ():
        name = override.get("name")
        current = specs.get(name) if name else None
        if current is None:
            logger.warning("Ignoring override for unknown strategy %r", name)
            continue
        config = {**(current.config or {}), **(override.get("config") or {})}
        specs[name] = StrategySpec(
            strategy_cls=current.strategy_cls,
            priority=int(override.get("priority", current.priority)),
            enabled=bool(override.get("enabled", current.enabled)),
            config=config,
        )
    return sorted(specs.values(), key=lambda spec: spec.priority)


class ContextOptimizer:
    """Runs enabled strategies in priority order, then trims to the target."""

    def __init__(
        self,
        config: OptimizerConfig | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or OptimizerConfig()
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    async def optimize_context(
        self,
        chunks: Sequence[ContextChunk],
        target_tokens: int,
        strategy_overrides: Sequence[Mapping[str, Any]] | None = None,
    ) -> OptimizedContext:
        if target_tokens <= 0:
            raise ConfigurationError("target_tokens must be a positive number")

        strategies = [
            spec.build() for spec in merge_strategy_overrides(strategy_overrides)
            if spec.enabled
        ]
        for strategy in strategies:
            strategy.validate()

        start = perf_counter()
        now = self._clock()
        original = list(chunks)
        current = list(original)
        applied: list[str] = []
        removed = 0
        compressed = 0

        for strategy in strategies:
            try:
                result = strategy.execute(current, now=now)
            except Exception:
                logger.exception("Strategy %s failed; skipping", strategy.name)
                increment("optimizer.strategy_failures")
                continue
            current = result.chunks
            applied.append(strategy.name)
            removed += result.chunks_removed
            compressed += result.chunks_compressed
            logger.debug(
                "Applied %s: removed %d, compressed %d",
                strategy.name,
                result.chunks_removed,
                result.chunks_compressed,
            )

        if total_tokens(current) > target_tokens:
            current = self.trim_to_target(current, target_tokens)
            applied.append("final-trim")

        original_tokens = total_tokens(original)
        final_tokens = total_tokens(current)
        elapsed_ms = (perf_counter() - start) * 1000
        record_latency(operation="context.optimize", duration_ms=elapsed_ms)
        return OptimizedContext(
            chunks=current,
            total_tokens=final_tokens,
            compression_ratio=(
                final_tokens / original_tokens if original_tokens > 0 else 1.0
            ),
            relevance_score=mean_relevance(current),
            strategy=OPTIMIZED_STRATEGY_TAG,
            metadata=ContextMetadata(
                elapsed_ms=elapsed_ms,
                strategies_used=applied,
                pruning_stats=PruningStats(
                    original_chunks=len(original),
                    pruned_chunks=len(original) - len(current),
                    redundancy_removed=removed,
                ),
                chunks_compressed=compressed,
            ),
        )

    def trim_to_target(
        self, chunks: Sequence[ContextChunk], target_tokens: int
    ) -> list[ContextChunk]:
        """Greedy fill by relevance; the overflowing chunk is truncated if room remains."""
        ranked = sorted(chunks, key=lambda c: c.relevance_score, reverse=True)
        kept: list[ContextChunk] = []
        running = 0
        for chunk in ranked:
            if running + chunk.token_count <= target_tokens:
                kept.append(chunk)
                running += chunk.token_count
                continue
            remaining = target_tokens - running
            if remaining > self._config.min_truncated_tokens:
                kept.append(truncate_chunk(chunk, remaining))
            break
        return kept

    async def compress_context(
        self, chunks: Sequence[ContextChunk], target_tokens: int
    ) -> ContextCompressionResult:
        """Optimize *chunks* and report the before/after content."""
        result = await self.optimize_context(chunks, target_tokens)
        original_tokens = total_tokens(chunks)
        return ContextCompressionResult(
            compressed=result.total_tokens < original_tokens,
            original_content=" ".join(chunk.content for chunk in chunks),
            compressed_content=" ".join(chunk.content for chunk in result.chunks),
            original_tokens=original_tokens,
            compressed_tokens=result.total_tokens,
            compression_ratio=result.compression_ratio,
            quality_preserved=result.relevance_score,
        )
