"""Context assembly and optimization."""

from contextforge.context.assembler import ContextAssembler
from contextforge.context.optimizer import ContextOptimizer
from contextforge.context.optimizer import merge_strategy_overrides
from contextforge.context.retrieval import hits_to_chunks
from contextforge.context.retrieval import NoopVectorSearch
from contextforge.context.retrieval import SearchHit
from contextforge.context.retrieval import VectorSearch
from contextforge.context.scoring import ChunkScorer
from contextforge.context.scoring import ChunkScores
from contextforge.context.strategies import BaseOptimizationStrategy
from contextforge.context.strategies import ContentCompressionStrategy
from contextforge.context.strategies import RedundancyEliminationStrategy
from contextforge.context.strategies import RelevanceBoostingStrategy
from contextforge.context.strategies import SemanticDeduplicationStrategy
from contextforge.context.strategies import StrategyResult
from contextforge.context.strategies import TemporalFilteringStrategy

__all__ = [
    "BaseOptimizationStrategy",
    "ChunkScorer",
    "ChunkScores",
    "ContentCompressionStrategy",
    "ContextAssembler",
    "ContextOptimizer",
    "NoopVectorSearch",
    "RedundancyEliminationStrategy",
    "RelevanceBoostingStrategy",
    "SearchHit",
    "SemanticDeduplicationStrategy",
    "StrategyResult",
    "TemporalFilteringStrategy",
    "VectorSearch",
    "hits_to_chunks",
    "merge_strategy_overrides",
]
