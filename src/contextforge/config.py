"""Configuration for every contextforge subsystem.

Each subsystem gets one frozen dataclass. Heuristic constants live here
rather than in the algorithms; override them by passing keyword arguments.
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field


@dataclass(frozen=True)
class LLMConfig:
    """LLM provider settings shared by every agent call."""

    provider: str = "openai"
    model: str = "gpt-4o"
    api_key: str | None = None
    base_url: str = "https://api.openai.com/v1"
    temperature: float = 0.2
    max_tokens: int = 4096
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class AssemblyConfig:
    """Heuristic constants of the context assembly pipeline."""

    # Scoring
    semantic_jaccard_weight: float = 0.6
    semantic_bm25_weight: float = 0.4
    conversation_window: int = 5
    conversation_topic_limit: int = 10
    conversation_topic_bonus: float = 0.2
    recency_half_life_hours: float = 168.0
    min_temporal_score: float = 0.1
    conversational_bonus_weight: float = 0.1
    domain_bonus_weight: float = 0.1
    authority_sources: tuple[str, ...] = (
        "official_docs",
        "expert_review",
        "verified_source",
    )
    # Diversity / MMR
    diversity_threshold: float = 0.8
    demoted_diversity_score: float = 0.3
    mmr_relevance_weight: float = 0.7
    mmr_redundancy_weight: float = 0.3
    mmr_max_chunks: int = 10
    # Compression
    chars_per_token: int = 4
    min_truncated_tokens: int = 100
    aggressive_compression_below: int = 4000


@dataclass(frozen=True)
class OptimizerConfig:
    """Final-trim behaviour of the optimizer (strategy defaults live in the strategies)."""

    min_truncated_tokens: int = 50


@dataclass(frozen=True)
class MemoryConfig:
    """Tuneable parameters for the tiered memory store."""

    consolidation_threshold: int = 5
    recency_half_life_hours: float = 168.0
    episodic_cache_size: int = 1000
    procedural_cache_size: int = 10
    episodic_query_limit: int = 10
    semantic_query_limit: int = 5
    procedural_query_limit: int = 3
    semantic_min_relevance: float = 0.3
    # Consolidation heuristics
    cluster_confidence: float = 0.8
    communication_window_days: int = 7
    communication_min_conversations: int = 5
    procedural_min_occurrences: int = 3
    consolidation_scan_limit: int = 200


@dataclass(frozen=True)
class RedisConfig:
    """Connection and key layout for the Redis-backed memory repository."""

    url: str = "redis://localhost:6379"
    key_prefix: str = "contextforge"


@dataclass(frozen=True)
class CoordinatorConfig:
    """Execution limits for multi-agent coordination."""

    max_parallel_tasks: int = 3
    synthesis_timeout_seconds: float = 30.0
    synthesis_max_retries: int = 1
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 10.0
    context_search_limit: int = 10
    task_type_weights: dict[str, float] = field(
        default_factory=lambda: {
            "search": 0.3,
            "analyze": 0.3,
            "synthesize": 0.25,
            "validate": 0.15,
            "execute": 0.2,
        }
    )
    default_task_weight: float = 0.25


@dataclass(frozen=True)
class AuditConfig:
    """Settings for the JSONL audit logger."""

    file_path: str = "contextforge_audit.jsonl"
    enabled: bool = True
