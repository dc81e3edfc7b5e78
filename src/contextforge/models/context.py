"""Context assembly data models."""

from __future__ import annotations

import math
import uuid
from datetime import datetime
from datetime import UTC
from enum import Enum
from typing import Any
from typing import Literal

from pydantic import BaseModel
from pydantic import Field
from pydantic import model_validator


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def estimate_tokens(text: str, chars_per_token: int = 4) -> int:
    """Rough token estimate used when a caller does not supply a count."""
    if not text:
        return 0
    return max(1, math.ceil(len(text) / chars_per_token))


class Urgency(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class ContextChunk(BaseModel):
    """One candidate piece of information for the prompt context."""

    id: str = Field(
        default_factory=lambda: f"chunk_{uuid.uuid4().hex}",
        description="Unique identifier, auto-generated as chunk_{uuid4_hex}.",
    )
    content: str = Field(description="Raw text of the chunk.")
    source: str = Field(
        default="unknown",
        description="Origin tag (vector_search, episodic_memory, official_docs, ...).",
    )
    relevance_score: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Relevance in [0, 1]; rewritten as the chunk moves through a pipeline.",
    )
    token_count: int = Field(
        default=-1,
        description="Token length; estimated from the content when omitted.",
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the underlying information was produced.",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form annotations (domain, quality flags, scores).",
    )

    @model_validator(mode="after")
    def _fill_token_count(self) -> ContextChunk:
        if self.token_count < 0:
            self.token_count = estimate_tokens(self.content)
        if self.content and self.token_count == 0:
            raise ValueError("token_count must be > 0 for non-empty content")
        if self.timestamp.tzinfo is None:
            self.timestamp = self.timestamp.replace(tzinfo=UTC)
        return self


class ConversationTurn(BaseModel):
    """One message of the running conversation."""

    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)


class QueryContext(BaseModel):
    """What the caller is asking and the conversation around it."""

    query: str = Field(description="The user's current query.")
    user_id: str = Field(description="Caller identity.")
    session_id: str = Field(description="Conversation session identifier.")
    conversation_history: list[ConversationTurn] = Field(
        default_factory=list,
        description="Ordered conversation turns, oldest first.",
    )
    domain: str | None = Field(
        default=None,
        description="Domain tag used for domain relevance scoring.",
    )
    urgency: Urgency = Field(default=Urgency.medium)
    agency_id: str | None = Field(
        default=None,
        description="Tenant used when retrieving context on the caller's behalf.",
    )


class PriorityWeights(BaseModel):
    """Weights of the scored dimensions when combining a chunk score."""

    relevance: float = Field(default=0.4, ge=0.0)
    recency: float = Field(default=0.2, ge=0.0)
    diversity: float = Field(default=0.2, ge=0.0)
    authority: float = Field(default=0.2, ge=0.0)


class ContextBudget(BaseModel):
    """Token limits for one assembled context: max >= target >= min."""

    max_tokens: int = Field(default=8000, gt=0)
    target_tokens: int = Field(default=6000, gt=0)
    min_tokens: int = Field(default=1000, ge=0)
    priority_weights: PriorityWeights = Field(default_factory=PriorityWeights)

    @model_validator(mode="after")
    def _check_ordering(self) -> ContextBudget:
        if not self.max_tokens >= self.target_tokens >= self.min_tokens:
            raise ValueError(
                "budget requires max_tokens >= target_tokens >= min_tokens "
                f"(got {self.max_tokens}/{self.target_tokens}/{self.min_tokens})"
            )
        return self


class PruningStats(BaseModel):
    original_chunks: int = 0
    pruned_chunks: int = 0
    redundancy_removed: int = 0


class ContextMetadata(BaseModel):
    """Bookkeeping about how an optimized context was produced."""

    elapsed_ms: float = 0.0
    strategies_used: list[str] = Field(default_factory=list)
    pruning_stats: PruningStats = Field(default_factory=PruningStats)
    chunks_compressed: int = 0


class OptimizedContext(BaseModel):
    """The ranked, budget-bounded context handed to the prompt builder."""

    chunks: list[ContextChunk] = Field(default_factory=list)
    total_tokens: int = 0
    compression_ratio: float = Field(
        default=1.0,
        description="final_tokens / original_tokens; 1.0 when the input had no tokens.",
    )
    relevance_score: float = Field(
        default=0.0,
        description="Mean relevance of the selected chunks.",
    )
    strategy: str = "balanced-optimization"
    metadata: ContextMetadata = Field(default_factory=ContextMetadata)

    def render(self, separator: str = "\n\n") -> str:
        """Concatenate chunk contents in rank order."""
        return separator.join(chunk.content for chunk in self.chunks)


class ContextCompressionResult(BaseModel):
    """Before/after view of an optimizer pass over a chunk set."""

    compressed: bool
    original_content: str
    compressed_content: str
    original_tokens: int
    compressed_tokens: int
    compression_ratio: float
    quality_preserved: float
