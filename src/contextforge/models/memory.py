"""Tiered memory data models.

Every record and query carries an ``agency_id``; the field is required and
must be non-empty so no memory operation can run without a tenant. Tenant ids
may not contain ``:``.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from datetime import UTC
from enum import Enum
from typing import Annotated
from typing import Any
from typing import Union

from pydantic import AfterValidator
from pydantic import BaseModel
from pydantic import Field
from pydantic import model_validator

# Tenant ids become Redis key segments, so the separator is not allowed.
TenantId = Annotated[str, Field(min_length=1, pattern=r"^[^:]+$")]


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


# Naive datetimes are read as UTC.
UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class MemoryType(str, Enum):
    episodic = "episodic"
    semantic = "semantic"
    procedural = "procedural"


class InteractionType(str, Enum):
    conversation = "conversation"
    task = "task"
    decision = "decision"
    feedback = "feedback"


class MemoryOutcome(str, Enum):
    success = "success"
    failure = "failure"
    partial = "partial"
    unknown = "unknown"


class EpisodicMemory(BaseModel):
    """One observed interaction (conversation turn, task run, decision)."""

    id: str = Field(default_factory=lambda: f"epi_{uuid.uuid4().hex}")
    agency_id: TenantId = Field(description="Owning tenant.")
    user_id: str = Field(description="User the interaction belongs to.")
    session_id: str = Field(default="", description="Conversation session.")
    interaction_type: InteractionType = InteractionType.conversation
    content: str
    context: dict[str, Any] = Field(
        default_factory=dict,
        description="Structured context (e.g. taskType for task interactions).",
    )
    outcome: MemoryOutcome = MemoryOutcome.unknown
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    consolidation_count: int = Field(default=0, ge=0)
    access_count: int = Field(default=0, ge=0)
    last_accessed: UtcDatetime = Field(default_factory=_utcnow)
    timestamp: UtcDatetime = Field(default_factory=_utcnow)


class Relationship(BaseModel):
    """Weighted edge from a semantic concept to another concept."""

    related_concept: str
    relationship_type: str
    strength: float = Field(default=0.5, ge=0.0, le=1.0)

    @property
    def key(self) -> tuple[str, str]:
        return (self.related_concept, self.relationship_type)


class SemanticMemory(BaseModel):
    """Durable factual knowledge about one concept."""

    id: str = Field(default_factory=lambda: f"sem_{uuid.uuid4().hex}")
    agency_id: TenantId = Field(description="Owning tenant.")
    concept: str = Field(min_length=1)
    category: str = Field(min_length=1)
    facts: list[str] = Field(
        default_factory=list,
        description="Distinct facts, insertion ordered.",
    )
    relationships: list[Relationship] = Field(default_factory=list)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    source: str = "unknown"
    last_updated: UtcDatetime = Field(default_factory=_utcnow)
    access_count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _dedupe_facts(self) -> SemanticMemory:
        self.facts = list(dict.fromkeys(self.facts))
        return self

    @property
    def natural_key(self) -> tuple[str, str, str]:
        return (self.agency_id, self.concept, self.category)


class ProceduralMemory(BaseModel):
    """A learned way of carrying out one type of task."""

    id: str = Field(default_factory=lambda: f"proc_{uuid.uuid4().hex}")
    agency_id: TenantId = Field(description="Owning tenant.")
    task_type: str = Field(min_length=1)
    pattern: str
    steps: list[str] = Field(default_factory=list)
    success_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    average_duration: float = Field(
        default=0.0,
        ge=0.0,
        description="Average duration in seconds.",
    )
    prerequisites: list[str] = Field(default_factory=list)
    outcomes: list[str] = Field(default_factory=list)
    usage_count: int = Field(default=0, ge=0)
    last_used: UtcDatetime = Field(default_factory=_utcnow)


MemoryRecord = Union[EpisodicMemory, SemanticMemory, ProceduralMemory]


class TimeRange(BaseModel):
    start: UtcDatetime
    end: UtcDatetime

    @model_validator(mode="after")
    def _check_order(self) -> TimeRange:
        if self.start > self.end:
            raise ValueError("time_range.start must not be after time_range.end")
        return self


class MemoryQuery(BaseModel):
    """Lookup against one memory tier of one tenant."""

    type: MemoryType
    query: str = Field(
        description="Free text; for procedural memory the exact task type.",
    )
    agency_id: TenantId
    user_id: str | None = None
    session_id: str | None = None
    limit: int | None = Field(default=None, gt=0)
    min_relevance: float | None = Field(default=None, ge=0.0, le=1.0)
    time_range: TimeRange | None = None


class MemoryResult(BaseModel):
    """A memory record annotated with query-time scores."""

    type: MemoryType
    record: MemoryRecord
    relevance_score: float
    recency_score: float
    importance_score: float
