"""Heuristics that promote repeated episodic observations into durable memory."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field

from contextforge.models.memory import EpisodicMemory
from contextforge.models.memory import InteractionType
from contextforge.models.memory import MemoryOutcome
from contextforge.models.memory import ProceduralMemory
from contextforge.models.memory import SemanticMemory

CONSOLIDATION_SOURCE = "episodic_consolidation"
BEHAVIOR_SOURCE = "behavior_analysis"


@dataclass(frozen=True)
class ClusterPattern:
    """Keyword trigger that groups episodic rows under one semantic concept."""

    keywords: tuple[str, ...]
    concept: str
    category: str

    def matches(self, content: str) -> bool:
        lowered = content.lower()
        return any(keyword in lowered for keyword in self.keywords)


DEFAULT_CLUSTER_PATTERNS: tuple[ClusterPattern, ...] = (
    ClusterPattern(("booking", "reservation"), "Hotel Booking Process", "business_process"),
    ClusterPattern(("payment", "invoice", "refund"), "Payment Handling", "business_process"),
    ClusterPattern(("cancellation", "cancel"), "Cancellation Handling", "business_process"),
)  # fmt: skip


@dataclass
class ConsolidationReport:
    """What one ``consolidate_memories`` run did."""

    agency_id: str
    user_id: str
    candidates: int = 0
    semantic_ids: list[str] = field(default_factory=list)
    procedural_ids: list[str] = field(default_factory=list)
    consolidated_ids: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.semantic_ids or self.procedural_ids or self.consolidated_ids)


def is_candidate(memory: EpisodicMemory, *, threshold: int) -> bool:
    return (
        memory.access_count >= threshold
        and memory.outcome is MemoryOutcome.success
        and memory.consolidation_count < threshold
    )


def cluster_memories(
    memories: Sequence[EpisodicMemory],
    *,
    agency_id: str,
    confidence: float,
    patterns: Sequence[ClusterPattern] = DEFAULT_CLUSTER_PATTERNS,
) -> list[SemanticMemory]:
    """One semantic record per pattern hit, carrying the matching contents as facts."""
    facts: dict[ClusterPattern, list[str]] = defaultdict(list)
    for memory in memories:
        for pattern in patterns:
            if pattern.matches(memory.content):
                facts[pattern].append(memory.content)

    return [
        SemanticMemory(
            agency_id=agency_id,
            concept=pattern.concept,
            category=pattern.category,
            facts=facts[pattern],
            confidence=confidence,
            source=CONSOLIDATION_SOURCE,
        )
        for pattern in patterns
        if facts[pattern]
    ]


def communication_preferences(
    recent: Sequence[EpisodicMemory],
    *,
    agency_id: str,
    min_conversations: int,
) -> SemanticMemory | None:
    conversations = [
        m for m in recent if m.interaction_type is InteractionType.conversation
    ]
    if len(conversations) <= min_conversations:
        return None
    return SemanticMemory(
        agency_id=agency_id,
        concept="Communication Preferences",
        category="user_behavior",
        facts=["User prefers detailed responses", "User asks follow-up questions"],
        confidence=0.7,
        source=BEHAVIOR_SOURCE,
    )


def procedural_patterns(
    batch: Sequence[EpisodicMemory],
    *,
    agency_id: str,
    min_occurrences: int,
    default_duration: float = 300.0,
) -> list[ProceduralMemory]:
    """Successful task rows grouped by ``context["taskType"]``."""
    groups: dict[str, list[EpisodicMemory]] = defaultdict(list)
    for memory in batch:
        if (
            memory.interaction_type is InteractionType.task
            and memory.outcome is MemoryOutcome.success
        ):
            task_type = str(memory.context.get("taskType") or "general")
            groups[task_type].append(memory)

    patterns: list[ProceduralMemory] = []
    for task_type, memories in groups.items():
        if len(memories) < min_occurrences:
            continue
        durations = [
            float(m.context["duration"])
            for m in memories
            if isinstance(m.context.get("duration"), (int, float))
        ]
        patterns.append(
            ProceduralMemory(
                agency_id=agency_id,
                task_type=task_type,
                pattern=f"Successful {task_type} execution pattern",
                steps=["Analyze requirements", "Execute task", "Verify results"],
                success_rate=1.0,
                average_duration=(
                    sum(durations) / len(durations) if durations else default_duration
                ),
                prerequisites=["User authentication", "Valid permissions"],
                outcomes=["Task completed successfully", "Results verified"],
                usage_count=len(memories),
            )
        )
    return patterns
