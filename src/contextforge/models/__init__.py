"""Shared data models for context, memory and agents."""

from contextforge.models.agents import AgentPerformance
from contextforge.models.agents import AgentProfile
from contextforge.models.agents import AgentTask
from contextforge.models.agents import Complexity
from contextforge.models.agents import CoordinationPlan
from contextforge.models.agents import CoordinationResult
from contextforge.models.agents import CoordinationStats
from contextforge.models.agents import RiskLevel
from contextforge.models.agents import TaskAnalysis
from contextforge.models.agents import TaskPriority
from contextforge.models.agents import TaskResult
from contextforge.models.agents import TaskStatus
from contextforge.models.agents import TaskType
from contextforge.models.context import ContextBudget
from contextforge.models.context import ContextChunk
from contextforge.models.context import ContextCompressionResult
from contextforge.models.context import ContextMetadata
from contextforge.models.context import ConversationTurn
from contextforge.models.context import estimate_tokens
from contextforge.models.context import OptimizedContext
from contextforge.models.context import PriorityWeights
from contextforge.models.context import PruningStats
from contextforge.models.context import QueryContext
from contextforge.models.context import Urgency
from contextforge.models.memory import EpisodicMemory
from contextforge.models.memory import InteractionType
from contextforge.models.memory import MemoryOutcome
from contextforge.models.memory import MemoryQuery
from contextforge.models.memory import MemoryRecord
from contextforge.models.memory import MemoryResult
from contextforge.models.memory import MemoryType
from contextforge.models.memory import ProceduralMemory
from contextforge.models.memory import Relationship
from contextforge.models.memory import SemanticMemory
from contextforge.models.memory import TimeRange

__all__ = [
    "AgentPerformance",
    "AgentProfile",
    "AgentTask",
    "Complexity",
    "ContextBudget",
    "ContextChunk",
    "ContextCompressionResult",
    "ContextMetadata",
    "ConversationTurn",
    "CoordinationPlan",
    "CoordinationResult",
    "CoordinationStats",
    "EpisodicMemory",
    "InteractionType",
    "MemoryOutcome",
    "MemoryQuery",
    "MemoryRecord",
    "MemoryResult",
    "MemoryType",
    "OptimizedContext",
    "PriorityWeights",
    "ProceduralMemory",
    "PruningStats",
    "QueryContext",
    "Relationship",
    "RiskLevel",
    "SemanticMemory",
    "TaskAnalysis",
    "TaskPriority",
    "TaskResult",
    "TaskStatus",
    "TaskType",
    "TimeRange",
    "Urgency",
    "estimate_tokens",
]
