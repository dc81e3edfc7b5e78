"""Agent, task and coordination data models."""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import Field


class TaskType(str, Enum):
    search = "search"
    analyze = "analyze"
    synthesize = "synthesize"
    validate = "validate"
    execute = "execute"


class TaskPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class TaskStatus(str, Enum):
    success = "success"
    failure = "failure"
    timeout = "timeout"
    cancelled = "cancelled"


class Complexity(str, Enum):
    simple = "simple"
    medium = "medium"
    complex = "complex"


class RiskLevel(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class AgentProfile(BaseModel):
    """A specialised model-backed agent."""

    model_config = {"frozen": True}

    id: str
    name: str
    role: str
    specialty: str = ""
    capabilities: tuple[str, ...] = ()
    model: str
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2000, gt=0)
    system_prompt: str
    active: bool = True


class AgentTask(BaseModel):
    """One unit of work for one agent inside a coordination plan."""

    id: str = Field(default_factory=lambda: f"task_{uuid.uuid4().hex}")
    agent_id: str
    task_type: TaskType
    priority: TaskPriority = TaskPriority.medium
    input: dict[str, Any] = Field(default_factory=dict)
    dependencies: list[str] = Field(default_factory=list)
    timeout: float = Field(default=30.0, gt=0, description="Seconds per attempt.")
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(default=2, ge=0)


class TaskResult(BaseModel):
    """Terminal outcome of one task."""

    task_id: str
    agent_id: str
    status: TaskStatus
    output: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    processing_time: float = Field(default=0.0, description="Seconds.")
    tokens_used: int = 0
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status is TaskStatus.success


class TaskAnalysis(BaseModel):
    complexity: Complexity
    required_capabilities: list[str] = Field(default_factory=list)
    estimated_steps: int = 1
    domain: str = "general"


class CoordinationPlan(BaseModel):
    """Decomposed task plus its dependency-ordered execution waves."""

    id: str = Field(default_factory=lambda: f"plan_{uuid.uuid4().hex}")
    main_task: str
    subtasks: list[AgentTask]
    execution_waves: list[list[str]]
    estimated_duration: float = Field(description="Seconds.")
    risk_level: RiskLevel
    fallback_strategies: list[str]

    def task(self, task_id: str) -> AgentTask:
        for task in self.subtasks:
            if task.id == task_id:
                return task
        raise KeyError(task_id)


class CoordinationResult(BaseModel):
    plan: CoordinationPlan
    results: list[TaskResult]
    final_answer: str
    confidence: float = Field(ge=0.0, le=1.0)
    processing_time: float = Field(description="Seconds.")


class AgentPerformance(BaseModel):
    tasks: int = 0
    successes: int = 0
    avg_confidence: float = 0.0


class CoordinationStats(BaseModel):
    total_coordinations: int = 0
    average_confidence: float = 0.0
    average_processing_time: float = 0.0
    success_rate: float = 0.0
    agent_performance: dict[str, AgentPerformance] = Field(default_factory=dict)
