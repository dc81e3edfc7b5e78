"""Task analysis, decomposition and wave scheduling.

Everything here is a pure function of its inputs; the coordinator glues the
pieces into a :class:`CoordinationPlan`.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from contextforge.agents.registry import ANALYSIS_AGENT_ID
from contextforge.agents.registry import AgentRegistry
from contextforge.agents.registry import SEARCH_AGENT_ID
from contextforge.agents.registry import SYNTHESIS_AGENT_ID
from contextforge.agents.registry import VALIDATION_AGENT_ID
from contextforge.errors import ConfigurationError
from contextforge.models.agents import AgentTask
from contextforge.models.agents import Complexity
from contextforge.models.agents import RiskLevel
from contextforge.models.agents import TaskAnalysis
from contextforge.models.agents import TaskPriority
from contextforge.models.agents import TaskType
from contextforge.models.context import QueryContext
from contextforge.models.context import Urgency

# ---------------------------------------------------------------------------
# Complexity analysis
# ---------------------------------------------------------------------------

_RESEARCH_RE = re.compile(r"\b(search|find|analy[sz]e|compare|research)\b", re.IGNORECASE)
_SYNTHESIS_RE = re.compile(r"\b(summari[sz]e|synthesis|combine|integrate)\b", re.IGNORECASE)
_INTERROGATIVE_RE = re.compile(
    r"\b(what|how|where|when|why|which|who)\b", re.IGNORECASE
)

LONG_TASK_WORDS = 50
LONG_CONVERSATION_TURNS = 5


def has_multiple_questions(task: str) -> bool:
    return task.count("?") > 1 or len(_INTERROGATIVE_RE.findall(task)) > 1


def analyze_task_complexity(task: str, query_context: QueryContext) -> TaskAnalysis:
    complexity = Complexity.simple
    capabilities: list[str] = []

    if (
        len(task.split()) > LONG_TASK_WORDS
        or has_multiple_questions(task)
        or _RESEARCH_RE.search(task)
    ):
        complexity = Complexity.medium
        capabilities += ["web_search", "document_retrieval"]

    if (
        _SYNTHESIS_RE.search(task)
        or len(query_context.conversation_history) > LONG_CONVERSATION_TURNS
    ):
        complexity = Complexity.complex
        capabilities += ["information_synthesis", "pattern_recognition"]

    steps = {Complexity.simple: 1, Complexity.medium: 3, Complexity.complex: 5}
    return TaskAnalysis(
        complexity=complexity,
        required_capabilities=capabilities,
        estimated_steps=steps[complexity],
        domain=query_context.domain or "general",
    )


# ---------------------------------------------------------------------------
# Decomposition
# ---------------------------------------------------------------------------


def decompose_task(
    main_task: str, analysis: TaskAnalysis, query_context: QueryContext
) -> list[AgentTask]:
    """Turn *main_task* into a dependency-linked list of agent tasks."""
    task_input = {
        "query": main_task,
        "domain": analysis.domain,
        "user_id": query_context.user_id,
        "session_id": query_context.session_id,
    }

    def make(
        agent_id: str,
        task_type: TaskType,
        priority: TaskPriority,
        timeout: float,
        dependencies: Sequence[AgentTask] = (),
    ) -> AgentTask:
        return AgentTask(
            agent_id=agent_id,
            task_type=task_type,
            priority=priority,
            input=dict(task_input),
            dependencies=[dep.id for dep in dependencies],
            timeout=timeout,
        )

    if analysis.complexity is Complexity.simple:
        return [make(SEARCH_AGENT_ID, TaskType.search, TaskPriority.medium, 15.0)]

    search = make(SEARCH_AGENT_ID, TaskType.search, TaskPriority.high, 20.0)
    if analysis.complexity is Complexity.medium:
        analyze = make(
            ANALYSIS_AGENT_ID, TaskType.analyze, TaskPriority.medium, 25.0, [search]
        )
        return [search, analyze]

    analyze = make(ANALYSIS_AGENT_ID, TaskType.analyze, TaskPriority.high, 25.0, [search])
    synthesize = make(
        SYNTHESIS_AGENT_ID,
        TaskType.synthesize,
        TaskPriority.medium,
        30.0,
        [search, analyze],
    )
    validate = make(
        VALIDATION_AGENT_ID, TaskType.validate, TaskPriority.low, 20.0, [synthesize]
    )
    return [search, analyze, synthesize, validate]


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


def compute_execution_waves(subtasks: Sequence[AgentTask]) -> list[list[str]]:
    """Batch task ids so every task runs after all of its dependencies.

    Raises :class:`ConfigurationError` on an unknown dependency or a cycle.
    """
    known = {task.id for task in subtasks}
    for task in subtasks:
        missing = [dep for dep in task.dependencies if dep not in known]
        if missing:
            raise ConfigurationError(
                f"task {task.id} depends on unknown task(s): {', '.join(missing)}"
            )

    waves: list[list[str]] = []
    done: set[str] = set()
    pending = list(subtasks)
    while pending:
        wave = [task.id for task in pending if all(dep in done for dep in task.dependencies)]
        if not wave:
            stuck = ", ".join(task.id for task in pending)
            raise ConfigurationError(f"dependency cycle between tasks: {stuck}")
        waves.append(wave)
        done.update(wave)
        pending = [task for task in pending if task.id not in done]
    return waves


def estimate_duration(subtasks: Sequence[AgentTask], registry: AgentRegistry) -> float:
    """Rough wall-clock estimate in seconds."""
    total = 0.0
    for task in subtasks:
        base = 10.0 if task.agent_id in registry else 15.0
        total += base + task.timeout * 0.1
    return total


def assess_risk_level(
    subtasks: Sequence[AgentTask], query_context: QueryContext
) -> RiskLevel:
    if len(subtasks) > 5 or query_context.urgency is Urgency.critical:
        return RiskLevel.high
    if len(subtasks) > 2 or query_context.urgency is Urgency.high:
        return RiskLevel.medium
    return RiskLevel.low


def fallback_strategies(risk_level: RiskLevel) -> list[str]:
    strategies = ["retry_failed_tasks", "use_backup_agent"]
    if risk_level is RiskLevel.high:
        strategies += ["escalate_to_human", "simplify_task"]
    return strategies
