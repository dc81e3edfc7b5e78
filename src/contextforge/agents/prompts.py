"""User-prompt construction for agent tasks."""

from __future__ import annotations

from collections.abc import Sequence

from contextforge.models.agents import AgentTask
from contextforge.models.agents import TaskResult
from contextforge.models.agents import TaskType

_TASK_INSTRUCTIONS: dict[TaskType, str] = {
    TaskType.search: (
        "Find and retrieve the information most relevant to this request. "
        "Favour recent, authoritative sources and rank what you find."
    ),
    TaskType.analyze: (
        "Analyse the available information and extract the key insights: "
        "patterns, trends and the recommendations they support."
    ),
    TaskType.synthesize: (
        "Combine the findings below into one coherent answer, resolving any "
        "contradictions between them."
    ),
    TaskType.validate: (
        "Verify the accuracy and consistency of the findings below and point "
        "out anything unsupported."
    ),
    TaskType.execute: "Carry out the request and report the outcome.",
}


def _section(title: str, body: str) -> str:
    return f"## {title}\n{body.strip()}"


def build_task_prompt(
    task: AgentTask,
    *,
    dependency_results: Sequence[TaskResult] = (),
    context_text: str = "",
) -> str:
    """Render the user prompt for *task*.

    Successful dependency outputs and an assembled context window, when
    present, are appended as their own sections.
    """
    query = str(task.input.get("query", ""))
    sections = [
        _section("Task", query),
        _section("Instructions", _TASK_INSTRUCTIONS[task.task_type]),
    ]
    if context_text:
        sections.append(_section("Context", context_text))
    for result in dependency_results:
        if result.succeeded and result.output:
            sections.append(
                _section(
                    f"Findings from {result.agent_id} "
                    f"(confidence {result.confidence:.2f})",
                    result.output,
                )
            )
    return "\n\n".join(sections)


def build_synthesis_prompt(main_task: str, results: Sequence[TaskResult]) -> str:
    sections = [
        _section("Task", main_task),
        _section("Instructions", _TASK_INSTRUCTIONS[TaskType.synthesize]),
    ]
    for index, result in enumerate(results, start=1):
        sections.append(
            _section(
                f"Result {index} from {result.agent_id} "
                f"(confidence {result.confidence:.2f})",
                result.output or "",
            )
        )
    return "\n\n".join(sections)
