"""Confidence extraction, final-answer synthesis and overall confidence."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from collections.abc import Sequence
from typing import TYPE_CHECKING

from contextforge.agents.prompts import build_synthesis_prompt
from contextforge.agents.registry import SYNTHESIS_AGENT_ID
from contextforge.config import CoordinatorConfig
from contextforge.models.agents import AgentTask
from contextforge.models.agents import TaskPriority
from contextforge.models.agents import TaskResult
from contextforge.models.agents import TaskType

if TYPE_CHECKING:
    from contextforge.agents.executor import TaskExecutor

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = (
    "I'm sorry, I couldn't complete the requested task. All attempts failed."
)

# ---------------------------------------------------------------------------
# Confidence
# ---------------------------------------------------------------------------

_CONFIDENCE_RE = re.compile(r"confidence:?\s*(\d+(?:\.\d+)?)\s*(%)?", re.IGNORECASE)
_HEDGING_RE = re.compile(
    r"\b(maybe|perhaps|possibly|might|could|unsure)\b", re.IGNORECASE
)
_ASSERTIVE_RE = re.compile(
    r"\b(definitely|certainly|clearly|obviously|definite)\b", re.IGNORECASE
)

DEFAULT_CONFIDENCE = 0.7
MIN_HEURISTIC_CONFIDENCE = 0.3


def extract_confidence(text: str) -> float:
    """Confidence in [0, 1] stated by or inferred from an agent response.

    An explicit ``confidence: X`` wins; values above 1 or suffixed with
    ``%`` are read as percentages. Otherwise start at 0.7, subtract 0.2 for
    hedging language, add 0.1 for assertive language and clamp to [0.3, 1].
    """
    match = _CONFIDENCE_RE.search(text)
    if match:
        value = float(match.group(1))
        if match.group(2) or value > 1.0:
            value /= 100
        return max(0.0, min(1.0, value))

    confidence = DEFAULT_CONFIDENCE
    if _HEDGING_RE.search(text):
        confidence -= 0.2
    if _ASSERTIVE_RE.search(text):
        confidence += 0.1
    return max(MIN_HEURISTIC_CONFIDENCE, min(1.0, confidence))


def overall_confidence(
    results: Sequence[TaskResult],
    task_types: Mapping[str, TaskType],
    config: CoordinatorConfig,
) -> float:
    """Weighted mean of successful confidences, weighted by task type."""
    weighted = 0.0
    total_weight = 0.0
    for result in results:
        if not result.succeeded:
            continue
        task_type = task_types.get(result.task_id)
        weight = config.task_type_weights.get(
            task_type.value if task_type else "", config.default_task_weight
        )
        weighted += result.confidence * weight
        total_weight += weight
    if total_weight <= 0:
        return 0.0
    return max(0.0, min(1.0, weighted / total_weight))


def best_result(results: Sequence[TaskResult]) -> TaskResult:
    return max(results, key=lambda result: result.confidence)


# ---------------------------------------------------------------------------
# Synthesis
# ---------------------------------------------------------------------------


class ResultSynthesizer:
    """Turns task results into one final answer."""

    def __init__(
        self, executor: TaskExecutor, config: CoordinatorConfig | None = None
    ) -> None:
        self._executor = executor
        self._config = config or CoordinatorConfig()

    async def synthesize(
        self, main_task: str, results: Sequence[TaskResult]
    ) -> tuple[str, TaskResult | None]:
        """Return the final answer plus the synthesis task result, if one ran."""
        successes = [result for result in results if result.succeeded]
        if not successes:
            return FAILURE_MESSAGE, None
        if len(successes) == 1:
            return successes[0].output or "", None

        task = AgentTask(
            agent_id=SYNTHESIS_AGENT_ID,
            task_type=TaskType.synthesize,
            priority=TaskPriority.high,
            input={"query": main_task},
            timeout=self._config.synthesis_timeout_seconds,
            max_retries=self._config.synthesis_max_retries,
        )
        synthesis = await self._executor.execute(
            task, prompt=build_synthesis_prompt(main_task, successes)
        )
        if synthesis.succeeded and synthesis.output:
            return synthesis.output, synthesis

        logger.warning(
            "Synthesis failed (%s); using best individual result", synthesis.error
        )
        return best_result(successes).output or "", synthesis
