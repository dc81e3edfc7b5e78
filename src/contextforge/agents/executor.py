"""Single-task execution with per-attempt timeout and bounded retries."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Sequence
from time import perf_counter

from tenacity import AsyncRetrying
from tenacity import RetryCallState
from tenacity import RetryError
from tenacity import stop_after_attempt
from tenacity import wait_exponential

from contextforge.agents.llm import LLMAdapter
from contextforge.agents.llm import LLMCompletion
from contextforge.agents.prompts import build_task_prompt
from contextforge.agents.registry import AgentRegistry
from contextforge.agents.synthesis import extract_confidence
from contextforge.config import CoordinatorConfig
from contextforge.errors import NotFoundError
from contextforge.errors import TaskTimeoutError
from contextforge.models.agents import AgentProfile
from contextforge.models.agents import AgentTask
from contextforge.models.agents import TaskResult
from contextforge.models.agents import TaskStatus
from contextforge.observability import increment
from contextforge.observability import record_latency

logger = logging.getLogger(__name__)


class TaskExecutor:
    """Runs one :class:`AgentTask` against its agent's model.

    Failures never escape: every outcome is a :class:`TaskResult`.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        llm: LLMAdapter,
        *,
        config: CoordinatorConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._registry = registry
        self._llm = llm
        self._config = config or CoordinatorConfig()
        self._sleep = sleep
        self._wait = wait_exponential(
            multiplier=self._config.backoff_base_seconds,
            max=self._config.backoff_max_seconds,
        )

    async def execute(
        self,
        task: AgentTask,
        *,
        timeout: float | None = None,
        dependency_results: Sequence[TaskResult] = (),
        context_text: str = "",
        prompt: str | None = None,
    ) -> TaskResult:
        """Execute *task*, retrying up to ``task.max_retries`` times.

        *timeout* overrides the task's own per-attempt timeout. Unknown or
        inactive agents fail at once without retrying.
        """
        start = perf_counter()
        try:
            profile = self._registry.require_active(task.agent_id)
        except NotFoundError as exc:
            logger.warning("Task %s not scheduled: %s", task.id, exc)
            return self._finish(
                task, TaskStatus.failure, start, error=str(exc), attempts=0
            )

        user_prompt = prompt or build_task_prompt(
            task, dependency_results=dependency_results, context_text=context_text
        )
        per_attempt = timeout or task.timeout
        current = task

        def before_retry(state: RetryCallState) -> None:
            increment("agents.task_retries")
            logger.warning(
                "Task %s attempt %d failed, retrying in %.2fs: %s",
                task.id,
                state.attempt_number,
                state.next_action.sleep if state.next_action else 0.0,
                state.outcome.exception() if state.outcome else None,
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(task.max_retries - task.retry_count, 0) + 1),
            wait=self._wait,
            sleep=self._pause,
            before_sleep=before_retry,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    current = task.model_copy(
                        update={"retry_count": task.retry_count + attempts - 1}
                    )
                    completion = await self._call(profile, user_prompt, per_attempt)
        except RetryError as exc:
            error = exc.last_attempt.exception()
            attempts = exc.last_attempt.attempt_number
            logger.warning("Task %s failed after %d attempt(s): %s", task.id, attempts, error)
            status = (
                TaskStatus.timeout
                if isinstance(error, TaskTimeoutError)
                else TaskStatus.failure
            )
            return self._finish(
                current,
                status,
                start,
                error=str(error) or type(error).__name__,
                attempts=attempts,
            )

        return self._finish(
            current,
            TaskStatus.success,
            start,
            output=completion.text,
            confidence=extract_confidence(completion.text),
            tokens_used=completion.tokens_used,
            attempts=attempts,
        )

    async def _call(
        self, profile: AgentProfile, user_prompt: str, timeout: float
    ) -> LLMCompletion:
        try:
            return await asyncio.wait_for(
                self._llm.complete(
                    profile.system_prompt,
                    user_prompt,
                    model=profile.model,
                    temperature=profile.temperature,
                    max_tokens=profile.max_tokens,
                ),
                timeout=timeout,
            )
        except TimeoutError as exc:
            raise TaskTimeoutError(f"timed out after {timeout:g}s") from exc

    async def _pause(self, delay: float) -> None:
        if delay > 0:
            await self._sleep(float(delay))

    def _finish(
        self,
        task: AgentTask,
        status: TaskStatus,
        start: float,
        *,
        output: str | None = None,
        confidence: float = 0.0,
        tokens_used: int = 0,
        error: str | None = None,
        attempts: int,
    ) -> TaskResult:
        elapsed = perf_counter() - start
        ok = status is TaskStatus.success
        record_latency(operation="agents.task", duration_ms=elapsed * 1000, ok=ok)
        return TaskResult(
            task_id=task.id,
            agent_id=task.agent_id,
            status=status,
            output=output,
            confidence=confidence,
            processing_time=elapsed,
            tokens_used=tokens_used,
            error=error,
            metadata={
                "task_type": task.task_type.value,
                "attempts": attempts,
                "retry_count": task.retry_count,
            },
        )
