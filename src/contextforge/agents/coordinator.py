"""Multi-agent task coordination.

``coordinate_task`` analyses a task, decomposes it into agent subtasks,
runs them wave by wave (bounded fan-out inside a wave, waves strictly
sequential) and synthesises the successful outputs into one answer.
A failing task never aborts its wave or the plan.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from time import perf_counter

from contextforge.agents.executor import TaskExecutor
from contextforge.agents.llm import LLMAdapter
from contextforge.agents.planner import analyze_task_complexity
from contextforge.agents.planner import assess_risk_level
from contextforge.agents.planner import compute_execution_waves
from contextforge.agents.planner import decompose_task
from contextforge.agents.planner import estimate_duration
from contextforge.agents.planner import fallback_strategies
from contextforge.agents.registry import AgentRegistry
from contextforge.agents.synthesis import overall_confidence
from contextforge.agents.synthesis import ResultSynthesizer
from contextforge.audit import AuditEventType
from contextforge.audit import AuditLogger
from contextforge.config import CoordinatorConfig
from contextforge.context.assembler import ContextAssembler
from contextforge.context.retrieval import hits_to_chunks
from contextforge.context.retrieval import VectorSearch
from contextforge.errors import ConfigurationError
from contextforge.models.agents import AgentPerformance
from contextforge.models.agents import CoordinationPlan
from contextforge.models.agents import CoordinationResult
from contextforge.models.agents import CoordinationStats
from contextforge.models.agents import RiskLevel
from contextforge.models.agents import TaskResult
from contextforge.models.context import QueryContext
from contextforge.observability import increment
from contextforge.observability import record_latency

logger = logging.getLogger(__name__)

_RISK_ORDER = {RiskLevel.low: 0, RiskLevel.medium: 1, RiskLevel.high: 2}


@dataclass
class _RunTotals:
    """Running sums behind ``coordination_stats``; no run outputs are kept."""

    runs: int = 0
    succeeded: int = 0
    confidence: float = 0.0
    processing_time: float = 0.0
    agents: dict[str, AgentPerformance] = field(default_factory=dict)

    def add(self, results: list[TaskResult], confidence: float, elapsed: float) -> None:
        self.runs += 1
        self.succeeded += any(result.succeeded for result in results)
        self.confidence += confidence
        self.processing_time += elapsed
        for result in results:
            current = self.agents.get(result.agent_id, AgentPerformance())
            successes = current.successes + (1 if result.succeeded else 0)
            avg = current.avg_confidence
            if result.succeeded:
                avg = (avg * current.successes + result.confidence) / successes
            self.agents[result.agent_id] = AgentPerformance(
                tasks=current.tasks + 1, successes=successes, avg_confidence=avg
            )


class TaskCoordinator:
    """Plans and runs one task across the registered agents."""

    def __init__(
        self,
        registry: AgentRegistry,
        llm: LLMAdapter,
        *,
        config: CoordinatorConfig | None = None,
        assembler: ContextAssembler | None = None,
        vector_search: VectorSearch | None = None,
        audit_logger: AuditLogger | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._registry = registry
        self._config = config or CoordinatorConfig()
        self._executor = TaskExecutor(registry, llm, config=self._config, sleep=sleep)
        self._synthesizer = ResultSynthesizer(self._executor, self._config)
        self._assembler = assembler
        self._vector_search = vector_search
        self._audit = audit_logger
        self._totals = _RunTotals()

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan(self, main_task: str, query_context: QueryContext) -> CoordinationPlan:
        analysis = analyze_task_complexity(main_task, query_context)
        subtasks = decompose_task(main_task, analysis, query_context)
        risk = assess_risk_level(subtasks, query_context)
        plan = CoordinationPlan(
            main_task=main_task,
            subtasks=subtasks,
            execution_waves=compute_execution_waves(subtasks),
            estimated_duration=estimate_duration(subtasks, self._registry),
            risk_level=risk,
            fallback_strategies=fallback_strategies(risk),
        )
        logger.debug(
            "Planned %s task into %d subtasks over %d waves",
            analysis.complexity.value,
            len(subtasks),
            len(plan.execution_waves),
        )
        return plan

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def coordinate_task(
        self,
        main_task: str,
        query_context: QueryContext,
        *,
        max_parallel_tasks: int | None = None,
        timeout: float | None = None,
        risk_tolerance: RiskLevel | str | None = None,
    ) -> CoordinationResult:
        parallel = (
            self._config.max_parallel_tasks
            if max_parallel_tasks is None
            else max_parallel_tasks
        )
        if parallel < 1:
            raise ConfigurationError("max_parallel_tasks must be at least 1")
        if timeout is not None and timeout <= 0:
            raise ConfigurationError("timeout must be positive")
        tolerance = RiskLevel(risk_tolerance) if risk_tolerance is not None else None

        start = perf_counter()
        plan = self.plan(main_task, query_context)
        if tolerance is not None and _RISK_ORDER[plan.risk_level] > _RISK_ORDER[tolerance]:
            logger.warning(
                "Plan %s risk %s exceeds tolerance %s",
                plan.id,
                plan.risk_level.value,
                tolerance.value,
            )

        context_text = await self._context_for(main_task, query_context)
        semaphore = asyncio.Semaphore(parallel)
        results: dict[str, TaskResult] = {}

        async def run(task_id: str) -> TaskResult:
            task = plan.task(task_id)
            async with semaphore:
                return await self._executor.execute(
                    task,
                    timeout=timeout,
                    dependency_results=[results[dep] for dep in task.dependencies],
                    context_text=context_text,
                )

        for wave in plan.execution_waves:
            wave_results = await asyncio.gather(*(run(task_id) for task_id in wave))
            for result in wave_results:
                results[result.task_id] = result

        ordered = [results[task.id] for task in plan.subtasks]
        final_answer, _ = await self._synthesizer.synthesize(main_task, ordered)
        confidence = overall_confidence(
            ordered, {task.id: task.task_type for task in plan.subtasks}, self._config
        )
        elapsed = perf_counter() - start

        succeeded = any(result.succeeded for result in ordered)
        self._totals.add(ordered, confidence, elapsed)
        record_latency(operation="agents.coordinate", duration_ms=elapsed * 1000, ok=succeeded)
        increment("agents.coordinations")
        await self._audit_run(plan, ordered, confidence, elapsed, query_context)

        return CoordinationResult(
            plan=plan,
            results=ordered,
            final_answer=final_answer,
            confidence=confidence,
            processing_time=elapsed,
        )

    async def _context_for(self, main_task: str, query_context: QueryContext) -> str:
        """Assembled tenant context for the task prompts, or an empty string."""
        if (
            self._assembler is None
            or self._vector_search is None
            or not query_context.agency_id
        ):
            return ""
        try:
            hits = await self._vector_search.search(
                main_task, query_context.agency_id, self._config.context_search_limit
            )
            if not hits:
                return ""
            context = await self._assembler.assemble_context(
                hits_to_chunks(hits), query_context
            )
        except Exception:
            # Context is optional; the plan still runs without it.
            logger.exception(
                "Context lookup failed for tenant %s, running without context",
                query_context.agency_id,
            )
            increment("agents.context_failures")
            return ""
        return context.render()

    # ------------------------------------------------------------------
    # Stats and audit
    # ------------------------------------------------------------------

    def coordination_stats(self) -> CoordinationStats:
        """Aggregate over every run made through this coordinator."""
        totals = self._totals
        if not totals.runs:
            return CoordinationStats()
        return CoordinationStats(
            total_coordinations=totals.runs,
            average_confidence=totals.confidence / totals.runs,
            average_processing_time=totals.processing_time / totals.runs,
            success_rate=totals.succeeded / totals.runs,
            agent_performance=dict(totals.agents),
        )

    async def _audit_run(
        self,
        plan: CoordinationPlan,
        results: list[TaskResult],
        confidence: float,
        elapsed: float,
        query_context: QueryContext,
    ) -> None:
        if self._audit is None:
            return
        await self._audit.record(
            AuditEventType.COORDINATION_RUN,
            agency_id=query_context.agency_id,
            plan_id=plan.id,
            session_id=query_context.session_id,
            risk_level=plan.risk_level.value,
            subtasks=len(plan.subtasks),
            statuses={r.task_id: r.status.value for r in results},
            confidence=confidence,
            processing_time=elapsed,
        )
