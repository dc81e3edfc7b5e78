"""Specialised agents and multi-agent task coordination."""

from contextforge.agents.coordinator import TaskCoordinator
from contextforge.agents.executor import TaskExecutor
from contextforge.agents.llm import build_llm_adapter
from contextforge.agents.llm import LLMAdapter
from contextforge.agents.llm import LLMCompletion
from contextforge.agents.llm import NoopLLMAdapter
from contextforge.agents.llm import OpenAICompatibleLLMAdapter
from contextforge.agents.planner import analyze_task_complexity
from contextforge.agents.planner import compute_execution_waves
from contextforge.agents.planner import decompose_task
from contextforge.agents.registry import AgentRegistry
from contextforge.agents.registry import DEFAULT_AGENT_PROFILES
from contextforge.agents.synthesis import extract_confidence
from contextforge.agents.synthesis import FAILURE_MESSAGE
from contextforge.agents.synthesis import ResultSynthesizer

__all__ = [
    "AgentRegistry",
    "DEFAULT_AGENT_PROFILES",
    "FAILURE_MESSAGE",
    "LLMAdapter",
    "LLMCompletion",
    "NoopLLMAdapter",
    "OpenAICompatibleLLMAdapter",
    "ResultSynthesizer",
    "TaskCoordinator",
    "TaskExecutor",
    "analyze_task_complexity",
    "build_llm_adapter",
    "compute_execution_waves",
    "decompose_task",
    "extract_confidence",
]
