"""contextforge: context assembly, tiered memory and multi-agent coordination."""

from contextforge.agents import AgentRegistry
from contextforge.agents import TaskCoordinator
from contextforge.context import ContextAssembler
from contextforge.context import ContextOptimizer
from contextforge.memory import MemoryStore

__version__ = "0.1.0"

__all__ = [
    "AgentRegistry",
    "ContextAssembler",
    "ContextOptimizer",
    "MemoryStore",
    "TaskCoordinator",
    "__version__",
]
