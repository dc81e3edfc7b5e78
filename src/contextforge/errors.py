"""Error taxonomy shared by every subsystem."""

from __future__ import annotations


class ContextForgeError(Exception):
    """Base class for all library errors."""


class ConfigurationError(ContextForgeError, ValueError):
    """Malformed budget, strategy config or missing tenant scope.

    Raised before any pipeline work starts.
    """


class NotFoundError(ContextForgeError, LookupError):
    """Unknown agent, strategy or record."""


class AgentUnavailableError(NotFoundError):
    """Agent exists but is deactivated."""

    def __init__(self, agent_id: str) -> None:
        super().__init__(f"agent unavailable: {agent_id}")
        self.agent_id = agent_id


class TransientError(ContextForgeError):
    """Remote call failure that is worth retrying."""


class LLMError(TransientError):
    """Raised by LLM adapters when a call fails."""


class TaskTimeoutError(TransientError):
    """An agent call lost its race against the task timeout."""


class TerminalError(ContextForgeError):
    """Retries exhausted; surfaced as a failed ``TaskResult``."""
