"""Agent registry: the set of specialised agents a coordinator may schedule."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable

from pydantic import BaseModel
from pydantic import Field

from contextforge.errors import AgentUnavailableError
from contextforge.errors import ConfigurationError
from contextforge.errors import NotFoundError
from contextforge.models.agents import AgentProfile

logger = logging.getLogger(__name__)

SEARCH_AGENT_ID = "search-agent"
ANALYSIS_AGENT_ID = "analysis-agent"
SYNTHESIS_AGENT_ID = "synthesis-agent"
VALIDATION_AGENT_ID = "validation-agent"

_SEARCH_PROMPT = """\
You are a retrieval specialist. Find the information that answers the request,
judge how trustworthy each source is and rank findings by relevance.
Prefer recent, authoritative sources and keep results concise and structured.
Cite your sources and end with a line of the form `confidence: <0-1>`."""

_ANALYSIS_PROMPT = """\
You are an analysis specialist. Examine the information you are given, find
patterns, trends and anomalies, and turn them into concrete recommendations.
Support every conclusion with the evidence it rests on.
End with a line of the form `confidence: <0-1>`."""

_SYNTHESIS_PROMPT = """\
You are a synthesis specialist. Combine the findings of several specialists
into one coherent answer: merge shared themes, resolve contradictions using
the evidence and lead with the actionable points.
End with a line of the form `confidence: <0-1>`."""

_VALIDATION_PROMPT = """\
You are a validation specialist. Check the proposed answer for factual
errors, internal inconsistencies and unsupported claims, and suggest
corrections where needed.
End with a line of the form `confidence: <0-1>`."""

DEFAULT_AGENT_PROFILES: tuple[AgentProfile, ...] = (
    AgentProfile(
        id=SEARCH_AGENT_ID,
        name="Search Specialist",
        role="Information retrieval",
        specialty="Document search and knowledge discovery",
        capabilities=(
            "web_search",
            "document_retrieval",
            "knowledge_discovery",
            "source_evaluation",
        ),
        model="gpt-4o",
        temperature=0.1,
        max_tokens=2000,
        system_prompt=_SEARCH_PROMPT,
    ),
    AgentProfile(
        id=ANALYSIS_AGENT_ID,
        name="Data Analyst",
        role="Business intelligence",
        specialty="Data analysis and pattern recognition",
        capabilities=(
            "data_analysis",
            "pattern_recognition",
            "trend_identification",
            "business_intelligence",
        ),
        model="gpt-4o",
        temperature=0.2,
        max_tokens=3000,
        system_prompt=_ANALYSIS_PROMPT,
    ),
    AgentProfile(
        id=SYNTHESIS_AGENT_ID,
        name="Knowledge Synthesizer",
        role="Information integration",
        specialty="Combining several sources into one answer",
        capabilities=(
            "information_synthesis",
            "knowledge_integration",
            "conflict_resolution",
            "summary_generation",
        ),
        model="gpt-4o",
        temperature=0.3,
        max_tokens=4000,
        system_prompt=_SYNTHESIS_PROMPT,
    ),
    AgentProfile(
        id=VALIDATION_AGENT_ID,
        name="Quality Assurance Specialist",
        role="Validation",
        specialty="Checking accuracy and consistency",
        capabilities=(
            "fact_checking",
            "consistency_validation",
            "quality_assessment",
            "error_detection",
        ),
        model="gpt-4o",
        temperature=0.1,
        max_tokens=1500,
        system_prompt=_VALIDATION_PROMPT,
    ),
)


class RegistryStats(BaseModel):
    total: int
    active: int
    inactive: int
    by_capability: dict[str, int] = Field(
        default_factory=dict,
        description="Active agents per capability.",
    )


class AgentRegistry:
    """Explicit, instance-owned agent catalogue."""

    def __init__(self, profiles: Iterable[AgentProfile] = DEFAULT_AGENT_PROFILES) -> None:
        self._agents: dict[str, AgentProfile] = {}
        for profile in profiles:
            self.register(profile)

    def register(self, profile: AgentProfile) -> None:
        if profile.id in self._agents:
            raise ConfigurationError(f"agent already registered: {profile.id}")
        self._agents[profile.id] = profile
        logger.debug("Registered agent %s (%s)", profile.id, profile.role)

    def remove(self, agent_id: str) -> AgentProfile:
        try:
            profile = self._agents.pop(agent_id)
        except KeyError:
            raise NotFoundError(f"unknown agent: {agent_id}") from None
        logger.info("Removed agent %s", agent_id)
        return profile

    def get(self, agent_id: str) -> AgentProfile:
        try:
            return self._agents[agent_id]
        except KeyError:
            raise NotFoundError(f"unknown agent: {agent_id}") from None

    def require_active(self, agent_id: str) -> AgentProfile:
        """Return the profile if it can be scheduled right now."""
        profile = self.get(agent_id)
        if not profile.active:
            raise AgentUnavailableError(agent_id)
        return profile

    def activate(self, agent_id: str) -> None:
        self._set_active(agent_id, True)

    def deactivate(self, agent_id: str) -> None:
        self._set_active(agent_id, False)

    def _set_active(self, agent_id: str, active: bool) -> None:
        profile = self.get(agent_id)
        self._agents[agent_id] = profile.model_copy(update={"active": active})
        logger.info("%s agent %s", "Activated" if active else "Deactivated", agent_id)

    def all(self) -> list[AgentProfile]:
        return list(self._agents.values())

    def active(self) -> list[AgentProfile]:
        return [profile for profile in self._agents.values() if profile.active]

    def by_capability(self, capability: str) -> list[AgentProfile]:
        return [
            profile
            for profile in self._agents.values()
            if profile.active and capability in profile.capabilities
        ]

    def stats(self) -> RegistryStats:
        active = self.active()
        by_capability = Counter(
            capability for profile in active for capability in profile.capabilities
        )
        return RegistryStats(
            total=len(self._agents),
            active=len(active),
            inactive=len(self._agents) - len(active),
            by_capability=dict(by_capability),
        )

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def __len__(self) -> int:
        return len(self._agents)
