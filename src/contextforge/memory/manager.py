"""Tiered memory store: episodic, semantic and procedural memory per tenant."""

from __future__ import annotations

import asyncio
import logging
import math
from collections import Counter
from collections.abc import AsyncIterator
from collections.abc import Callable
from contextlib import asynccontextmanager
from datetime import datetime
from datetime import timedelta
from datetime import UTC

from contextforge.audit import AuditEventType
from contextforge.audit import AuditLogger
from contextforge.config import MemoryConfig
from contextforge.errors import ConfigurationError
from contextforge.memory.cache import BoundedCache
from contextforge.memory.consolidation import ClusterPattern
from contextforge.memory.consolidation import ConsolidationReport
from contextforge.memory.consolidation import DEFAULT_CLUSTER_PATTERNS
from contextforge.memory.consolidation import cluster_memories
from contextforge.memory.consolidation import communication_preferences
from contextforge.memory.consolidation import is_candidate
from contextforge.memory.consolidation import procedural_patterns
from contextforge.memory.repository import MemoryRepository
from contextforge.models.memory import EpisodicMemory
from contextforge.models.memory import MemoryQuery
from contextforge.models.memory import MemoryResult
from contextforge.models.memory import MemoryType
from contextforge.models.memory import ProceduralMemory
from contextforge.models.memory import Relationship
from contextforge.models.memory import SemanticMemory
from contextforge.observability import track_latency

logger = logging.getLogger(__name__)


def merge_semantic(
    existing: SemanticMemory, incoming: SemanticMemory, *, now: datetime
) -> SemanticMemory:
    """Fold *incoming* into *existing* (same natural key).

    Facts are unioned, matching relationships get their strengths averaged,
    new relationships are appended and confidence keeps the maximum.
    """
    relationships: dict[tuple[str, str], Relationship] = {
        rel.key: rel for rel in existing.relationships
    }
    for rel in incoming.relationships:
        current = relationships.get(rel.key)
        if current is None:
            relationships[rel.key] = rel
        else:
            relationships[rel.key] = current.model_copy(
                update={"strength": (current.strength + rel.strength) / 2}
            )

    return existing.model_copy(
        update={
            "facts": list(dict.fromkeys([*existing.facts, *incoming.facts])),
            "relationships": list(relationships.values()),
            "confidence": max(existing.confidence, incoming.confidence),
            "access_count": existing.access_count + 1,
            "last_updated": now,
        }
    )


class MemoryStore:
    """Facade over a :class:`MemoryRepository` with caches, consolidation and audit.

    Persistence errors propagate; cache updates never raise.
    """

    def __init__(
        self,
        repository: MemoryRepository,
        *,
        config: MemoryConfig | None = None,
        audit_logger: AuditLogger | None = None,
        cluster_patterns: tuple[ClusterPattern, ...] = DEFAULT_CLUSTER_PATTERNS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repository = repository
        self._config = config or MemoryConfig()
        self._audit = audit_logger
        self._cluster_patterns = cluster_patterns
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._semantic_locks: dict[tuple[str, str, str], asyncio.Lock] = {}
        self._semantic_users: Counter[tuple[str, str, str]] = Counter()
        self._episodic_cache: BoundedCache[EpisodicMemory] = BoundedCache(
            self._config.episodic_cache_size, name="episodic cache"
        )
        self._procedural_cache: BoundedCache[ProceduralMemory] = BoundedCache(
            self._config.procedural_cache_size,
            rank=lambda memory: memory.success_rate,
            name="procedural cache",
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def store_episodic(self, memory: EpisodicMemory) -> str:
        stored = memory.model_copy(update={"consolidation_count": 0})
        with track_latency("memory.store_episodic"):
            await self._repository.insert_episodic(stored)
        self._episodic_cache.add((stored.agency_id, stored.user_id), stored)
        await self._audit_stored(stored.agency_id, MemoryType.episodic, stored.id)
        return stored.id

    async def store_semantic(self, memory: SemanticMemory) -> str:
        """Insert *memory* or merge it into the record sharing its natural key."""
        async with self._semantic_lock(memory.natural_key):
            with track_latency("memory.store_semantic"):
                existing = await self._repository.get_semantic(
                    memory.agency_id, memory.concept, memory.category
                )
                if existing is None:
                    stored = memory
                else:
                    stored = merge_semantic(existing, memory, now=self._clock())
                    logger.debug(
                        "Merged semantic memory %s/%s into %s",
                        memory.concept,
                        memory.category,
                        existing.id,
                    )
                await self._repository.upsert_semantic(stored)
        await self._audit_stored(stored.agency_id, MemoryType.semantic, stored.id)
        return stored.id

    @asynccontextmanager
    async def _semantic_lock(self, key: tuple[str, str, str]) -> AsyncIterator[None]:
        """Serialise writers of one natural key; the lock is dropped with its last user."""
        lock = self._semantic_locks.setdefault(key, asyncio.Lock())
        self._semantic_users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._semantic_users[key] -= 1
            if not self._semantic_users[key]:
                del self._semantic_users[key]
                del self._semantic_locks[key]

    async def store_procedural(self, memory: ProceduralMemory) -> str:
        with track_latency("memory.store_procedural"):
            await self._repository.insert_procedural(memory)
        self._procedural_cache.add((memory.agency_id, memory.task_type), memory)
        await self._audit_stored(memory.agency_id, MemoryType.procedural, memory.id)
        return memory.id

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def query_memories(self, query: MemoryQuery) -> list[MemoryResult]:
        with track_latency(f"memory.query.{query.type.value}"):
            if query.type is MemoryType.episodic:
                return await self._query_episodic(query)
            if query.type is MemoryType.semantic:
                return await self._query_semantic(query)
            return await self._query_procedural(query)

    async def _query_episodic(self, query: MemoryQuery) -> list[MemoryResult]:
        rows = await self._repository.list_episodic(
            query.agency_id, user_id=query.user_id, time_range=query.time_range
        )
        if query.session_id:
            rows = [row for row in rows if row.session_id == query.session_id]
        rows.sort(key=lambda row: (row.importance, row.timestamp), reverse=True)

        now = self._clock()
        results: list[MemoryResult] = []
        for row in rows[: query.limit or self._config.episodic_query_limit]:
            relevance = self.text_relevance(row.content, query.query)
            if query.min_relevance is not None and relevance < query.min_relevance:
                continue
            results.append(
                MemoryResult(
                    type=MemoryType.episodic,
                    record=row,
                    relevance_score=relevance,
                    recency_score=self.recency(row.timestamp, now),
                    importance_score=row.importance,
                )
            )
        return results

    async def _query_semantic(self, query: MemoryQuery) -> list[MemoryResult]:
        rows = await self._repository.list_semantic(query.agency_id)
        rows.sort(key=lambda row: row.confidence, reverse=True)
        min_relevance = (
            query.min_relevance
            if query.min_relevance is not None
            else self._config.semantic_min_relevance
        )

        now = self._clock()
        results: list[MemoryResult] = []
        for row in rows:
            relevance = self.semantic_relevance(row, query.query)
            if relevance < min_relevance:
                continue
            results.append(
                MemoryResult(
                    type=MemoryType.semantic,
                    record=row,
                    relevance_score=relevance,
                    recency_score=self.recency(row.last_updated, now),
                    importance_score=row.confidence,
                )
            )
        return results[: query.limit or self._config.semantic_query_limit]

    async def _query_procedural(self, query: MemoryQuery) -> list[MemoryResult]:
        rows = await self._repository.list_procedural(
            query.agency_id, task_type=query.query
        )
        rows.sort(key=lambda row: (row.success_rate, row.usage_count), reverse=True)

        now = self._clock()
        return [
            MemoryResult(
                type=MemoryType.procedural,
                record=row,
                relevance_score=row.success_rate,
                recency_score=self.recency(row.last_used, now),
                importance_score=row.success_rate,
            )
            for row in rows[: query.limit or self._config.procedural_query_limit]
        ]

    # -- scoring helpers --

    @staticmethod
    def text_relevance(content: str, query: str) -> float:
        terms = query.lower().split()
        if not terms:
            return 0.0
        lowered = content.lower()
        return min(1.0, sum(1 for term in terms if term in lowered) / len(terms))

    @staticmethod
    def semantic_relevance(memory: SemanticMemory, query: str) -> float:
        needle = query.lower()
        if needle in memory.concept.lower():
            return memory.confidence
        if any(needle in fact.lower() for fact in memory.facts):
            return memory.confidence * 0.8
        return 0.1

    def recency(self, timestamp: datetime, now: datetime) -> float:
        age_hours = max((now - timestamp).total_seconds() / 3600, 0.0)
        return math.exp(-age_hours / self._config.recency_half_life_hours)

    # ------------------------------------------------------------------
    # Consolidation
    # ------------------------------------------------------------------

    async def consolidate_memories(
        self, user_id: str, agency_id: str
    ) -> ConsolidationReport:
        """Promote frequently accessed successful episodes for one user.

        Source rows are marked consolidated, so a second run without new
        episodic writes creates no new semantic records.
        """
        if not agency_id:
            raise ConfigurationError("consolidation requires an agency_id")

        cfg = self._config
        report = ConsolidationReport(agency_id=agency_id, user_id=user_id)
        with track_latency("memory.consolidate"):
            rows = await self._repository.list_episodic(agency_id, user_id=user_id)
            batch = [
                row
                for row in rows
                if is_candidate(row, threshold=cfg.consolidation_threshold)
            ][: cfg.consolidation_scan_limit]
            report.candidates = len(batch)

            semantic = cluster_memories(
                batch,
                agency_id=agency_id,
                confidence=cfg.cluster_confidence,
                patterns=self._cluster_patterns,
            )

            now = self._clock()
            window_start = now - timedelta(days=cfg.communication_window_days)
            preferences = communication_preferences(
                [row for row in rows if row.timestamp >= window_start],
                agency_id=agency_id,
                min_conversations=cfg.communication_min_conversations,
            )
            if preferences is not None:
                semantic.append(preferences)

            for memory in semantic:
                report.semantic_ids.append(await self.store_semantic(memory))

            for memory in procedural_patterns(
                batch,
                agency_id=agency_id,
                min_occurrences=cfg.procedural_min_occurrences,
            ):
                report.procedural_ids.append(await self.store_procedural(memory))

            if batch:
                ids = [row.id for row in batch]
                await self._repository.mark_consolidated(
                    agency_id, ids, cfg.consolidation_threshold
                )
                report.consolidated_ids = ids

        logger.info(
            "Consolidated %d episodes for user %s (%d semantic, %d procedural)",
            report.candidates,
            user_id,
            len(report.semantic_ids),
            len(report.procedural_ids),
        )
        if self._audit is not None:
            await self._audit.record(
                AuditEventType.MEMORY_CONSOLIDATED,
                agency_id=agency_id,
                user_id=user_id,
                candidates=report.candidates,
                semantic_ids=report.semantic_ids,
                procedural_ids=report.procedural_ids,
            )
        return report

    # ------------------------------------------------------------------
    # Caches
    # ------------------------------------------------------------------

    def cached_episodic(self, agency_id: str, user_id: str) -> list[EpisodicMemory]:
        return self._episodic_cache.get((agency_id, user_id))

    def cached_procedural(
        self, agency_id: str, task_type: str
    ) -> list[ProceduralMemory]:
        return self._procedural_cache.get((agency_id, task_type))

    # -- internal --

    async def _audit_stored(
        self, agency_id: str, memory_type: MemoryType, memory_id: str
    ) -> None:
        if self._audit is None:
            return
        await self._audit.record(
            AuditEventType.MEMORY_STORED,
            agency_id=agency_id,
            memory_type=memory_type.value,
            memory_id=memory_id,
        )
