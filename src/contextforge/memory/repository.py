"""Persistence port for the three memory tiers, plus an in-process adapter.

Every method takes the tenant explicitly; adapters must never return a record
owned by another tenant.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Iterable
from typing import Protocol
from typing import runtime_checkable

from contextforge.models.memory import EpisodicMemory
from contextforge.models.memory import ProceduralMemory
from contextforge.models.memory import SemanticMemory
from contextforge.models.memory import TimeRange


@runtime_checkable
class MemoryRepository(Protocol):
    """Tenant-keyed CRUD over episodic, semantic and procedural records."""

    async def insert_episodic(self, memory: EpisodicMemory) -> None: ...

    async def list_episodic(
        self,
        agency_id: str,
        *,
        user_id: str | None = None,
        time_range: TimeRange | None = None,
    ) -> list[EpisodicMemory]:
        """Episodic rows of one tenant, oldest first."""
        ...

    async def mark_consolidated(
        self, agency_id: str, memory_ids: Iterable[str], consolidation_count: int
    ) -> None: ...

    async def get_semantic(
        self, agency_id: str, concept: str, category: str
    ) -> SemanticMemory | None: ...

    async def upsert_semantic(self, memory: SemanticMemory) -> None:
        """Insert or replace by ``(agency_id, concept, category)``."""
        ...

    async def list_semantic(self, agency_id: str) -> list[SemanticMemory]: ...

    async def insert_procedural(self, memory: ProceduralMemory) -> None: ...

    async def list_procedural(
        self, agency_id: str, *, task_type: str | None = None
    ) -> list[ProceduralMemory]: ...


class InMemoryMemoryRepository:
    """Dict-backed repository for tests and single-process use."""

    def __init__(self) -> None:
        self._episodic: dict[str, dict[str, EpisodicMemory]] = defaultdict(dict)
        self._semantic: dict[str, dict[tuple[str, str], SemanticMemory]] = (
            defaultdict(dict)
        )
        self._procedural: dict[str, list[ProceduralMemory]] = defaultdict(list)
        self._lock = asyncio.Lock()

    # -- episodic --

    async def insert_episodic(self, memory: EpisodicMemory) -> None:
        async with self._lock:
            self._episodic[memory.agency_id][memory.id] = memory.model_copy(deep=True)

    async def list_episodic(
        self,
        agency_id: str,
        *,
        user_id: str | None = None,
        time_range: TimeRange | None = None,
    ) -> list[EpisodicMemory]:
        async with self._lock:
            rows = list(self._episodic.get(agency_id, {}).values())
        if user_id is not None:
            rows = [row for row in rows if row.user_id == user_id]
        if time_range is not None:
            rows = [
                row
                for row in rows
                if time_range.start <= row.timestamp <= time_range.end
            ]
        rows.sort(key=lambda row: row.timestamp)
        return [row.model_copy(deep=True) for row in rows]

    async def mark_consolidated(
        self, agency_id: str, memory_ids: Iterable[str], consolidation_count: int
    ) -> None:
        async with self._lock:
            rows = self._episodic.get(agency_id, {})
            for memory_id in memory_ids:
                row = rows.get(memory_id)
                if row is not None:
                    rows[memory_id] = row.model_copy(
                        update={"consolidation_count": consolidation_count}
                    )

    # -- semantic --

    async def get_semantic(
        self, agency_id: str, concept: str, category: str
    ) -> SemanticMemory | None:
        async with self._lock:
            found = self._semantic.get(agency_id, {}).get((concept, category))
        return found.model_copy(deep=True) if found else None

    async def upsert_semantic(self, memory: SemanticMemory) -> None:
        async with self._lock:
            self._semantic[memory.agency_id][(memory.concept, memory.category)] = (
                memory.model_copy(deep=True)
            )

    async def list_semantic(self, agency_id: str) -> list[SemanticMemory]:
        async with self._lock:
            rows = list(self._semantic.get(agency_id, {}).values())
        return [row.model_copy(deep=True) for row in rows]

    # -- procedural --

    async def insert_procedural(self, memory: ProceduralMemory) -> None:
        async with self._lock:
            self._procedural[memory.agency_id].append(memory.model_copy(deep=True))

    async def list_procedural(
        self, agency_id: str, *, task_type: str | None = None
    ) -> list[ProceduralMemory]:
        async with self._lock:
            rows = list(self._procedural.get(agency_id, []))
        if task_type is not None:
            rows = [row for row in rows if row.task_type == task_type]
        return [row.model_copy(deep=True) for row in rows]
