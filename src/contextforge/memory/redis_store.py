"""Redis-backed memory repository.

Key layout, all scoped by tenant (``{prefix}`` defaults to ``contextforge``):

* ``{prefix}:{agency}:episodic:{id}``: episodic record as JSON.
* ``{prefix}:{agency}:episodic``: sorted set of episodic ids scored by
  timestamp, used for ordering and time-range reads.
* ``{prefix}:{agency}:semantic``: hash of semantic records keyed by the
  JSON-encoded ``[concept, category]`` natural key.
* ``{prefix}:{agency}:procedural``: hash of procedural records by id.
* ``{prefix}:{agency}:procedural:type:{task_type}``: set of procedural ids.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable

from redis.asyncio import Redis  # type: ignore[import-untyped]

from contextforge.config import RedisConfig
from contextforge.errors import ConfigurationError
from contextforge.models.memory import EpisodicMemory
from contextforge.models.memory import ProceduralMemory
from contextforge.models.memory import SemanticMemory
from contextforge.models.memory import TimeRange

logger = logging.getLogger(__name__)


def _decode(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else value


def _semantic_field(concept: str, category: str) -> str:
    return json.dumps([concept, category])


class RedisMemoryRepository:
    """:class:`MemoryRepository` implementation on top of ``redis.asyncio``."""

    def __init__(self, redis: Redis, *, config: RedisConfig | None = None) -> None:
        self._redis = redis
        self._prefix = (config or RedisConfig()).key_prefix

    @classmethod
    def from_config(cls, config: RedisConfig) -> RedisMemoryRepository:
        return cls(Redis.from_url(config.url), config=config)

    async def close(self) -> None:
        await self._redis.aclose()

    # -- keys --

    def _key(self, agency_id: str, *parts: str) -> str:
        if not agency_id or ":" in agency_id:
            raise ConfigurationError(f"invalid tenant id for a Redis key: {agency_id!r}")
        return ":".join((self._prefix, agency_id, *parts))

    # -- episodic --

    async def insert_episodic(self, memory: EpisodicMemory) -> None:
        pipe = self._redis.pipeline()
        pipe.set(
            self._key(memory.agency_id, "episodic", memory.id),
            memory.model_dump_json(),
        )
        pipe.zadd(
            self._key(memory.agency_id, "episodic"),
            {memory.id: memory.timestamp.timestamp()},
        )
        await pipe.execute()

    async def list_episodic(
        self,
        agency_id: str,
        *,
        user_id: str | None = None,
        time_range: TimeRange | None = None,
    ) -> list[EpisodicMemory]:
        index = self._key(agency_id, "episodic")
        if time_range is None:
            ids = await self._redis.zrange(index, 0, -1)
        else:
            ids = await self._redis.zrangebyscore(
                index, time_range.start.timestamp(), time_range.end.timestamp()
            )
        if not ids:
            return []

        decoded_ids = [_decode(raw_id) for raw_id in ids]
        pipe = self._redis.pipeline()
        for memory_id in decoded_ids:
            pipe.get(self._key(agency_id, "episodic", memory_id))
        raw_results = await pipe.execute()

        rows: list[EpisodicMemory] = []
        for memory_id, raw in zip(decoded_ids, raw_results):
            if raw is None:
                logger.warning("Episodic index points at missing record %s", memory_id)
                continue
            row = EpisodicMemory.model_validate_json(raw)
            if user_id is None or row.user_id == user_id:
                rows.append(row)
        return rows

    async def mark_consolidated(
        self, agency_id: str, memory_ids: Iterable[str], consolidation_count: int
    ) -> None:
        for memory_id in memory_ids:
            key = self._key(agency_id, "episodic", memory_id)
            raw = await self._redis.get(key)
            if raw is None:
                continue
            row = EpisodicMemory.model_validate_json(raw)
            row = row.model_copy(update={"consolidation_count": consolidation_count})
            await self._redis.set(key, row.model_dump_json())

    # -- semantic --

    async def get_semantic(
        self, agency_id: str, concept: str, category: str
    ) -> SemanticMemory | None:
        raw = await self._redis.hget(
            self._key(agency_id, "semantic"), _semantic_field(concept, category)
        )
        if raw is None:
            return None
        return SemanticMemory.model_validate_json(raw)

    async def upsert_semantic(self, memory: SemanticMemory) -> None:
        await self._redis.hset(
            self._key(memory.agency_id, "semantic"),
            _semantic_field(memory.concept, memory.category),
            memory.model_dump_json(),
        )

    async def list_semantic(self, agency_id: str) -> list[SemanticMemory]:
        raw_rows = await self._redis.hvals(self._key(agency_id, "semantic"))
        return [SemanticMemory.model_validate_json(raw) for raw in raw_rows]

    # -- procedural --

    async def insert_procedural(self, memory: ProceduralMemory) -> None:
        pipe = self._redis.pipeline()
        pipe.hset(
            self._key(memory.agency_id, "procedural"),
            memory.id,
            memory.model_dump_json(),
        )
        pipe.sadd(
            self._key(memory.agency_id, "procedural", "type", memory.task_type),
            memory.id,
        )
        await pipe.execute()

    async def list_procedural(
        self, agency_id: str, *, task_type: str | None = None
    ) -> list[ProceduralMemory]:
        records_key = self._key(agency_id, "procedural")
        if task_type is None:
            raw_rows = await self._redis.hvals(records_key)
        else:
            ids = await self._redis.smembers(
                self._key(agency_id, "procedural", "type", task_type)
            )
            if not ids:
                return []
            raw_rows = await self._redis.hmget(
                records_key, [_decode(raw_id) for raw_id in ids]
            )
        return [
            ProceduralMemory.model_validate_json(raw)
            for raw in raw_rows
            if raw is not None
        ]
