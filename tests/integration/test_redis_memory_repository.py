"""Integration tests for the Redis memory repository and the store on top of it.

Requires Docker: the session Redis container is started on first use.
"""

from __future__ import annotations

from datetime import datetime
from datetime import timedelta
from datetime import UTC

from contextforge.config import RedisConfig
from contextforge.memory import MemoryStore
from contextforge.memory import RedisMemoryRepository
from contextforge.models.memory import EpisodicMemory
from contextforge.models.memory import InteractionType
from contextforge.models.memory import MemoryOutcome
from contextforge.models.memory import MemoryQuery
from contextforge.models.memory import MemoryType
from contextforge.models.memory import ProceduralMemory
from contextforge.models.memory import SemanticMemory
from contextforge.models.memory import TimeRange

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def _episode(agency_id: str = "agency-a", **kwargs) -> EpisodicMemory:
    fields = {
        "agency_id": agency_id,
        "user_id": "u1",
        "content": "guest asked about booking",
        "timestamp": NOW,
        **kwargs,
    }
    return EpisodicMemory(**fields)


class TestRedisMemoryRepository:
    async def test_episodic_round_trip_and_ordering(self, redis_client):
        repo = RedisMemoryRepository(redis_client)
        newer = _episode(timestamp=NOW)
        older = _episode(timestamp=NOW - timedelta(days=3))
        other_user = _episode(user_id="u2", timestamp=NOW - timedelta(days=1))
        for memory in (newer, older, other_user):
            await repo.insert_episodic(memory)

        rows = await repo.list_episodic("agency-a")
        assert [r.id for r in rows] == [older.id, other_user.id, newer.id]

        mine = await repo.list_episodic("agency-a", user_id="u1")
        assert [r.id for r in mine] == [older.id, newer.id]

        window = TimeRange(start=NOW - timedelta(days=2), end=NOW)
        recent = await repo.list_episodic("agency-a", time_range=window)
        assert [r.id for r in recent] == [other_user.id, newer.id]

    async def test_mark_consolidated(self, redis_client):
        repo = RedisMemoryRepository(redis_client)
        memory = _episode()
        await repo.insert_episodic(memory)
        await repo.mark_consolidated("agency-a", [memory.id, "missing"], 5)

        [row] = await repo.list_episodic("agency-a")
        assert row.consolidation_count == 5

    async def test_semantic_upsert_by_natural_key(self, redis_client):
        repo = RedisMemoryRepository(redis_client)
        first = SemanticMemory(agency_id="agency-a", concept="Pool", category="faq", facts=["a"])
        await repo.upsert_semantic(first)
        await repo.upsert_semantic(first.model_copy(update={"facts": ["a", "b"]}))

        [row] = await repo.list_semantic("agency-a")
        assert row.facts == ["a", "b"]
        fetched = await repo.get_semantic("agency-a", "Pool", "faq")
        assert fetched is not None and fetched.id == first.id
        assert await repo.get_semantic("agency-a", "Pool", "other") is None

    async def test_procedural_by_task_type(self, redis_client):
        repo = RedisMemoryRepository(redis_client)
        checkin = ProceduralMemory(agency_id="agency-a", task_type="checkin", pattern="p")
        checkout = ProceduralMemory(agency_id="agency-a", task_type="checkout", pattern="p")
        await repo.insert_procedural(checkin)
        await repo.insert_procedural(checkout)

        assert len(await repo.list_procedural("agency-a")) == 2
        [row] = await repo.list_procedural("agency-a", task_type="checkin")
        assert row.id == checkin.id
        assert await repo.list_procedural("agency-a", task_type="spa") == []

    async def test_tenants_are_isolated(self, redis_client):
        repo = RedisMemoryRepository(redis_client)
        await repo.insert_episodic(_episode("agency-a"))
        await repo.insert_episodic(_episode("agency-b"))
        await repo.upsert_semantic(
            SemanticMemory(agency_id="agency-b", concept="Pool", category="faq")
        )

        assert {r.agency_id for r in await repo.list_episodic("agency-a")} == {"agency-a"}
        assert await repo.list_semantic("agency-a") == []

    async def test_custom_key_prefix(self, redis_client):
        repo = RedisMemoryRepository(redis_client, config=RedisConfig(key_prefix="cf-test"))
        await repo.insert_episodic(_episode())
        keys = {key.decode() for key in await redis_client.keys("cf-test:*")}
        assert "cf-test:agency-a:episodic" in keys


class TestMemoryStoreOnRedis:
    async def test_consolidation_is_idempotent(self, redis_client):
        store = MemoryStore(RedisMemoryRepository(redis_client), clock=lambda: NOW)
        for i in range(3):
            await store.store_episodic(
                _episode(
                    content=f"refund request {i}",
                    access_count=5,
                    outcome=MemoryOutcome.success,
                    interaction_type=InteractionType.decision,
                )
            )

        first = await store.consolidate_memories("u1", "agency-a")
        second = await store.consolidate_memories("u1", "agency-a")

        assert first.candidates == 3
        assert second.candidates == 0
        results = await store.query_memories(
            MemoryQuery(type=MemoryType.semantic, query="payment", agency_id="agency-a")
        )
        assert [r.record.concept for r in results] == ["Payment Handling"]
