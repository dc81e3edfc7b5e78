"""Tiered memory: episodic, semantic and procedural records per tenant."""

from contextforge.memory.cache import BoundedCache
from contextforge.memory.consolidation import ClusterPattern
from contextforge.memory.consolidation import ConsolidationReport
from contextforge.memory.consolidation import DEFAULT_CLUSTER_PATTERNS
from contextforge.memory.manager import merge_semantic
from contextforge.memory.manager import MemoryStore
from contextforge.memory.redis_store import RedisMemoryRepository
from contextforge.memory.repository import InMemoryMemoryRepository
from contextforge.memory.repository import MemoryRepository

__all__ = [
    "BoundedCache",
    "ClusterPattern",
    "ConsolidationReport",
    "DEFAULT_CLUSTER_PATTERNS",
    "InMemoryMemoryRepository",
    "MemoryRepository",
    "MemoryStore",
    "RedisMemoryRepository",
    "merge_semantic",
]
