"""Vector-search collaborator interface and hit conversion."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol
from typing import runtime_checkable

from pydantic import BaseModel
from pydantic import Field

from contextforge.context.text import clamp
from contextforge.models.context import ContextChunk


class SearchHit(BaseModel):
    """One result returned by a vector search backend."""

    content: str
    source: str = "vector_search"
    similarity: float = Field(
        default=0.0,
        description="Backend score; cosine similarities may be negative.",
    )
    title: str | None = None


@runtime_checkable
class VectorSearch(Protocol):
    """Tenant-scoped similarity search over an external document index."""

    async def search(
        self, query: str, tenant_id: str, limit: int
    ) -> list[SearchHit]: ...


class NoopVectorSearch:
    """Search backend that never returns anything."""

    async def search(
        self, query: str, tenant_id: str, limit: int
    ) -> list[SearchHit]:
        return []


def hits_to_chunks(hits: Sequence[SearchHit]) -> list[ContextChunk]:
    """Convert search hits into chunks seeded with the hit similarity.

    Similarities outside [0, 1] are clamped into range.
    """
    chunks: list[ContextChunk] = []
    for hit in hits:
        metadata = {"title": hit.title} if hit.title else {}
        chunks.append(
            ContextChunk(
                content=hit.content,
                source=hit.source,
                relevance_score=clamp(hit.similarity),
                metadata=metadata,
            )
        )
    return chunks
