"""Text helpers shared by the assembler and the optimizer strategies."""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from collections.abc import Sequence

from contextforge.models.context import ContextChunk

# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

_WORD_RE = re.compile(r"[a-z0-9][a-z0-9'_-]*")

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "this", "that", "these", "those", "i", "you", "he",
        "she", "it", "we", "they", "me", "him", "her", "from", "have", "what",
        "when", "where", "which", "there", "their", "about", "would", "could",
        "should", "will", "been", "were", "your",
    }
)  # fmt: skip


def words(text: str) -> list[str]:
    """Lowercase word tokens of *text*, in order, duplicates kept."""
    return _WORD_RE.findall(text.lower())


def word_set(text: str) -> set[str]:
    return set(words(text))


# ---------------------------------------------------------------------------
# Similarity
# ---------------------------------------------------------------------------


def jaccard(left: set[str], right: set[str]) -> float:
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


def chunk_similarity(first: ContextChunk, second: ContextChunk) -> float:
    """Word-overlap similarity between two chunks, in [0, 1]."""
    return jaccard(word_set(first.content), word_set(second.content))


def max_similarity(chunk: ContextChunk, others: Iterable[ContextChunk]) -> float:
    return max((chunk_similarity(chunk, other) for other in others), default=0.0)


def term_frequency_score(query_terms: Sequence[str], content_terms: Sequence[str]) -> float:
    """BM25-like sum of ``tf * log(1 + len(content) / (tf + 1))`` over query terms."""
    if not content_terms:
        return 0.0
    total = 0.0
    length = len(content_terms)
    for term in query_terms:
        tf = content_terms.count(term)
        if tf:
            total += tf * math.log(1 + length / (tf + 1))
    return total


def keywords(text: str, *, min_length: int = 4) -> list[str]:
    """Distinct non-stop-words of at least *min_length* chars, first-seen order."""
    return list(
        dict.fromkeys(
            w for w in words(text) if len(w) >= min_length and w not in STOP_WORDS
        )
    )


# ---------------------------------------------------------------------------
# Truncation
# ---------------------------------------------------------------------------


def truncate_content(content: str, max_tokens: int, chars_per_token: int = 4) -> str:
    """Cut *content* to roughly *max_tokens*, marking the cut with an ellipsis."""
    max_chars = max_tokens * chars_per_token
    if len(content) <= max_chars:
        return content
    return content[: max(max_chars - 3, 0)] + "..."


def truncate_chunk(chunk: ContextChunk, max_tokens: int, chars_per_token: int = 4) -> ContextChunk:
    """Return a copy of *chunk* cut down to *max_tokens* and tagged as compressed."""
    metadata = dict(chunk.metadata)
    metadata["compressed"] = True
    metadata.setdefault("original_token_count", chunk.token_count)
    return chunk.model_copy(
        update={
            "content": truncate_content(chunk.content, max_tokens, chars_per_token),
            "token_count": max_tokens,
            "metadata": metadata,
        }
    )


# ---------------------------------------------------------------------------
# Concepts
# ---------------------------------------------------------------------------

CONCEPT_VOCABULARY: tuple[str, ...] = (
    "booking", "reservation", "payment", "customer", "hotel", "room",
    "check-in", "check-out", "confirmation", "cancellation",
    "user", "profile", "account", "authentication", "authorization",
    "dashboard", "analytics", "report", "metric", "statistic",
    "context", "optimization", "compression", "chunk", "token",
    "ai", "chat", "conversation", "message", "response",
)  # fmt: skip

GENERAL_CONCEPT = "general"


def extract_main_concept(
    content: str, vocabulary: Sequence[str] = CONCEPT_VOCABULARY
) -> str:
    """First vocabulary concept present as a word in *content*, else ``general``."""
    tokens = word_set(content)
    for concept in vocabulary:
        if concept in tokens:
            return concept
    return GENERAL_CONCEPT


def mean_relevance(chunks: Sequence[ContextChunk]) -> float:
    if not chunks:
        return 0.0
    return sum(chunk.relevance_score for chunk in chunks) / len(chunks)


def total_tokens(chunks: Iterable[ContextChunk]) -> int:
    return sum(chunk.token_count for chunk in chunks)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))
