"""Bounded per-key read caches owned by a :class:`MemoryStore`."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from collections.abc import Hashable
from typing import Generic
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BoundedCache(Generic[T]):
    """Per-key lists capped at *capacity* items.

    Without *rank*, the oldest entry of a key is evicted first. With *rank*,
    the lowest-ranked entries are evicted. ``add`` never raises: a failure
    is logged and the cache is left as it was.
    """

    def __init__(
        self,
        capacity: int,
        *,
        rank: Callable[[T], float] | None = None,
        name: str = "cache",
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._rank = rank
        self._name = name
        self._entries: dict[Hashable, list[T]] = {}
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def add(self, key: Hashable, item: T) -> None:
        try:
            with self._lock:
                items = [*self._entries.get(key, []), item]
                if len(items) > self._capacity:
                    if self._rank is None:
                        items = items[-self._capacity :]
                    else:
                        rank = self._rank
                        items = sorted(items, key=rank, reverse=True)
                        items = items[: self._capacity]
                self._entries[key] = items
        except Exception:
            logger.exception("%s update failed for key %r", self._name, key)

    def get(self, key: Hashable) -> list[T]:
        with self._lock:
            return list(self._entries.get(key, []))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return sum(len(items) for items in self._entries.values())
