"""Size- and time-bounded embedding cache.

Eviction is by *insertion* order: when the cache is full the entry that
was inserted first is dropped, regardless of how recently it was read.
Expired entries are only removed when a ``get`` touches them.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from docchat.config import settings


@dataclass
class CacheEntry:
    vector: list[float]
    inserted_at: float


class EmbeddingCache:
    """Thread-safe text → vector memo.

    Parameters
    ----------
    max_size:
        Maximum number of entries held at once.
    ttl_seconds:
        Age after which an entry is treated as absent.
    clock:
        Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        max_size: int = settings.cache_max_size,
        ttl_seconds: float = settings.cache_ttl_seconds,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        # dicts keep insertion order; the first key is the oldest insert.
        self._entries: dict[str, CacheEntry] = {}
        # Expiry on read mutates the map, so reads take the same lock as writes.
        self._lock = threading.Lock()

    def get(self, text: str) -> list[float] | None:
        with self._lock:
            entry = self._entries.get(text)
            if entry is None:
                return None
            if self._clock() - entry.inserted_at > self.ttl_seconds:
                del self._entries[text]
                return None
            return entry.vector

    def put(self, text: str, vector: list[float]) -> None:
        with self._lock:
            existing = self._entries.get(text)
            if existing is not None:
                # Refresh in place; the key keeps its eviction position.
                existing.vector = vector
                existing.inserted_at = self._clock()
                return
            if len(self._entries) >= self.max_size:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
            self._entries[text] = CacheEntry(vector=vector, inserted_at=self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict[str, float | int]:
        with self._lock:
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "ttl_seconds": self.ttl_seconds,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, text: object) -> bool:
        with self._lock:
            return text in self._entries
