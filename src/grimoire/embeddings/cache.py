"""
LRU cache for query embeddings.

Search queries repeat a lot (names of recurring NPCs, the same
location asked about every session), so the vector for a normalized
query is kept in memory and reused.
"""

from collections import OrderedDict
from dataclasses import dataclass
import time
from typing import List, Optional, TypedDict

from grimoire.core.logging import logger


class CacheStats(TypedDict):
    """TypedDict for cache statistics."""

    size: int
    max_size: int
    hits: int
    misses: int
    hit_rate: float
    capacity_used: float


@dataclass
class CacheEntry:
    embedding: List[float]
    created_at: float


class QueryEmbeddingCache:
    """LRU cache keyed by the normalized query text.

    Uses OrderedDict for O(1) LRU eviction. A max_size of 0 disables
    caching altogether.

    Attributes:
        max_size: Maximum number of entries in cache
    """

    def __init__(self, max_size: int = 1000):
        if max_size < 0:
            raise ValueError(f"max_size must be >= 0, got {max_size}")
        self.max_size = max_size
        self._cache: OrderedDict[str, CacheEntry] = OrderedDict()
        self._hits = 0
        self._misses = 0

        logger.debug("QueryEmbeddingCache initialized", max_size=max_size)

    @staticmethod
    def normalize(text: str) -> str:
        """Cache key: trimmed, lower-cased text."""
        return text.strip().lower()

    def get(self, text: str) -> Optional[List[float]]:
        """Returns the cached vector and marks it most recently used."""
        key = self.normalize(text)
        entry = self._cache.get(key)
        if entry is None:
            self._misses += 1
            return None

        self._hits += 1
        self._cache.move_to_end(key)
        return list(entry.embedding)

    def set(self, text: str, embedding: List[float]) -> None:
        """Stores a vector, evicting the least recently used entry when full."""
        if self.max_size == 0 or not embedding:
            return

        key = self.normalize(text)
        if key in self._cache:
            self._cache.move_to_end(key)
        elif len(self._cache) >= self.max_size:
            self._cache.popitem(last=False)

        self._cache[key] = CacheEntry(embedding=list(embedding), created_at=time.time())

    def clear(self) -> None:
        size = len(self._cache)
        self._cache.clear()
        logger.info("Query embedding cache cleared", removed=size)

    @property
    def size(self) -> int:
        return len(self._cache)

    def get_stats(self) -> CacheStats:
        lookups = self._hits + self._misses
        return {
            "size": len(self._cache),
            "max_size": self.max_size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / lookups if lookups else 0.0,
            "capacity_used": len(self._cache) / self.max_size if self.max_size else 0.0,
        }
