"""Bounded in-memory cache of fetched pages.

Entries are keyed by ``(query, page)`` and evicted first-in-first-out once the
store grows past its capacity.  Reads never refresh an entry's timestamp, so
repeated cache hits do not keep an old page alive.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from pageloader.core.data_models import CachedPage

# Default capacity (in pages)
DEFAULT_CACHE_PAGES = 10

CacheKey = Tuple[str, int]


class PageCache:
    """FIFO-evicting page store with hit/miss statistics."""

    def __init__(
        self,
        max_pages: int = DEFAULT_CACHE_PAGES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            max_pages: Maximum number of entries kept after an insertion settles
            clock: Monotonic time source used to stamp entries
        """
        self.max_pages = max_pages
        self._clock = clock
        self._entries: Dict[CacheKey, CachedPage] = {}
        self.logger = logging.getLogger(self.__class__.__name__)
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, query: str, page: int) -> Optional[CachedPage]:
        """Get a cached page.

        Args:
            query: Search text
            page: Page number

        Returns:
            The cached page or None if not present
        """
        entry = self._entries.get((query, page))
        if entry is not None:
            self._hits += 1
            self.logger.debug("Cache hit for %r page %d", query, page)
        else:
            self._misses += 1
            self.logger.debug("Cache miss for %r page %d", query, page)
        return entry

    def has(self, query: str, page: int) -> bool:
        """Check whether a page is cached without touching statistics."""
        return (query, page) in self._entries

    def put(self, query: str, page: int, items: Iterable[Any]) -> CachedPage:
        """Store a page, evicting the oldest entry if over capacity.

        Args:
            query: Search text
            page: Page number
            items: Normalized item records

        Returns:
            The stored entry
        """
        key = (query, page)
        entry = CachedPage(query=query, page=page, items=tuple(items), timestamp=self._clock())

        # Re-inserting moves the key to the end of iteration order
        self._entries.pop(key, None)
        self._entries[key] = entry
        self.logger.debug("Cached %d items for %r page %d", len(entry.items), query, page)

        if len(self._entries) > self.max_pages:
            self._evict_oldest()

        return entry

    def _evict_oldest(self) -> Optional[CacheKey]:
        """Remove the entry with the smallest timestamp.

        Among exact timestamp ties the first entry in iteration order is
        removed; callers should treat the choice as undefined.
        """
        oldest_key: Optional[CacheKey] = None
        oldest_time = float("inf")

        for key, entry in self._entries.items():
            if entry.timestamp < oldest_time:
                oldest_time = entry.timestamp
                oldest_key = key

        if oldest_key is not None:
            del self._entries[oldest_key]
            self._evictions += 1
            self.logger.debug("Evicted %r page %d", oldest_key[0], oldest_key[1])

        return oldest_key

    def pages_for(self, query: str) -> List[int]:
        """Return the cached page numbers for a query, ascending."""
        return sorted(entry.page for entry in self._entries.values() if entry.query == query)

    def clear(self) -> int:
        """Remove all entries.

        Returns:
            Number of entries removed
        """
        removed = len(self._entries)
        self._entries.clear()
        if removed:
            self.logger.debug("Cleared %d cache entries", removed)
        return removed

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with cache statistics
        """
        total = self._hits + self._misses
        hit_rate = (self._hits / total * 100) if total > 0 else 0.0

        return {
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
            "total_requests": total,
            "hit_rate_percent": round(hit_rate, 2),
            "size": len(self._entries),
            "max_pages": self.max_pages,
        }
