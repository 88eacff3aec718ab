"""Data models shared by the loader components.

``CachedPage`` is what the cache stores, ``PageResult`` is the canonical
normalized response handed back to callers, and ``LoaderState`` is the
snapshot the UI reads to render its status line.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple


@dataclass(frozen=True)
class CachedPage:
    """A single cached fetch result.

    Attributes
    ----------
    query: str
        The search text the page was fetched for.
    page: int
        Page number, as requested by the caller.
    items: tuple
        The normalized item records, in server order.
    timestamp: float
        Monotonic insertion time, used for FIFO eviction.
    """

    query: str
    page: int
    items: Tuple[Any, ...]
    timestamp: float

    @property
    def key(self) -> Tuple[str, int]:
        return (self.query, self.page)


@dataclass
class PageResult:
    """Normalized ``{items, page, total_pages}`` response."""

    items: List[Any]
    page: int
    total_pages: int

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PageResult":
        """Build a result from a mapping returned by ``map_response``.

        Accepts either ``totalPages`` or ``total_pages`` for the page count.

        Raises
        ------
        KeyError
            If ``items``, ``page`` or the page count is missing.
        TypeError, ValueError
            If the values cannot be coerced.
        """
        if "totalPages" in data:
            total_pages = data["totalPages"]
        else:
            total_pages = data["total_pages"]
        return cls(
            items=list(data["items"]),
            page=int(data["page"]),
            total_pages=int(total_pages),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": list(self.items),
            "page": self.page,
            "total_pages": self.total_pages,
        }


@dataclass
class LoaderState:
    """Snapshot of the last successfully completed network fetch."""

    query: str
    current_page: int
    total_pages: int
    cached_pages: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "current_page": self.current_page,
            "total_pages": self.total_pages,
            "cached_pages": list(self.cached_pages),
        }
