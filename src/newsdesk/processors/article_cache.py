"""In-process TTL cache for paginated article listings."""

import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_ENTRIES = 50


def _category_key(category: Optional[str]) -> str:
    # listings match categories case-insensitively
    return (category or 'all').lower()


def make_key(category: Optional[str], page: int, page_size: int) -> str:
    return f"{_category_key(category)}_{page}_{page_size}"


class ArticlesCache:
    """Map of ``(category, page, page_size)`` to a listing page with a fixed TTL.

    When full, the oldest inserted entry is evicted. Expired entries are
    dropped lazily on read and in bulk by :meth:`cleanup`.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, max_entries: int = DEFAULT_MAX_ENTRIES,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, List[Dict[str, Any]], int]]" = OrderedDict()

    def configure(self, ttl_seconds: Optional[float] = None, max_entries: Optional[int] = None) -> None:
        if ttl_seconds is not None:
            self.ttl_seconds = ttl_seconds
        if max_entries is not None:
            self.max_entries = max_entries

    def _expired(self, stored_at: float) -> bool:
        return self._clock() - stored_at >= self.ttl_seconds

    def get(self, category: Optional[str], page: int, page_size: int) -> Optional[Tuple[List[Dict[str, Any]], int]]:
        """Return ``(data, total_count)`` for a fresh entry, else None."""
        key = make_key(category, page, page_size)
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, data, total = entry
        if self._expired(stored_at):
            del self._entries[key]
            logger.debug(f"Cache entry {key} expired")
            return None
        return data, total

    def set(self, category: Optional[str], page: int, page_size: int,
            data: List[Dict[str, Any]], total_count: int) -> None:
        key = make_key(category, page, page_size)
        if key in self._entries:
            del self._entries[key]
        while self._entries and len(self._entries) >= self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted cache entry {evicted}")
        self._entries[key] = (self._clock(), data, total_count)

    def invalidate_all(self) -> None:
        self._entries.clear()

    def invalidate_category(self, category: Optional[str] = None) -> int:
        """Drop every cached page for *category* (the unfiltered listing when None)."""
        prefix = f"{_category_key(category)}_"
        stale = [key for key in self._entries if key.startswith(prefix)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def cleanup(self) -> int:
        """Remove expired entries; returns how many were dropped."""
        stale = [key for key, (stored_at, _, _) in self._entries.items() if self._expired(stored_at)]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug(f"Cleaned {len(stale)} expired cache entries")
        return len(stale)

    def stats(self) -> Dict[str, Any]:
        return {'size': len(self._entries), 'keys': list(self._entries)}

    def __len__(self) -> int:
        return len(self._entries)


articles_cache = ArticlesCache()
