"""In-memory cache of catalog pages.

Each ``CatalogClient`` owns one instance; nothing is shared at module
level, so two sessions (or two tests) never see each other's pages.

Cache key: the exact ``(filters, page)`` pair. Entries stay valid until
``clear()`` unless a TTL is configured.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog

from swipematch.domain.models.catalog import CatalogResult
from swipematch.domain.models.filters import SessionFilters

logger = structlog.get_logger(__name__)

PageKey = tuple[tuple[tuple[str, ...], tuple[str, ...], str], int]


def page_key(filters: SessionFilters, page: int) -> PageKey:
    """Cache key for one page of one filter set."""
    return (filters.cache_key(), page)


@dataclass
class CacheEntry:
    """Cached page with optional expiry.

    Attributes:
        result: The cached page.
        cached_at: When the page was stored.
        ttl_seconds: Lifetime in seconds, None for no expiry.
    """

    result: CatalogResult
    cached_at: datetime
    ttl_seconds: int | None = None

    def is_expired(self) -> bool:
        if self.ttl_seconds is None:
            return False
        expiry = self.cached_at + timedelta(seconds=self.ttl_seconds)
        return datetime.now(timezone.utc) >= expiry


class CatalogPageCache:
    """Page cache keyed by ``(filters, page)``.

    Only successful results should be stored; the client enforces that.
    """

    def __init__(self, ttl_seconds: int | None = None) -> None:
        """Initialize an empty cache.

        Args:
            ttl_seconds: Optional entry lifetime. None keeps entries until
                ``clear()``.
        """
        self._entries: dict[PageKey, CacheEntry] = {}
        self._ttl_seconds = ttl_seconds
        self._log = logger.bind(component="catalog_cache")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, filters: SessionFilters, page: int) -> CatalogResult | None:
        """Return the cached page or None on miss/expiry."""
        key = page_key(filters, page)
        entry = self._entries.get(key)

        if entry is None:
            self._log.debug("cache_miss", page=page)
            return None

        if entry.is_expired():
            self._log.debug("cache_expired", page=page)
            del self._entries[key]
            return None

        self._log.debug("cache_hit", page=page)
        return entry.result

    def set(self, filters: SessionFilters, page: int, result: CatalogResult) -> None:
        """Store a page."""
        self._entries[page_key(filters, page)] = CacheEntry(
            result=result,
            cached_at=datetime.now(timezone.utc),
            ttl_seconds=self._ttl_seconds,
        )
        self._log.debug("cache_set", page=page, items=len(result.items))

    def clear(self) -> None:
        """Drop every entry (e.g. after a filter change)."""
        count = len(self._entries)
        self._entries.clear()
        self._log.info("cache_cleared", entries_cleared=count)
