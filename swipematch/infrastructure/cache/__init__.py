"""Caches."""

from swipematch.infrastructure.cache.catalog_page_cache import (
    CacheEntry,
    CatalogPageCache,
    PageKey,
    page_key,
)

__all__: list[str] = ["CacheEntry", "CatalogPageCache", "PageKey", "page_key"]
