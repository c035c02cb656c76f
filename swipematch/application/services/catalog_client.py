"""Catalog client: cached, prefetching access to eligible titles.

Wraps a ``CatalogProviderProtocol`` and adds:

- A page cache keyed by the exact ``(filters, page)`` pair. Repeated calls
  with the same key are served without a network round trip until
  ``clear_cache()``.
- Single flight: concurrent misses on one key share one request.
- One-page-ahead prefetch: serving page N with N < total_pages schedules a
  background load of page N+1 into the cache; the caller never waits on it.
- A failure boundary: provider errors come back as a ``CatalogResult`` with
  empty ``items`` and ``error`` set. Failed pages are not cached.

Usage:
    client = CatalogClient(provider)
    result = await client.fetch(filters, page=1)
    if not result.ok:
        show_error(result.error)
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

from swipematch.application.ports.catalog_provider import (
    CatalogProviderError,
    CatalogProviderProtocol,
)
from swipematch.application.services.base import LoggingMixin
from swipematch.domain.models.catalog import CatalogResult
from swipematch.domain.models.filters import SessionFilters
from swipematch.domain.models.movie import UNKNOWN_GENRE
from swipematch.infrastructure.cache.catalog_page_cache import (
    CatalogPageCache,
    PageKey,
    page_key,
)

DEFAULT_IMAGE_BASE = "https://image.tmdb.org/t/p"
TRAILER_SITE = "YouTube"
TRAILER_TYPE = "Trailer"
YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v={key}"
UNKNOWN_RUNTIME = "Onbekend"


class CatalogClient(LoggingMixin):
    """Cached and prefetching front of the movie catalog.

    Attributes:
        _provider: Raw catalog access.
        _cache: Page cache owned by this instance.
        _inflight: Running page loads by key.
        _prefetch_tasks: Background prefetches still running.
        _generation: Bumped on ``clear_cache`` so that loads started before
            the clear do not repopulate the cache.
    """

    def __init__(
        self,
        provider: CatalogProviderProtocol,
        cache: CatalogPageCache | None = None,
        image_base: str = DEFAULT_IMAGE_BASE,
        genre_names: Mapping[int, str] | None = None,
        region: str = "NL",
    ) -> None:
        """Initialize the client.

        Args:
            provider: Movie database adapter.
            cache: Page cache; a fresh one is created when omitted.
            image_base: Image CDN root used by ``poster_url``.
            genre_names: Genre id -> display name lookup.
            region: Region whose watch providers are reported.
        """
        self._provider = provider
        self._cache = cache if cache is not None else CatalogPageCache()
        self._image_base = image_base.rstrip("/")
        self._genre_names = dict(genre_names or {})
        self._region = region
        self._inflight: dict[PageKey, asyncio.Task[CatalogResult]] = {}
        self._prefetch_tasks: set[asyncio.Task[CatalogResult]] = set()
        self._generation = 0
        self._closed = False
        self._init_logger(component="catalog")

    @property
    def cache(self) -> CatalogPageCache:
        return self._cache

    async def fetch(
        self, filters: SessionFilters, page: int = 1, prefetch: bool = True
    ) -> CatalogResult:
        """Return one page of titles for ``filters``.

        Args:
            filters: Session filter set.
            page: 1-based page number.
            prefetch: Schedule page+1 in the background when it exists.

        Returns:
            The page, or an empty result with ``error`` set on failure.
        """
        cached = self._cache.get(filters, page)
        result = cached if cached is not None else await self._load(filters, page)

        if prefetch and result.has_next_page:
            self._schedule_prefetch(filters, page + 1)

        return result

    def clear_cache(self) -> None:
        """Drop cached pages and forget in-flight loads."""
        self._generation += 1
        self._inflight.clear()
        self._cache.clear()

    async def wait_for_prefetch(self) -> None:
        """Wait until all scheduled prefetches have finished."""
        while self._prefetch_tasks:
            await asyncio.gather(*list(self._prefetch_tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel background work and close the provider."""
        if self._closed:
            return
        self._closed = True
        pending = list(self._prefetch_tasks) + list(self._inflight.values())
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._prefetch_tasks.clear()
        self._inflight.clear()
        await self._provider.aclose()

    async def _load(self, filters: SessionFilters, page: int) -> CatalogResult:
        """Load a page, joining a request already in flight for the same key."""
        key = page_key(filters, page)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(
                self._request(filters, page, self._generation),
                name=f"catalog-page-{page}",
            )
            self._inflight[key] = task
            task.add_done_callback(lambda done, key=key: self._forget(key, done))
        return await asyncio.shield(task)

    def _forget(self, key: PageKey, task: asyncio.Task[CatalogResult]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _request(
        self, filters: SessionFilters, page: int, generation: int
    ) -> CatalogResult:
        log = self._log_operation("fetch_page", page=page)
        try:
            result = await self._provider.discover(filters, page)
        except CatalogProviderError as exc:
            log.warning(
                "catalog_fetch_failed",
                error=str(exc),
                status_code=exc.status_code,
            )
            return CatalogResult.failure(str(exc), page=page)

        if generation == self._generation:
            self._cache.set(filters, page, result)
        log.info(
            "catalog_page_fetched",
            items=len(result.items),
            total_pages=result.total_pages,
        )
        return result

    def _schedule_prefetch(self, filters: SessionFilters, page: int) -> None:
        if self._closed:
            return
        key = page_key(filters, page)
        if key in self._cache or key in self._inflight:
            return

        self._log.debug("catalog_prefetch_scheduled", page=page)
        task = asyncio.create_task(self._prefetch(filters, page))
        self._prefetch_tasks.add(task)
        task.add_done_callback(self._prefetch_tasks.discard)

    async def _prefetch(self, filters: SessionFilters, page: int) -> CatalogResult:
        try:
            return await self._load(filters, page)
        except Exception as exc:
            self._log.error("catalog_prefetch_error", page=page, error=str(exc))
            return CatalogResult.failure(str(exc), page=page)

    # Title details

    async def fetch_movie_details(self, movie_id: int) -> dict[str, Any] | None:
        """Full details of one title, or None on failure."""
        try:
            return await self._provider.movie_details(movie_id)
        except CatalogProviderError as exc:
            self._log.warning("movie_details_failed", movie_id=movie_id, error=str(exc))
            return None

    async def fetch_trailer_url(self, movie_id: int) -> str | None:
        """URL of the first YouTube trailer, or None."""
        try:
            videos = await self._provider.movie_videos(movie_id)
        except CatalogProviderError as exc:
            self._log.warning("trailer_fetch_failed", movie_id=movie_id, error=str(exc))
            return None

        for video in videos:
            if video.get("type") == TRAILER_TYPE and video.get("site") == TRAILER_SITE:
                return YOUTUBE_WATCH_URL.format(key=video["key"])
        return None

    async def fetch_watch_providers(self, movie_id: int) -> list[dict[str, Any]]:
        """Streaming, rental and purchase providers in the configured region.

        Providers listed in more than one category are reported once.
        """
        try:
            listing = await self._provider.watch_providers(movie_id)
        except CatalogProviderError as exc:
            self._log.warning(
                "watch_providers_failed", movie_id=movie_id, error=str(exc)
            )
            return []

        regional = listing.get(self._region)
        if not regional:
            return []

        unique: dict[int, dict[str, Any]] = {}
        for category in ("flatrate", "rent", "buy"):
            for provider in regional.get(category) or []:
                unique.setdefault(provider["provider_id"], provider)
        return list(unique.values())

    async def search(self, query: str, page: int = 1) -> CatalogResult:
        """Search titles by name."""
        try:
            return await self._provider.search(query, page)
        except CatalogProviderError as exc:
            self._log.warning("catalog_search_failed", query=query, error=str(exc))
            return CatalogResult.failure(str(exc), page=page)

    async def fetch_popular(self, page: int = 1) -> CatalogResult:
        """Popular titles regardless of filters."""
        try:
            return await self._provider.popular(page)
        except CatalogProviderError as exc:
            self._log.warning("catalog_popular_failed", error=str(exc))
            return CatalogResult.failure(str(exc), page=page)

    # Presentation helpers

    def poster_url(self, poster_path: str | None, size: str = "w500") -> str | None:
        if not poster_path:
            return None
        return f"{self._image_base}/{size}{poster_path}"

    def backdrop_url(
        self, backdrop_path: str | None, size: str = "w1280"
    ) -> str | None:
        if not backdrop_path:
            return None
        return f"{self._image_base}/{size}{backdrop_path}"

    def genre_name(self, genre_id: int) -> str:
        return self._genre_names.get(genre_id, UNKNOWN_GENRE)

    @property
    def genre_names(self) -> Mapping[int, str]:
        return self._genre_names


def format_runtime(runtime: int | None) -> str:
    """Format a runtime in minutes as ``"2u 15m"``.

    Args:
        runtime: Minutes, or None/0 when unknown.
    """
    if not runtime:
        return UNKNOWN_RUNTIME

    hours, minutes = divmod(runtime, 60)
    if hours == 0:
        return f"{minutes}m"
    if minutes == 0:
        return f"{hours}u"
    return f"{hours}u {minutes}m"
