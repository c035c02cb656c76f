"""Catalog provider stub for testing.

Serves pre-built pages instead of calling TMDB. Supports:
- Per-filter-set pages, or one default catalog for every filter set
- Call recording for cache and single-flight assertions
- Injectable failures
- An optional gate to hold requests in flight

WARNING: Not for production use.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Iterable
from typing import Any

from swipematch.application.ports.catalog_provider import (
    CatalogProviderError,
    CatalogProviderProtocol,
)
from swipematch.domain.models.catalog import CatalogResult
from swipematch.domain.models.filters import SessionFilters
from swipematch.domain.models.movie import MovieSummary

DEFAULT_PAGE_SIZE = 20


def make_movies(start: int, count: int) -> tuple[MovieSummary, ...]:
    """Build ``count`` distinct titles with ids starting at ``start``."""
    return tuple(
        MovieSummary(id=movie_id, title=f"Movie {movie_id}", genre_ids=(28,))
        for movie_id in range(start, start + count)
    )


class CatalogProviderStub(CatalogProviderProtocol):
    """In-memory catalog provider.

    Example:
        >>> stub = CatalogProviderStub(make_movies(1, 45), page_size=20)
        >>> (await stub.discover(filters, 3)).items  # titles 41..45
    """

    def __init__(
        self,
        movies: Iterable[MovieSummary] = (),
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._default = tuple(movies)
        self._by_filters: dict[tuple[Any, ...], tuple[MovieSummary, ...]] = {}
        self._page_size = page_size
        self._failures_remaining = 0
        self._failure_status: int | None = None
        self._details: dict[int, dict[str, Any]] = {}
        self._gate: asyncio.Event | None = None
        self.discover_calls: list[tuple[SessionFilters, int]] = []
        self.closed = False

    def set_catalog(
        self, filters: SessionFilters, movies: Iterable[MovieSummary]
    ) -> None:
        self._by_filters[filters.cache_key()] = tuple(movies)

    def set_details(self, movie_id: int, details: dict[str, Any]) -> None:
        self._details[movie_id] = details

    def fail_next(self, times: int = 1, status_code: int | None = 503) -> None:
        self._failures_remaining = times
        self._failure_status = status_code

    def hold(self) -> asyncio.Event:
        """Block discover calls until the returned event is set."""
        self._gate = asyncio.Event()
        return self._gate

    def calls_for(self, filters: SessionFilters, page: int) -> int:
        key = filters.cache_key()
        return sum(
            1 for f, p in self.discover_calls if f.cache_key() == key and p == page
        )

    async def discover(self, filters: SessionFilters, page: int) -> CatalogResult:
        self.discover_calls.append((filters, page))
        if self._gate is not None:
            await self._gate.wait()
        self._maybe_fail()
        movies = self._by_filters.get(filters.cache_key(), self._default)
        return self._page(movies, page)

    async def movie_details(self, movie_id: int) -> dict[str, Any]:
        self._maybe_fail()
        if movie_id not in self._details:
            raise CatalogProviderError(f"movie {movie_id} not found", status_code=404)
        return self._details[movie_id]

    async def movie_videos(self, movie_id: int) -> list[dict[str, Any]]:
        details = await self.movie_details(movie_id)
        return list(details.get("videos", {}).get("results", []))

    async def watch_providers(self, movie_id: int) -> dict[str, Any]:
        details = await self.movie_details(movie_id)
        return dict(details.get("watch/providers", {}).get("results", {}))

    async def search(self, query: str, page: int) -> CatalogResult:
        self._maybe_fail()
        needle = query.lower()
        return self._page(
            tuple(m for m in self._default if needle in m.title.lower()), page
        )

    async def popular(self, page: int) -> CatalogResult:
        self._maybe_fail()
        return self._page(self._default, page)

    async def aclose(self) -> None:
        self.closed = True

    def _maybe_fail(self) -> None:
        if self._failures_remaining > 0:
            self._failures_remaining -= 1
            raise CatalogProviderError(
                "catalog unavailable", status_code=self._failure_status
            )

    def _page(self, movies: tuple[MovieSummary, ...], page: int) -> CatalogResult:
        total_pages = math.ceil(len(movies) / self._page_size) if movies else 0
        start = (page - 1) * self._page_size
        return CatalogResult(
            items=movies[start : start + self._page_size],
            page=page,
            total_pages=total_pages,
            total_results=len(movies),
        )
