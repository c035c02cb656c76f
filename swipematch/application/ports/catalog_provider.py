"""Catalog provider port.

The provider is the raw HTTP boundary to the movie database. It raises on
failure; ``CatalogClient`` is the layer that turns failures into results
and adds caching and prefetch.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Protocol

from swipematch.domain.models.catalog import CatalogResult
from swipematch.domain.models.filters import SessionFilters


class CatalogProviderError(Exception):
    """The provider could not serve a request.

    Attributes:
        status_code: HTTP status, if the provider answered.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CatalogProviderProtocol(Protocol):
    """Movie database operations used by the catalog client."""

    @abstractmethod
    async def discover(self, filters: SessionFilters, page: int) -> CatalogResult:
        """Fetch one page of titles matching ``filters``.

        Raises:
            CatalogProviderError: Request failed.
        """
        ...

    @abstractmethod
    async def movie_details(self, movie_id: int) -> dict[str, Any]:
        """Full details including videos, credits and watch providers."""
        ...

    @abstractmethod
    async def movie_videos(self, movie_id: int) -> list[dict[str, Any]]:
        """Video entries (trailers, teasers) of a title."""
        ...

    @abstractmethod
    async def watch_providers(self, movie_id: int) -> dict[str, Any]:
        """Watch provider listing keyed by region."""
        ...

    @abstractmethod
    async def search(self, query: str, page: int) -> CatalogResult:
        """Title search."""
        ...

    @abstractmethod
    async def popular(self, page: int) -> CatalogResult:
        """Popular titles, used as fallback."""
        ...

    @abstractmethod
    async def aclose(self) -> None:
        """Release the underlying HTTP connection pool."""
        ...
