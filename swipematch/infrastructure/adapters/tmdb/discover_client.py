"""TMDB adapter for CatalogProviderProtocol.

Talks to the TMDB v3 REST API over one shared ``httpx.AsyncClient``.
Every failure (timeout, connection error, non-2xx status, malformed body)
is raised as ``CatalogProviderError``; turning it into a result is the
catalog client's job.

Discover query:
- ``with_watch_providers``: provider ids joined with ``|`` (OR)
- ``with_genres``: genre ids joined with ``,`` (AND)
- ``certification.lte`` with ``certification_country=NL``
"""

from __future__ import annotations

from typing import Any

import httpx

from swipematch.application.ports.catalog_provider import (
    CatalogProviderError,
    CatalogProviderProtocol,
)
from swipematch.config.catalog_constants import CERTIFICATION_COUNTRY
from swipematch.config.settings import CatalogSettings
from swipematch.domain.models.catalog import CatalogResult
from swipematch.domain.models.filters import SessionFilters
from swipematch.domain.models.movie import MovieSummary
from swipematch.infrastructure.observability.logging import get_logger_for_component

logger = get_logger_for_component("TmdbCatalogProvider", component="catalog")

DETAILS_APPEND = "videos,credits,watch/providers"


def build_discover_params(
    settings: CatalogSettings, filters: SessionFilters, page: int
) -> dict[str, str]:
    """Query parameters of a discover request, without the API key."""
    params = {
        "language": settings.language,
        "region": settings.region,
        "watch_region": settings.region,
        "sort_by": settings.sort_by,
        "vote_count.gte": str(settings.min_vote_count),
        "page": str(page),
    }
    if filters.provider_ids:
        params["with_watch_providers"] = "|".join(sorted(filters.provider_ids))
    if filters.genre_ids:
        params["with_genres"] = ",".join(sorted(filters.genre_ids))
    params["certification_country"] = CERTIFICATION_COUNTRY
    params["certification.lte"] = filters.max_certification.value
    return params


class TmdbCatalogProvider(CatalogProviderProtocol):
    """Catalog provider backed by the TMDB API."""

    def __init__(
        self,
        settings: CatalogSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            settings: TMDB settings (API key, language, region).
            client: HTTP client to use; one is created when omitted and
                closed again by ``aclose``.
        """
        self._settings = settings
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=settings.base_url.rstrip("/"),
            timeout=settings.timeout_seconds,
        )

    async def discover(self, filters: SessionFilters, page: int) -> CatalogResult:
        data = await self._get(
            "/discover/movie", build_discover_params(self._settings, filters, page)
        )
        result = self._to_result(data, page)
        logger.info(
            "catalog_page_fetched",
            page=result.page,
            total_pages=result.total_pages,
            count=len(result.items),
        )
        return result

    async def movie_details(self, movie_id: int) -> dict[str, Any]:
        return await self._get(
            f"/movie/{movie_id}",
            {"language": self._settings.language, "append_to_response": DETAILS_APPEND},
        )

    async def movie_videos(self, movie_id: int) -> list[dict[str, Any]]:
        data = await self._get(
            f"/movie/{movie_id}/videos", {"language": self._settings.language}
        )
        return list(data.get("results") or [])

    async def watch_providers(self, movie_id: int) -> dict[str, Any]:
        data = await self._get(f"/movie/{movie_id}/watch/providers", {})
        return dict(data.get("results") or {})

    async def search(self, query: str, page: int) -> CatalogResult:
        data = await self._get(
            "/search/movie",
            {
                "language": self._settings.language,
                "region": self._settings.region,
                "query": query,
                "page": str(page),
            },
        )
        return self._to_result(data, page)

    async def popular(self, page: int) -> CatalogResult:
        data = await self._get(
            "/movie/popular",
            {
                "language": self._settings.language,
                "region": self._settings.region,
                "page": str(page),
            },
        )
        return self._to_result(data, page)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        query = {"api_key": self._settings.api_key, **params}
        try:
            response = await self._client.get(path, params=query)
        except httpx.TimeoutException as e:
            raise CatalogProviderError(
                f"Request timeout after {self._settings.timeout_seconds}s"
            ) from e
        except httpx.RequestError as e:
            raise CatalogProviderError(f"Request failed: {e}") from e

        return self._handle_response(path, response)

    def _handle_response(self, path: str, response: httpx.Response) -> dict[str, Any]:
        status = response.status_code

        if status == 401:
            raise CatalogProviderError("Invalid API key", status_code=status)
        if status == 404:
            raise CatalogProviderError(f"Not found: {path}", status_code=status)
        if status == 429:
            raise CatalogProviderError("Rate limit exceeded", status_code=status)
        if status >= 400:
            raise CatalogProviderError(f"HTTP error {status}", status_code=status)

        try:
            data = response.json()
        except ValueError as e:
            raise CatalogProviderError(
                "Malformed response body", status_code=status
            ) from e
        if not isinstance(data, dict):
            raise CatalogProviderError("Unexpected response shape", status_code=status)
        return data

    @staticmethod
    def _to_result(data: dict[str, Any], page: int) -> CatalogResult:
        try:
            items = tuple(MovieSummary.from_tmdb(item) for item in data.get("results") or [])
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogProviderError(f"Malformed result entry: {e}") from e
        return CatalogResult(
            items=items,
            page=int(data.get("page") or page),
            total_pages=int(data.get("total_pages") or 0),
            total_results=int(data.get("total_results") or 0),
        )
