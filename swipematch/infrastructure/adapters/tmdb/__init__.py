"""TMDB catalog adapter."""

from swipematch.infrastructure.adapters.tmdb.discover_client import (
    TmdbCatalogProvider,
    build_discover_params,
)

__all__: list[str] = ["TmdbCatalogProvider", "build_discover_params"]
