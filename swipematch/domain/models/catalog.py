"""Catalog page result model."""

from __future__ import annotations

from dataclasses import dataclass, field

from swipematch.domain.models.movie import MovieSummary


@dataclass(frozen=True)
class CatalogResult:
    """One page of eligible titles.

    ``error`` separates "the provider failed" from "no titles match": a
    failed fetch has an empty ``items`` and a non-empty ``error``, an empty
    catalog has ``error=None``.

    Attributes:
        items: Titles on this page.
        page: 1-based page number.
        total_pages: Pages available for the filter set.
        total_results: Titles available for the filter set.
        error: Provider error message, or None.
    """

    items: tuple[MovieSummary, ...] = field(default_factory=tuple)
    page: int = 1
    total_pages: int = 0
    total_results: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def has_next_page(self) -> bool:
        return self.ok and self.page < self.total_pages

    @classmethod
    def failure(cls, error: str, page: int = 1) -> CatalogResult:
        return cls(items=(), page=page, total_pages=0, total_results=0, error=error)
