"""Movie summary model.

A ``MovieSummary`` is the catalog's view of a title: enough to render a
swipe card and to snapshot into swipe/match rows so that match lists do
not need a second catalog lookup.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

UNKNOWN_GENRE = "Onbekend"


@dataclass(frozen=True)
class MovieSummary:
    """A candidate title.

    Attributes:
        id: TMDB movie id.
        title: Display title.
        poster_path: TMDB poster path (``/abc.jpg``) or None.
        overview: Plot summary.
        release_date: ISO date string as delivered by TMDB.
        vote_average: TMDB rating, 0-10.
        genre_ids: TMDB genre ids.
        backdrop_path: TMDB backdrop path or None.
    """

    id: int
    title: str
    poster_path: str | None = None
    overview: str = ""
    release_date: str | None = None
    vote_average: float = 0.0
    genre_ids: tuple[int, ...] = field(default_factory=tuple)
    backdrop_path: str | None = None

    @classmethod
    def from_tmdb(cls, item: Mapping[str, Any]) -> MovieSummary:
        """Build from one entry of a TMDB ``results`` array."""
        return cls(
            id=int(item["id"]),
            title=item.get("title") or item.get("original_title") or "",
            poster_path=item.get("poster_path"),
            overview=item.get("overview") or "",
            release_date=item.get("release_date") or None,
            vote_average=float(item.get("vote_average") or 0.0),
            genre_ids=tuple(int(g) for g in item.get("genre_ids") or ()),
            backdrop_path=item.get("backdrop_path"),
        )

    def to_snapshot(
        self, genre_names: Mapping[int, str] | None = None
    ) -> dict[str, Any]:
        """Snapshot stored with swipes and matches.

        Args:
            genre_names: Optional id -> name lookup; unknown ids are stored
                as ``"Onbekend"``.
        """
        names = genre_names or {}
        return {
            "title": self.title,
            "poster_path": self.poster_path,
            "release_date": self.release_date,
            "vote_average": self.vote_average,
            "overview": self.overview,
            "genres": [
                {"id": genre_id, "name": names.get(genre_id, UNKNOWN_GENRE)}
                for genre_id in self.genre_ids
            ],
        }
