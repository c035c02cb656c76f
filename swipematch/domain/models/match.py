"""Match and session reporting models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class Match:
    """A title the group accepted.

    At most one exists per ``(session_id, movie_id)``. Matches are permanent:
    retracting a like later does not remove them.

    Attributes:
        session_id: Owning session.
        movie_id: TMDB movie id.
        movie_data: Snapshot of the movie at match time.
        matched_at: Creation time (UTC).
        id: Store-assigned id, if the store has one.
    """

    session_id: str
    movie_id: int
    movie_data: dict[str, Any] | None = None
    matched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str | None = None

    @property
    def title(self) -> str:
        if not self.movie_data:
            return ""
        return str(self.movie_data.get("title") or "")


@dataclass(frozen=True)
class PartialMatch:
    """A title with likes below the quorum."""

    movie_id: int
    likes_count: int
    movie_data: dict[str, Any] | None = None


@dataclass(frozen=True)
class MemberSwipeCount:
    """Swipe progress of one member."""

    user_id: str
    user_name: str | None
    swipe_count: int


@dataclass(frozen=True)
class SessionStats:
    """Aggregate counters for one session."""

    total_members: int
    total_swipes: int
    total_likes: int
    total_matches: int
