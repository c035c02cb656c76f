"""Swipe models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class SwipeDirection(str, Enum):
    """Direction of one vote."""

    LIKE = "like"
    DISLIKE = "dislike"

    @property
    def is_like(self) -> bool:
        return self is SwipeDirection.LIKE

    @classmethod
    def from_swiped_right(cls, swiped_right: bool) -> SwipeDirection:
        """Map the stored ``swiped_right`` flag to a direction."""
        return cls.LIKE if swiped_right else cls.DISLIKE


@dataclass(frozen=True)
class Swipe:
    """One directional vote by one member on one candidate.

    Swipes are append-only. Undo sets ``retracted_at`` instead of deleting
    the row so the audit trail survives.

    Attributes:
        id: Store-assigned id.
        session_id: Session the vote belongs to.
        user_id: Voter.
        movie_id: TMDB movie id.
        direction: Like or dislike.
        movie_data: Snapshot of the movie summary at vote time.
        created_at: Insert time (UTC).
        retracted_at: Set when the swipe was undone.
    """

    id: str
    session_id: str
    user_id: str
    movie_id: int
    direction: SwipeDirection
    movie_data: dict[str, Any] | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    retracted_at: datetime | None = None

    @property
    def is_effective(self) -> bool:
        """True while the swipe has not been undone."""
        return self.retracted_at is None
