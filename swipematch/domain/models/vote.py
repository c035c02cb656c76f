"""Vote and undo result models.

The consensus engine never raises for expected store failures. It returns
these results with ``error`` set so the controller can decide how to
present the failure and, in particular, not advance the swipe cursor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from swipematch.domain.exceptions import SwipeMatchError

T = TypeVar("T")


@dataclass(frozen=True)
class VoteOutcome:
    """Result of recording one vote.

    Attributes:
        is_match: True only for the vote whose evaluation created the match.
        likes_count: Distinct non-retracted likes after this vote.
        required_votes: Quorum of the session.
        error: Failure that prevented the vote from being confirmed.
        retryable: True when ``error`` is transient.
    """

    is_match: bool
    likes_count: int = 0
    required_votes: int = 0
    error: SwipeMatchError | None = None
    retryable: bool = False

    @property
    def ok(self) -> bool:
        """True when the vote is confirmed persisted."""
        return self.error is None

    @classmethod
    def failed(cls, error: SwipeMatchError) -> VoteOutcome:
        return cls(
            is_match=False,
            error=error,
            retryable=bool(getattr(error, "retryable", False)),
        )


@dataclass(frozen=True)
class UndoResult:
    """Result of an undo request.

    Attributes:
        success: True if a swipe was retracted.
        movie_id: Movie of the retracted swipe.
        message: Short explanation when nothing was undone.
        error: Failure that prevented the undo.
    """

    success: bool
    movie_id: int | None = None
    message: str | None = None
    error: SwipeMatchError | None = None


@dataclass(frozen=True)
class QueryResult(Generic[T]):
    """Read-only report that may have failed.

    Attributes:
        items: Rows returned by the store; empty on failure.
        error: Failure that prevented the read.
    """

    items: list[T] = field(default_factory=list)
    error: SwipeMatchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
