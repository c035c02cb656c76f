"""Session store port.

The session store is the single source of truth for sessions, members,
swipes and matches. Implementations live in ``swipematch.infrastructure``:
an in-memory stub for tests, a SQLAlchemy store and a Supabase store.

Contract notes:

- ``join_session`` is idempotent. Re-joining returns the existing member
  and ``total_members`` grows exactly once per distinct new member.
- ``vote_and_maybe_match`` is the one atomic step of the system. Counting
  distinct likers, comparing with ``required_votes`` and inserting the match
  if absent happen as one serializable unit on the store side, guarded by a
  uniqueness constraint on ``(session_id, movie_id)``. Two callers crossing
  the quorum at the same instant produce exactly one match.
- Infrastructure failures are raised as ``TransientStoreError``.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from typing import Any, Protocol

from swipematch.domain.models.filters import SessionFilters
from swipematch.domain.models.match import (
    Match,
    MemberSwipeCount,
    PartialMatch,
    SessionStats,
)
from swipematch.domain.models.session import Member, Session
from swipematch.domain.models.swipe import Swipe, SwipeDirection


@dataclass(frozen=True)
class QuorumCheck:
    """Result of the atomic quorum evaluation.

    Attributes:
        is_match: True only if this evaluation inserted the match row.
        likes_count: Distinct non-retracted likers at evaluation time.
        required_votes: Quorum of the session.
    """

    is_match: bool
    likes_count: int
    required_votes: int


@dataclass(frozen=True)
class UndoneSwipe:
    """Result of retracting a user's latest swipe."""

    success: bool
    movie_id: int | None = None


class SessionStoreProtocol(Protocol):
    """Request/response operations on the session store."""

    @abstractmethod
    async def create_session(
        self,
        host_user_id: str,
        filters: SessionFilters,
        required_votes: int,
        host_name: str = "Host",
    ) -> Session:
        """Create a session and register the host as first member.

        Raises:
            TransientStoreError: Store unavailable.
        """
        ...

    @abstractmethod
    async def get_session(self, session_id: str) -> Session | None:
        """Fetch a session, or None if it does not exist."""
        ...

    @abstractmethod
    async def is_member(self, session_id: str, user_id: str) -> bool:
        """Return True if the identity already joined the session."""
        ...

    @abstractmethod
    async def join_session(
        self, session_id: str, user_id: str, user_name: str | None = None
    ) -> Member:
        """Join a session, returning the existing member on re-join.

        Raises:
            SessionNotFoundError: The session does not exist.
            TransientStoreError: Store unavailable.
        """
        ...

    @abstractmethod
    async def insert_swipe(
        self,
        session_id: str,
        user_id: str,
        movie_id: int,
        direction: SwipeDirection,
        movie_data: dict[str, Any] | None = None,
        swipe_id: str | None = None,
    ) -> Swipe:
        """Append a swipe row (likes and dislikes alike).

        A new swipe supersedes (retracts) the user's earlier effective swipe
        on the same movie, so at most one swipe per (session, user, movie)
        counts. ``swipe_id`` makes retries idempotent: inserting an id that
        already exists returns the stored row unchanged.
        """
        ...

    @abstractmethod
    async def vote_and_maybe_match(
        self,
        session_id: str,
        movie_id: int,
        movie_data: dict[str, Any] | None = None,
    ) -> QuorumCheck:
        """Atomically count likers and insert the match if the quorum is met.

        Raises:
            SessionNotFoundError: The session does not exist.
            TransientStoreError: Store unavailable.
        """
        ...

    @abstractmethod
    async def undo_last_swipe(self, session_id: str, user_id: str) -> UndoneSwipe:
        """Retract the user's most recent swipe in the session.

        Only the single latest swipe is considered: if it is already
        retracted, nothing is undone. Matches are never removed.
        """
        ...

    @abstractmethod
    async def list_member_swipe_counts(
        self, session_id: str
    ) -> list[MemberSwipeCount]:
        """Effective swipe count per member, ordered by join time."""
        ...

    @abstractmethod
    async def update_session_filters(
        self, session_id: str, filters: SessionFilters
    ) -> bool:
        """Replace the filter set. Host check is the caller's job.

        Returns:
            True if the session existed and was updated.
        """
        ...

    @abstractmethod
    async def list_matches(self, session_id: str) -> list[Match]:
        """All matches of a session, newest first."""
        ...

    @abstractmethod
    async def get_partial_matches(
        self, session_id: str, min_votes: int = 1
    ) -> list[PartialMatch]:
        """Movies with at least ``min_votes`` likes and no match yet."""
        ...

    @abstractmethod
    async def get_session_stats(self, session_id: str) -> SessionStats:
        """Aggregate counters for a session."""
        ...
