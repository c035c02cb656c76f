"""Consensus engine: turns swipes into votes and votes into matches.

Flow of ``record_vote``:

1. Persist the swipe unconditionally, like or dislike.
2. Dislikes return ``is_match=False`` straight away; they never count
   towards a quorum and never trigger an evaluation.
3. Likes call the store's atomic ``vote_and_maybe_match``. Counting the
   distinct likers, comparing with ``required_votes`` and inserting the
   match if absent happen in one serializable store-side step, so two
   members crossing the quorum at the same instant yield exactly one match.
   The engine never reads the tally and writes the match itself.

Matches are permanent. Undoing a like that contributed to a match leaves
the match in place; the undo only affects later evaluations of that movie.

Expected failures (store unavailable, unknown session) are returned inside
the result objects, never raised, so that the caller can keep the swipe
cursor where it is and offer a retry.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar
from uuid import uuid4

from swipematch.application.ports.session_store import SessionStoreProtocol
from swipematch.application.services.base import LoggingMixin
from swipematch.application.services.store_retry import with_retry
from swipematch.domain.errors.session import SessionNotFoundError
from swipematch.domain.exceptions import TransientStoreError
from swipematch.domain.models.match import Match, PartialMatch, SessionStats
from swipematch.domain.models.swipe import SwipeDirection
from swipematch.domain.models.vote import QueryResult, UndoResult, VoteOutcome

NOTHING_TO_UNDO = "nothing to undo"

T = TypeVar("T")


class ConsensusEngine(LoggingMixin):
    """Records votes and evaluates the match quorum.

    Example:
        >>> engine = ConsensusEngine(store)
        >>> outcome = await engine.record_vote(
        ...     session_id, user_id, 42, SwipeDirection.LIKE, snapshot
        ... )
        >>> outcome.is_match, outcome.likes_count, outcome.required_votes
        (False, 1, 2)
    """

    def __init__(
        self,
        store: SessionStoreProtocol,
        max_attempts: int = 3,
        retry_base_delay: float = 0.2,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Session store holding swipes and matches.
            max_attempts: Attempts per store call before giving up.
            retry_base_delay: First retry delay in seconds.
        """
        self._store = store
        self._max_attempts = max_attempts
        self._retry_base_delay = retry_base_delay
        self._init_logger(component="consensus")

    async def record_vote(
        self,
        session_id: str,
        user_id: str,
        movie_id: int,
        direction: SwipeDirection,
        movie_data: dict[str, Any] | None = None,
        swipe_id: str | None = None,
    ) -> VoteOutcome:
        """Record one vote and evaluate the quorum for likes.

        Args:
            session_id: Session voted in.
            user_id: Voter.
            movie_id: Candidate voted on.
            direction: Like or dislike.
            movie_data: Movie snapshot stored with the swipe and the match.
            swipe_id: Idempotency key; pass the same value when retrying a
                failed vote so the swipe is not stored twice.

        Returns:
            VoteOutcome. ``error`` is set when the vote could not be
            confirmed; the caller must not treat it as recorded.
        """
        swipe_id = swipe_id or str(uuid4())
        log = self._log_operation(
            "record_vote",
            session_id=session_id,
            user_id=user_id,
            movie_id=movie_id,
            direction=direction.value,
        )

        try:
            await self._call(
                "insert_swipe",
                lambda: self._store.insert_swipe(
                    session_id,
                    user_id,
                    movie_id,
                    direction,
                    movie_data,
                    swipe_id=swipe_id,
                ),
            )
        except (TransientStoreError, SessionNotFoundError) as exc:
            log.warning("vote_not_recorded", error=str(exc))
            return VoteOutcome.failed(exc)

        if not direction.is_like:
            log.info("vote_recorded")
            return VoteOutcome(is_match=False)

        try:
            check = await self._call(
                "vote_and_maybe_match",
                lambda: self._store.vote_and_maybe_match(
                    session_id, movie_id, movie_data
                ),
            )
        except (TransientStoreError, SessionNotFoundError) as exc:
            log.warning("quorum_check_failed", error=str(exc))
            return VoteOutcome.failed(exc)

        if check.is_match:
            log.info(
                "match_created",
                likes_count=check.likes_count,
                required_votes=check.required_votes,
            )
        else:
            log.info(
                "vote_recorded",
                likes_count=check.likes_count,
                required_votes=check.required_votes,
            )

        return VoteOutcome(
            is_match=check.is_match,
            likes_count=check.likes_count,
            required_votes=check.required_votes,
        )

    async def undo_last_vote(self, session_id: str, user_id: str) -> UndoResult:
        """Retract the user's latest swipe if it is still effective.

        Existing matches are kept.
        """
        log = self._log_operation(
            "undo_last_vote", session_id=session_id, user_id=user_id
        )
        try:
            undone = await self._call(
                "undo_last_swipe",
                lambda: self._store.undo_last_swipe(session_id, user_id),
            )
        except TransientStoreError as exc:
            log.warning("undo_failed", error=str(exc))
            return UndoResult(success=False, error=exc)

        if not undone.success:
            log.info("undo_noop")
            return UndoResult(success=False, message=NOTHING_TO_UNDO)

        log.info("vote_undone", movie_id=undone.movie_id)
        return UndoResult(success=True, movie_id=undone.movie_id)

    async def get_partial_matches(
        self, session_id: str, min_votes: int = 1
    ) -> QueryResult[PartialMatch]:
        """Movies with at least ``min_votes`` likes that are not yet matches.

        Read-only; ordered by likes, highest first.
        """
        try:
            rows = await self._call(
                "get_partial_matches",
                lambda: self._store.get_partial_matches(session_id, max(1, min_votes)),
            )
        except TransientStoreError as exc:
            return QueryResult(error=exc)
        return QueryResult(items=rows)

    async def list_matches(self, session_id: str) -> QueryResult[Match]:
        """All matches of the session, newest first."""
        try:
            rows = await self._call(
                "list_matches", lambda: self._store.list_matches(session_id)
            )
        except TransientStoreError as exc:
            return QueryResult(error=exc)
        return QueryResult(items=rows)

    async def get_session_stats(self, session_id: str) -> SessionStats | None:
        """Aggregate counters, or None when the store is unavailable."""
        try:
            return await self._call(
                "get_session_stats",
                lambda: self._store.get_session_stats(session_id),
            )
        except TransientStoreError:
            return None

    async def _call(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        return await with_retry(
            operation,
            call,
            max_attempts=self._max_attempts,
            base_delay=self._retry_base_delay,
        )
