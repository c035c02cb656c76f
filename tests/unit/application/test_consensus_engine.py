"""Unit tests for ConsensusEngine.

Uses the in-memory store for the quorum scenarios and AsyncMock stores
for failure handling.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from swipematch.application.ports.session_store import QuorumCheck, UndoneSwipe
from swipematch.application.services.consensus_engine import (
    NOTHING_TO_UNDO,
    ConsensusEngine,
)
from swipematch.domain.errors.session import SessionNotFoundError
from swipematch.domain.exceptions import TransientStoreError
from swipematch.domain.models.filters import SessionFilters
from swipematch.domain.models.session import Session
from swipematch.domain.models.swipe import SwipeDirection
from swipematch.infrastructure.stubs import InMemorySessionStore

LIKE = SwipeDirection.LIKE
DISLIKE = SwipeDirection.DISLIKE
SNAPSHOT = {"title": "Heat"}


async def _session_with_members(
    store: InMemorySessionStore,
    filters: SessionFilters,
    required_votes: int,
    members: int,
) -> Session:
    session = await store.create_session("user-0", filters, required_votes)
    for index in range(1, members):
        await store.join_session(session.id, f"user-{index}")
    return session


@pytest.fixture
def failing_store() -> AsyncMock:
    """Store mock whose every call raises TransientStoreError."""
    store = AsyncMock()
    error = TransientStoreError("insert_swipe", "offline")
    store.insert_swipe.side_effect = error
    store.vote_and_maybe_match.side_effect = error
    store.undo_last_swipe.side_effect = error
    store.get_partial_matches.side_effect = error
    store.list_matches.side_effect = error
    store.get_session_stats.side_effect = error
    return store


class TestRecordVote:
    """Tests for record_vote."""

    @pytest.mark.asyncio
    async def test_two_vote_session(
        self,
        engine: ConsensusEngine,
        store: InMemorySessionStore,
        filters: SessionFilters,
    ) -> None:
        """Test the first like reports 1 of 2, the second creates the match."""
        session = await _session_with_members(store, filters, 2, 2)

        first = await engine.record_vote(session.id, "user-0", 42, LIKE, SNAPSHOT)
        second = await engine.record_vote(session.id, "user-1", 42, LIKE, SNAPSHOT)

        assert (first.is_match, first.likes_count, first.required_votes) == (
            False,
            1,
            2,
        )
        assert (second.is_match, second.likes_count) == (True, 2)

        matches = await engine.list_matches(session.id)
        assert [m.movie_id for m in matches.items] == [42]
        assert matches.items[0].movie_data == SNAPSHOT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("required_votes", [1, 2, 3])
    async def test_match_exactly_at_quorum(
        self,
        engine: ConsensusEngine,
        store: InMemorySessionStore,
        filters: SessionFilters,
        required_votes: int,
    ) -> None:
        """Test N-1 likes no match, N likes one match, N+1 likes no new match."""
        session = await _session_with_members(
            store, filters, required_votes, required_votes + 1
        )

        outcomes = [
            await engine.record_vote(session.id, f"user-{i}", 7, LIKE)
            for i in range(required_votes + 1)
        ]

        assert [o.is_match for o in outcomes] == (
            [False] * (required_votes - 1) + [True, False]
        )
        assert outcomes[-1].likes_count == required_votes + 1
        assert len((await engine.list_matches(session.id)).items) == 1

    @pytest.mark.asyncio
    async def test_concurrent_likes_create_one_match(
        self,
        engine: ConsensusEngine,
        store: InMemorySessionStore,
        filters: SessionFilters,
    ) -> None:
        """Test that simultaneous likes crossing the quorum yield one match."""
        session = await _session_with_members(store, filters, 2, 5)

        outcomes = await asyncio.gather(
            *(
                engine.record_vote(session.id, f"user-{i}", 99, LIKE)
                for i in range(5)
            )
        )

        assert sum(o.is_match for o in outcomes) == 1
        assert all(o.ok for o in outcomes)
        assert len((await engine.list_matches(session.id)).items) == 1

    @pytest.mark.asyncio
    async def test_dislike_never_evaluates(
        self,
        engine: ConsensusEngine,
        store: InMemorySessionStore,
        filters: SessionFilters,
    ) -> None:
        """Test that dislikes are stored but skip the quorum check."""
        session = await _session_with_members(store, filters, 1, 1)

        outcome = await engine.record_vote(session.id, "user-0", 5, DISLIKE)

        assert not outcome.is_match
        assert outcome.ok
        assert store.calls["vote_and_maybe_match"] == 0
        assert len(store.get_swipes(session.id)) == 1

    @pytest.mark.asyncio
    async def test_revote_counts_once(
        self,
        engine: ConsensusEngine,
        store: InMemorySessionStore,
        filters: SessionFilters,
    ) -> None:
        """Test that liking the same movie twice is one liker."""
        session = await _session_with_members(store, filters, 2, 2)

        await engine.record_vote(session.id, "user-0", 5, LIKE)
        again = await engine.record_vote(session.id, "user-0", 5, LIKE)

        assert not again.is_match
        assert again.likes_count == 1

    @pytest.mark.asyncio
    async def test_retry_with_same_swipe_id_stores_once(
        self,
        engine: ConsensusEngine,
        store: InMemorySessionStore,
        filters: SessionFilters,
    ) -> None:
        """Test that a retried vote with its swipe id does not duplicate."""
        session = await _session_with_members(store, filters, 2, 2)

        await engine.record_vote(session.id, "user-0", 5, LIKE, swipe_id="w-1")
        await engine.record_vote(session.id, "user-0", 5, LIKE, swipe_id="w-1")

        assert len(store.get_swipes(session.id)) == 1

    @pytest.mark.asyncio
    async def test_transient_failure_recovers_within_retries(
        self,
        engine: ConsensusEngine,
        store: InMemorySessionStore,
        filters: SessionFilters,
    ) -> None:
        """Test that a single transient failure is retried transparently."""
        session = await _session_with_members(store, filters, 1, 1)
        store.fail_next("insert_swipe")

        outcome = await engine.record_vote(session.id, "user-0", 5, LIKE)

        assert outcome.ok
        assert outcome.is_match
        assert store.calls["insert_swipe"] == 2

    @pytest.mark.asyncio
    async def test_persistent_failure_returns_error(
        self, failing_store: AsyncMock
    ) -> None:
        """Test that exhausted retries are reported, not raised."""
        engine = ConsensusEngine(failing_store, max_attempts=2, retry_base_delay=0)

        outcome = await engine.record_vote("s-1", "user-0", 5, LIKE)

        assert not outcome.ok
        assert outcome.retryable
        assert isinstance(outcome.error, TransientStoreError)
        assert failing_store.insert_swipe.await_count == 2
        failing_store.vote_and_maybe_match.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_quorum_failure_after_insert(self) -> None:
        """Test that a failing evaluation after a stored swipe is an error."""
        store = AsyncMock()
        store.vote_and_maybe_match.side_effect = TransientStoreError(
            "vote_and_maybe_match"
        )
        engine = ConsensusEngine(store, max_attempts=1, retry_base_delay=0)

        outcome = await engine.record_vote("s-1", "user-0", 5, LIKE)

        assert not outcome.ok
        store.insert_swipe.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_session(self, engine: ConsensusEngine) -> None:
        """Test that voting in a missing session is a non-retryable error."""
        outcome = await engine.record_vote("missing", "user-0", 5, LIKE)

        assert isinstance(outcome.error, SessionNotFoundError)
        assert not outcome.retryable

    @pytest.mark.asyncio
    async def test_passes_quorum_result_through(self) -> None:
        """Test that the store's quorum check is reported unchanged."""
        store = AsyncMock()
        store.vote_and_maybe_match.return_value = QuorumCheck(
            is_match=False, likes_count=3, required_votes=4
        )
        engine = ConsensusEngine(store)

        outcome = await engine.record_vote("s-1", "user-0", 5, LIKE, SNAPSHOT)

        assert (outcome.likes_count, outcome.required_votes) == (3, 4)
        store.vote_and_maybe_match.assert_awaited_once_with("s-1", 5, SNAPSHOT)


class TestUndo:
    """Tests for undo_last_vote."""

    @pytest.mark.asyncio
    async def test_undo_then_nothing_to_undo(
        self,
        engine: ConsensusEngine,
        store: InMemorySessionStore,
        filters: SessionFilters,
    ) -> None:
        """Test that only the latest swipe is undone."""
        session = await _session_with_members(store, filters, 2, 1)
        await engine.record_vote(session.id, "user-0", 1, LIKE)
        await engine.record_vote(session.id, "user-0", 2, LIKE)

        first = await engine.undo_last_vote(session.id, "user-0")
        second = await engine.undo_last_vote(session.id, "user-0")

        assert (first.success, first.movie_id) == (True, 2)
        assert not second.success
        assert second.message == NOTHING_TO_UNDO
        assert second.error is None

    @pytest.mark.asyncio
    async def test_undo_keeps_match(
        self,
        engine: ConsensusEngine,
        store: InMemorySessionStore,
        filters: SessionFilters,
    ) -> None:
        """Test that undoing a contributing like leaves the match."""
        session = await _session_with_members(store, filters, 2, 2)
        await engine.record_vote(session.id, "user-0", 1, LIKE)
        await engine.record_vote(session.id, "user-1", 1, LIKE)

        result = await engine.undo_last_vote(session.id, "user-1")

        assert result.success
        assert len((await engine.list_matches(session.id)).items) == 1
        partials = await engine.get_partial_matches(session.id)
        assert partials.items == []

    @pytest.mark.asyncio
    async def test_undo_failure_reported(self, failing_store: AsyncMock) -> None:
        """Test that a store failure comes back in the result."""
        engine = ConsensusEngine(failing_store, max_attempts=1)

        result = await engine.undo_last_vote("s-1", "user-0")

        assert not result.success
        assert isinstance(result.error, TransientStoreError)

    @pytest.mark.asyncio
    async def test_undo_maps_store_result(self) -> None:
        """Test mapping of the store's UndoneSwipe."""
        store = AsyncMock()
        store.undo_last_swipe.return_value = UndoneSwipe(success=True, movie_id=8)

        result = await ConsensusEngine(store).undo_last_vote("s-1", "user-0")

        assert (result.success, result.movie_id) == (True, 8)


class TestReports:
    """Tests for partial matches, match list and stats."""

    @pytest.mark.asyncio
    async def test_partial_matches_ordered_by_likes(
        self,
        engine: ConsensusEngine,
        store: InMemorySessionStore,
        filters: SessionFilters,
    ) -> None:
        """Test ordering and the min_votes threshold."""
        session = await _session_with_members(store, filters, 3, 3)
        await engine.record_vote(session.id, "user-0", 1, LIKE)
        for user in ("user-0", "user-1"):
            await engine.record_vote(session.id, user, 2, LIKE)

        everything = await engine.get_partial_matches(session.id, min_votes=0)
        popular = await engine.get_partial_matches(session.id, min_votes=2)

        assert [(p.movie_id, p.likes_count) for p in everything.items] == [
            (2, 2),
            (1, 1),
        ]
        assert [p.movie_id for p in popular.items] == [2]

    @pytest.mark.asyncio
    async def test_stats(
        self,
        engine: ConsensusEngine,
        store: InMemorySessionStore,
        filters: SessionFilters,
    ) -> None:
        """Test session counters."""
        session = await _session_with_members(store, filters, 1, 2)
        await engine.record_vote(session.id, "user-0", 1, LIKE)
        await engine.record_vote(session.id, "user-1", 2, DISLIKE)

        stats = await engine.get_session_stats(session.id)

        assert stats is not None
        assert (stats.total_members, stats.total_swipes) == (2, 2)
        assert (stats.total_likes, stats.total_matches) == (1, 1)

    @pytest.mark.asyncio
    async def test_report_failures(self, failing_store: AsyncMock) -> None:
        """Test that failed reads are flagged instead of raised."""
        engine = ConsensusEngine(failing_store, max_attempts=1)

        assert not (await engine.get_partial_matches("s-1")).ok
        assert not (await engine.list_matches("s-1")).ok
        assert await engine.get_session_stats("s-1") is None
