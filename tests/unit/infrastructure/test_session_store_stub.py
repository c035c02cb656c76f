"""Unit tests for InMemorySessionStore.

The stub backs most application tests, so its contract has to match the
real stores: idempotent join, swipe supersede, single-step undo and the
atomic quorum check.
"""

import asyncio

import pytest

from swipematch.domain.errors.session import SessionNotFoundError
from swipematch.domain.exceptions import TransientStoreError
from swipematch.domain.models.filters import SessionFilters
from swipematch.domain.models.match import Match
from swipematch.domain.models.session import Member, Session
from swipematch.domain.models.swipe import SwipeDirection
from swipematch.infrastructure.realtime.local_change_feed import LocalChangeFeed
from swipematch.infrastructure.stubs import InMemorySessionStore

LIKE = SwipeDirection.LIKE
DISLIKE = SwipeDirection.DISLIKE


@pytest.fixture
async def session(
    store: InMemorySessionStore, filters: SessionFilters
) -> Session:
    """A session needing two likes, hosted by ``host``."""
    return await store.create_session("host", filters, required_votes=2)


class TestMembership:
    """Tests for create and join."""

    @pytest.mark.asyncio
    async def test_create_registers_host(
        self, store: InMemorySessionStore, session: Session
    ) -> None:
        """Test that the host is the first member."""
        assert session.total_members == 1
        assert await store.is_member(session.id, "host")
        assert not await store.is_member(session.id, "guest")

    @pytest.mark.asyncio
    async def test_join_is_idempotent(
        self, store: InMemorySessionStore, session: Session
    ) -> None:
        """Test that re-joining counts the member once."""
        first = await store.join_session(session.id, "guest", "Bob")
        second = await store.join_session(session.id, "guest", "Robert")

        stored = await store.get_session(session.id)
        assert stored is not None
        assert stored.total_members == 2
        assert second == first
        assert second.user_name == "Bob"

    @pytest.mark.asyncio
    async def test_concurrent_joins_count_once(
        self, store: InMemorySessionStore, session: Session
    ) -> None:
        """Test that simultaneous joins of one identity add one member."""
        await asyncio.gather(
            *(store.join_session(session.id, "guest", "Bob") for _ in range(5))
        )

        stored = await store.get_session(session.id)
        assert stored is not None
        assert stored.total_members == 2

    @pytest.mark.asyncio
    async def test_join_unknown_session(self, store: InMemorySessionStore) -> None:
        """Test that joining a missing session raises."""
        with pytest.raises(SessionNotFoundError):
            await store.join_session("missing", "guest")

    @pytest.mark.asyncio
    async def test_join_publishes_member(
        self, store: InMemorySessionStore, feed: LocalChangeFeed, session: Session
    ) -> None:
        """Test that a new member is published once, a re-join is not."""
        members: list[Member] = []

        async def on_member(member: Member) -> None:
            members.append(member)

        async def on_match(match: Match) -> None:
            pass

        await feed.subscribe(session.id, on_match, on_member)
        await store.join_session(session.id, "guest", "Bob")
        await store.join_session(session.id, "guest", "Bob")
        await feed.drain()

        assert [m.user_id for m in members] == ["guest"]


class TestSwipes:
    """Tests for insert_swipe and undo_last_swipe."""

    @pytest.mark.asyncio
    async def test_swipe_id_makes_insert_idempotent(
        self, store: InMemorySessionStore, session: Session
    ) -> None:
        """Test that retrying with the same id stores one row."""
        first = await store.insert_swipe(session.id, "host", 1, LIKE, swipe_id="w-1")
        again = await store.insert_swipe(session.id, "host", 1, LIKE, swipe_id="w-1")

        assert again == first
        assert len(store.get_swipes(session.id)) == 1

    @pytest.mark.asyncio
    async def test_new_swipe_supersedes_earlier(
        self, store: InMemorySessionStore, session: Session
    ) -> None:
        """Test that re-voting on a movie leaves one effective swipe."""
        await store.insert_swipe(session.id, "host", 1, LIKE)
        await store.insert_swipe(session.id, "host", 1, DISLIKE)

        swipes = store.get_swipes(session.id)
        assert [s.is_effective for s in swipes] == [False, True]
        assert store._likes_for(session.id, 1) == 0

    @pytest.mark.asyncio
    async def test_undo_retracts_latest_only(
        self, store: InMemorySessionStore, session: Session
    ) -> None:
        """Test that undo retracts the newest swipe and then stops."""
        await store.insert_swipe(session.id, "host", 1, LIKE)
        await store.insert_swipe(session.id, "host", 2, LIKE)

        first = await store.undo_last_swipe(session.id, "host")
        second = await store.undo_last_swipe(session.id, "host")

        assert first.success
        assert first.movie_id == 2
        assert not second.success
        assert [s.is_effective for s in store.get_swipes(session.id)] == [True, False]

    @pytest.mark.asyncio
    async def test_undo_without_swipes(
        self, store: InMemorySessionStore, session: Session
    ) -> None:
        """Test that undo with no swipes reports no success."""
        result = await store.undo_last_swipe(session.id, "host")

        assert not result.success
        assert result.movie_id is None

    @pytest.mark.asyncio
    async def test_undo_is_per_user(
        self, store: InMemorySessionStore, session: Session
    ) -> None:
        """Test that undo never touches another member's swipe."""
        await store.join_session(session.id, "guest")
        await store.insert_swipe(session.id, "host", 1, LIKE)
        await store.insert_swipe(session.id, "guest", 1, LIKE)

        result = await store.undo_last_swipe(session.id, "host")

        assert result.success
        guest_swipe = store.get_swipes(session.id)[1]
        assert guest_swipe.user_id == "guest"
        assert guest_swipe.is_effective


class TestQuorum:
    """Tests for vote_and_maybe_match."""

    @pytest.mark.asyncio
    async def test_match_at_quorum_only_once(
        self, store: InMemorySessionStore, session: Session
    ) -> None:
        """Test that the match is created once the quorum is met, never twice."""
        await store.join_session(session.id, "guest")
        await store.join_session(session.id, "third")

        await store.insert_swipe(session.id, "host", 1, LIKE)
        below = await store.vote_and_maybe_match(session.id, 1)
        await store.insert_swipe(session.id, "guest", 1, LIKE)
        at = await store.vote_and_maybe_match(session.id, 1)
        await store.insert_swipe(session.id, "third", 1, LIKE)
        above = await store.vote_and_maybe_match(session.id, 1)

        assert (below.is_match, below.likes_count) == (False, 1)
        assert (at.is_match, at.likes_count) == (True, 2)
        assert (above.is_match, above.likes_count) == (False, 3)
        assert len(await store.list_matches(session.id)) == 1

    @pytest.mark.asyncio
    async def test_partial_matches_exclude_matched(
        self, store: InMemorySessionStore, session: Session
    ) -> None:
        """Test that partial matches list liked but unmatched movies."""
        await store.join_session(session.id, "guest")
        for user_id in ("host", "guest"):
            await store.insert_swipe(session.id, user_id, 1, LIKE)
        await store.vote_and_maybe_match(session.id, 1)
        await store.insert_swipe(session.id, "host", 2, LIKE, {"title": "Two"})
        await store.insert_swipe(session.id, "guest", 3, DISLIKE)

        partials = await store.get_partial_matches(session.id, 1)

        assert [(p.movie_id, p.likes_count) for p in partials] == [(2, 1)]
        assert partials[0].movie_data == {"title": "Two"}

    @pytest.mark.asyncio
    async def test_stats_and_member_counts(
        self, store: InMemorySessionStore, session: Session
    ) -> None:
        """Test aggregate counters and per-member progress."""
        await store.join_session(session.id, "guest", "Bob")
        await store.insert_swipe(session.id, "host", 1, LIKE)
        await store.insert_swipe(session.id, "host", 2, DISLIKE)
        await store.insert_swipe(session.id, "guest", 1, LIKE)
        await store.vote_and_maybe_match(session.id, 1)

        stats = await store.get_session_stats(session.id)
        counts = await store.list_member_swipe_counts(session.id)

        assert (stats.total_members, stats.total_swipes) == (2, 3)
        assert (stats.total_likes, stats.total_matches) == (2, 1)
        assert [(c.user_id, c.swipe_count) for c in counts] == [
            ("host", 2),
            ("guest", 1),
        ]


class TestFailureInjection:
    """Tests for the fail_next helper."""

    @pytest.mark.asyncio
    async def test_fail_next_raises_transient_error(
        self, store: InMemorySessionStore, session: Session
    ) -> None:
        """Test that injected failures raise and then clear."""
        store.fail_next("insert_swipe")

        with pytest.raises(TransientStoreError):
            await store.insert_swipe(session.id, "host", 1, LIKE)
        await store.insert_swipe(session.id, "host", 1, LIKE)

        assert store.calls["insert_swipe"] == 2
        assert len(store.get_swipes(session.id)) == 1

    @pytest.mark.asyncio
    async def test_reset_clears_state(
        self, store: InMemorySessionStore, session: Session
    ) -> None:
        """Test that reset drops all data."""
        store.reset()

        assert await store.get_session(session.id) is None
