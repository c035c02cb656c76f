"""Unit tests for LocalChangeFeed.

Covers per-session fan-out, delivery order, handler failure isolation and
unsubscribe.
"""

import pytest

from swipematch.domain.models.match import Match
from swipematch.domain.models.session import Member
from swipematch.infrastructure.realtime.local_change_feed import LocalChangeFeed


class Recorder:
    """Collects delivered rows."""

    def __init__(self) -> None:
        self.matches: list[Match] = []
        self.members: list[Member] = []

    async def on_match(self, match: Match) -> None:
        self.matches.append(match)

    async def on_member(self, member: Member) -> None:
        self.members.append(member)


class TestLocalChangeFeed:
    """Tests for the in-process change feed."""

    @pytest.mark.asyncio
    async def test_every_subscriber_receives_match(
        self, feed: LocalChangeFeed
    ) -> None:
        """Test that all subscribers of a session get the insert."""
        host, guest = Recorder(), Recorder()
        await feed.subscribe("s-1", host.on_match, host.on_member)
        await feed.subscribe("s-1", guest.on_match, guest.on_member)

        feed.publish_match(Match("s-1", 42, {"title": "Heat"}))
        await feed.drain()

        assert [m.movie_id for m in host.matches] == [42]
        assert [m.movie_id for m in guest.matches] == [42]
        assert feed.subscriber_count("s-1") == 2

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self, feed: LocalChangeFeed) -> None:
        """Test that inserts of another session are not delivered."""
        recorder = Recorder()
        await feed.subscribe("s-1", recorder.on_match, recorder.on_member)

        feed.publish_match(Match("s-2", 1))
        feed.publish_member(Member("s-2", "guest", "Bob"))
        await feed.drain()

        assert recorder.matches == []
        assert recorder.members == []

    @pytest.mark.asyncio
    async def test_delivery_preserves_publish_order(
        self, feed: LocalChangeFeed
    ) -> None:
        """Test that inserts arrive in the order they were published."""
        recorder = Recorder()
        await feed.subscribe("s-1", recorder.on_match, recorder.on_member)

        for movie_id in (3, 1, 2):
            feed.publish_match(Match("s-1", movie_id))
        feed.publish_member(Member("s-1", "guest", "Bob"))
        await feed.drain("s-1")

        assert [m.movie_id for m in recorder.matches] == [3, 1, 2]
        assert [m.user_id for m in recorder.members] == ["guest"]

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_delivery(
        self, feed: LocalChangeFeed
    ) -> None:
        """Test that a raising handler is isolated from later events and peers."""
        healthy = Recorder()
        seen: list[int] = []

        async def flaky(match: Match) -> None:
            seen.append(match.movie_id)
            if match.movie_id == 1:
                raise RuntimeError("handler bug")

        await feed.subscribe("s-1", flaky, healthy.on_member)
        await feed.subscribe("s-1", healthy.on_match, healthy.on_member)

        feed.publish_match(Match("s-1", 1))
        feed.publish_match(Match("s-1", 2))
        await feed.drain()

        assert seen == [1, 2]
        assert [m.movie_id for m in healthy.matches] == [1, 2]

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self, feed: LocalChangeFeed) -> None:
        """Test that nothing is delivered after unsubscribe."""
        recorder = Recorder()
        subscription = await feed.subscribe(
            "s-1", recorder.on_match, recorder.on_member
        )

        await subscription.unsubscribe()
        feed.publish_match(Match("s-1", 1))
        await feed.drain()

        assert not subscription.active
        assert recorder.matches == []
        assert feed.subscriber_count("s-1") == 0

    @pytest.mark.asyncio
    async def test_unsubscribe_twice_is_safe(self, feed: LocalChangeFeed) -> None:
        """Test that a second unsubscribe is a no-op."""
        recorder = Recorder()
        subscription = await feed.subscribe(
            "s-1", recorder.on_match, recorder.on_member
        )

        await subscription.unsubscribe()
        await subscription.unsubscribe()

        assert not subscription.active
