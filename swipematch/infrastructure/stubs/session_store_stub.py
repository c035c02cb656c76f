"""In-memory stub for SessionStoreProtocol.

Simulates the backing store for tests and local development:

- Unique (session_id, user_id) members, idempotent join
- Unique (session_id, movie_id) matches
- Atomic quorum check-and-insert (one asyncio.Lock around every write)
- Swipe supersede and single-step undo
- Publishing of committed match/member inserts to a ``LocalChangeFeed``
- Injectable transient failures per operation

WARNING: Not for production use.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from swipematch.application.ports.session_store import (
    QuorumCheck,
    SessionStoreProtocol,
    UndoneSwipe,
)
from swipematch.domain.errors.session import SessionNotFoundError
from swipematch.domain.exceptions import TransientStoreError
from swipematch.domain.models.filters import SessionFilters
from swipematch.domain.models.match import (
    Match,
    MemberSwipeCount,
    PartialMatch,
    SessionStats,
)
from swipematch.domain.models.session import Member, Session
from swipematch.domain.models.swipe import Swipe, SwipeDirection
from swipematch.infrastructure.realtime.local_change_feed import LocalChangeFeed


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InMemorySessionStore(SessionStoreProtocol):
    """In-memory implementation of SessionStoreProtocol.

    Test helpers:
        fail_next(operation, times): make the next ``times`` calls of an
            operation raise TransientStoreError.
        calls: Counter of operation invocations.
    """

    def __init__(self, feed: LocalChangeFeed | None = None) -> None:
        """Initialize an empty store.

        Args:
            feed: Change feed that receives committed inserts.
        """
        self._feed = feed
        self._lock = asyncio.Lock()
        self._sessions: dict[str, Session] = {}
        # Key: (session_id, user_id)
        self._members: dict[tuple[str, str], Member] = {}
        self._swipes: list[Swipe] = []
        self._swipe_positions: dict[str, int] = {}
        # Key: (session_id, movie_id)
        self._matches: dict[tuple[str, int], Match] = {}
        self._failures: dict[str, int] = {}
        self.calls: Counter[str] = Counter()

    # Failure injection

    def fail_next(self, operation: str, times: int = 1) -> None:
        self._failures[operation] = self._failures.get(operation, 0) + times

    def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        remaining = self._failures.get(operation, 0)
        if remaining:
            self._failures[operation] = remaining - 1
            raise TransientStoreError(operation, "injected failure")

    def _require_session(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    # SessionStoreProtocol

    async def create_session(
        self,
        host_user_id: str,
        filters: SessionFilters,
        required_votes: int,
        host_name: str = "Host",
    ) -> Session:
        self._enter("create_session")
        async with self._lock:
            session = Session(
                id=str(uuid4()),
                host_user_id=host_user_id,
                filters=filters,
                required_votes=required_votes,
                total_members=1,
            )
            self._sessions[session.id] = session
            host = Member(session_id=session.id, user_id=host_user_id, user_name=host_name)
            self._members[(session.id, host_user_id)] = host
        if self._feed is not None:
            self._feed.publish_member(host)
        return session

    async def get_session(self, session_id: str) -> Session | None:
        self._enter("get_session")
        return self._sessions.get(session_id)

    async def is_member(self, session_id: str, user_id: str) -> bool:
        self._enter("is_member")
        return (session_id, user_id) in self._members

    async def join_session(
        self, session_id: str, user_id: str, user_name: str | None = None
    ) -> Member:
        self._enter("join_session")
        async with self._lock:
            session = self._require_session(session_id)
            existing = self._members.get((session_id, user_id))
            if existing is not None:
                return existing

            member = Member(session_id=session_id, user_id=user_id, user_name=user_name)
            self._members[(session_id, user_id)] = member
            self._sessions[session_id] = replace(
                session, total_members=session.total_members + 1
            )
            if self._feed is not None:
                self._feed.publish_member(member)
        return member

    async def insert_swipe(
        self,
        session_id: str,
        user_id: str,
        movie_id: int,
        direction: SwipeDirection,
        movie_data: dict[str, Any] | None = None,
        swipe_id: str | None = None,
    ) -> Swipe:
        self._enter("insert_swipe")
        async with self._lock:
            self._require_session(session_id)
            if swipe_id is not None and swipe_id in self._swipe_positions:
                return self._swipes[self._swipe_positions[swipe_id]]

            now = _utc_now()
            for position, earlier in enumerate(self._swipes):
                if (
                    earlier.is_effective
                    and earlier.session_id == session_id
                    and earlier.user_id == user_id
                    and earlier.movie_id == movie_id
                ):
                    self._swipes[position] = replace(earlier, retracted_at=now)

            swipe = Swipe(
                id=swipe_id or str(uuid4()),
                session_id=session_id,
                user_id=user_id,
                movie_id=movie_id,
                direction=direction,
                movie_data=movie_data,
                created_at=now,
            )
            self._swipe_positions[swipe.id] = len(self._swipes)
            self._swipes.append(swipe)
            return swipe

    async def vote_and_maybe_match(
        self,
        session_id: str,
        movie_id: int,
        movie_data: dict[str, Any] | None = None,
    ) -> QuorumCheck:
        self._enter("vote_and_maybe_match")
        async with self._lock:
            session = self._require_session(session_id)
            likes = self._likes_for(session_id, movie_id)
            key = (session_id, movie_id)

            if likes < session.required_votes or key in self._matches:
                return QuorumCheck(
                    is_match=False,
                    likes_count=likes,
                    required_votes=session.required_votes,
                )

            match = Match(
                session_id=session_id,
                movie_id=movie_id,
                movie_data=movie_data,
                id=str(uuid4()),
            )
            self._matches[key] = match
            if self._feed is not None:
                self._feed.publish_match(match)
            return QuorumCheck(
                is_match=True,
                likes_count=likes,
                required_votes=session.required_votes,
            )

    async def undo_last_swipe(self, session_id: str, user_id: str) -> UndoneSwipe:
        self._enter("undo_last_swipe")
        async with self._lock:
            for position in range(len(self._swipes) - 1, -1, -1):
                swipe = self._swipes[position]
                if swipe.session_id != session_id or swipe.user_id != user_id:
                    continue
                if not swipe.is_effective:
                    return UndoneSwipe(success=False)
                self._swipes[position] = replace(swipe, retracted_at=_utc_now())
                return UndoneSwipe(success=True, movie_id=swipe.movie_id)
        return UndoneSwipe(success=False)

    async def list_member_swipe_counts(
        self, session_id: str
    ) -> list[MemberSwipeCount]:
        self._enter("list_member_swipe_counts")
        counts = Counter(
            swipe.user_id
            for swipe in self._swipes
            if swipe.session_id == session_id and swipe.is_effective
        )
        members = sorted(
            (m for m in self._members.values() if m.session_id == session_id),
            key=lambda m: m.joined_at,
        )
        return [
            MemberSwipeCount(
                user_id=member.user_id,
                user_name=member.user_name,
                swipe_count=counts.get(member.user_id, 0),
            )
            for member in members
        ]

    async def update_session_filters(
        self, session_id: str, filters: SessionFilters
    ) -> bool:
        self._enter("update_session_filters")
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            self._sessions[session_id] = session.with_filters(filters)
            return True

    async def list_matches(self, session_id: str) -> list[Match]:
        self._enter("list_matches")
        matches = [m for m in self._matches.values() if m.session_id == session_id]
        return sorted(matches, key=lambda m: m.matched_at, reverse=True)

    async def get_partial_matches(
        self, session_id: str, min_votes: int = 1
    ) -> list[PartialMatch]:
        self._enter("get_partial_matches")
        likers: dict[int, set[str]] = {}
        snapshots: dict[int, dict[str, Any] | None] = {}
        for swipe in self._swipes:
            if (
                swipe.session_id == session_id
                and swipe.is_effective
                and swipe.direction.is_like
            ):
                likers.setdefault(swipe.movie_id, set()).add(swipe.user_id)
                snapshots[swipe.movie_id] = swipe.movie_data

        partials = [
            PartialMatch(
                movie_id=movie_id,
                likes_count=len(users),
                movie_data=snapshots[movie_id],
            )
            for movie_id, users in likers.items()
            if len(users) >= min_votes and (session_id, movie_id) not in self._matches
        ]
        return sorted(partials, key=lambda p: (-p.likes_count, p.movie_id))

    async def get_session_stats(self, session_id: str) -> SessionStats:
        self._enter("get_session_stats")
        session = self._require_session(session_id)
        effective = [
            s for s in self._swipes if s.session_id == session_id and s.is_effective
        ]
        return SessionStats(
            total_members=session.total_members,
            total_swipes=len(effective),
            total_likes=sum(1 for s in effective if s.direction.is_like),
            total_matches=sum(1 for key in self._matches if key[0] == session_id),
        )

    # Test helper methods

    def _likes_for(self, session_id: str, movie_id: int) -> int:
        return len(
            {
                swipe.user_id
                for swipe in self._swipes
                if swipe.session_id == session_id
                and swipe.movie_id == movie_id
                and swipe.is_effective
                and swipe.direction.is_like
            }
        )

    def get_swipes(self, session_id: str) -> list[Swipe]:
        """All swipes of a session including retracted ones."""
        return [s for s in self._swipes if s.session_id == session_id]

    def reset(self) -> None:
        """Reset all stored data. Useful between tests."""
        self._sessions.clear()
        self._members.clear()
        self._swipes.clear()
        self._swipe_positions.clear()
        self._matches.clear()
        self._failures.clear()
        self.calls.clear()
