"""Supabase implementation of SessionStoreProtocol.

Plain reads use PostgREST table queries; every write that must be atomic
runs in a stored routine from ``supabase/migrations``:

- ``record_swipe``: supersede + idempotent insert
- ``check_and_create_match_v2``: count likers and insert the match
- ``create_session``: session plus host member in one transaction
- ``increment_total_members``: idempotent join
- ``undo_last_swipe``, ``update_session_filters``
- ``get_partial_matches``, ``get_member_swipe_counts``, ``get_session_stats``

Inserts reach other clients through ``SupabaseRealtimeFeed``; this store
publishes nothing itself.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, TypeVar
from uuid import uuid4

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient

from swipematch.application.ports.session_store import (
    QuorumCheck,
    SessionStoreProtocol,
    UndoneSwipe,
)
from swipematch.application.services.base import LoggingMixin
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

T = TypeVar("T")

# RAISE ... USING ERRCODE = 'P0002' in the stored routines.
NOT_FOUND_CODE = "P0002"


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _first(data: Any) -> dict[str, Any] | None:
    if isinstance(data, list):
        return data[0] if data else None
    return data or None


def session_from_record(row: dict[str, Any]) -> Session:
    """Create a Session from a ``sessions`` row."""
    return Session(
        id=str(row["id"]),
        host_user_id=row["host_user_id"],
        filters=SessionFilters.from_record(row),
        required_votes=int(row["required_votes"]),
        total_members=int(row.get("total_members") or 1),
        is_active=bool(row.get("is_active", True)),
        created_at=parse_timestamp(row.get("created_at")) or datetime.now(timezone.utc),
    )


def member_from_record(row: dict[str, Any]) -> Member:
    return Member(
        session_id=str(row["session_id"]),
        user_id=row["user_id"],
        user_name=row.get("user_name"),
        joined_at=parse_timestamp(row.get("joined_at")) or datetime.now(timezone.utc),
    )


def match_from_record(row: dict[str, Any]) -> Match:
    return Match(
        id=str(row["id"]) if row.get("id") else None,
        session_id=str(row["session_id"]),
        movie_id=int(row["movie_id"]),
        movie_data=row.get("movie_data"),
        matched_at=parse_timestamp(row.get("matched_at")) or datetime.now(timezone.utc),
    )


def swipe_from_record(row: dict[str, Any]) -> Swipe:
    return Swipe(
        id=str(row["id"]),
        session_id=str(row["session_id"]),
        user_id=row["user_id"],
        movie_id=int(row["movie_id"]),
        direction=SwipeDirection.from_swiped_right(bool(row["swiped_right"])),
        movie_data=row.get("movie_data"),
        created_at=parse_timestamp(row.get("created_at")) or datetime.now(timezone.utc),
        retracted_at=parse_timestamp(row.get("retracted_at")),
    )


class SupabaseSessionStore(SessionStoreProtocol, LoggingMixin):
    """Session store on Supabase (PostgREST + stored routines)."""

    def __init__(self, client: AsyncClient) -> None:
        """Initialize the store.

        Args:
            client: Supabase async client, see ``acreate_client``.
        """
        self._client = client
        self._init_logger(component="supabase_store")

    async def _execute(
        self,
        operation: str,
        call: Callable[[], Awaitable[T]],
        session_id: str | None = None,
    ) -> T:
        try:
            return await call()
        except APIError as e:
            if e.code == NOT_FOUND_CODE and session_id is not None:
                raise SessionNotFoundError(session_id) from e
            self._log.warning("store_call_error", operation=operation, error=str(e))
            raise TransientStoreError(operation, str(e.message or e)) from e
        except httpx.HTTPError as e:
            self._log.warning("store_call_error", operation=operation, error=str(e))
            raise TransientStoreError(operation, str(e)) from e

    async def _rpc(
        self,
        name: str,
        params: dict[str, Any],
        session_id: str | None = None,
    ) -> Any:
        response = await self._execute(
            name, lambda: self._client.rpc(name, params).execute(), session_id
        )
        return response.data

    async def create_session(
        self,
        host_user_id: str,
        filters: SessionFilters,
        required_votes: int,
        host_name: str = "Host",
    ) -> Session:
        params = {
            "p_id": str(uuid4()),
            "p_host_user_id": host_user_id,
            "p_host_name": host_name,
            "p_required_votes": required_votes,
            **{f"p_{key}": value for key, value in filters.to_record().items()},
        }
        row = _first(await self._rpc("create_session", params))
        if row is None:
            raise TransientStoreError("create_session", "no row returned")
        session = session_from_record(row)
        self._log_operation("create_session", session_id=session.id).info(
            "session_created", required_votes=required_votes
        )
        return session

    async def get_session(self, session_id: str) -> Session | None:
        response = await self._execute(
            "get_session",
            lambda: self._client.table("sessions")
            .select("*")
            .eq("id", session_id)
            .limit(1)
            .execute(),
        )
        row = _first(response.data)
        return session_from_record(row) if row else None

    async def is_member(self, session_id: str, user_id: str) -> bool:
        response = await self._execute(
            "is_member",
            lambda: self._client.table("session_members")
            .select("id")
            .eq("session_id", session_id)
            .eq("user_id", user_id)
            .limit(1)
            .execute(),
        )
        return bool(response.data)

    async def join_session(
        self, session_id: str, user_id: str, user_name: str | None = None
    ) -> Member:
        data = await self._rpc(
            "increment_total_members",
            {"p_session_id": session_id, "p_user_id": user_id, "p_user_name": user_name},
            session_id,
        )
        row = _first(data)
        if row is None:
            raise SessionNotFoundError(session_id)
        return member_from_record(row)

    async def insert_swipe(
        self,
        session_id: str,
        user_id: str,
        movie_id: int,
        direction: SwipeDirection,
        movie_data: dict[str, Any] | None = None,
        swipe_id: str | None = None,
    ) -> Swipe:
        data = await self._rpc(
            "record_swipe",
            {
                "p_id": swipe_id or str(uuid4()),
                "p_session_id": session_id,
                "p_user_id": user_id,
                "p_movie_id": movie_id,
                "p_swiped_right": direction.is_like,
                "p_movie_data": movie_data,
            },
            session_id,
        )
        row = _first(data)
        if row is None:
            raise TransientStoreError("insert_swipe", "no row returned")
        return swipe_from_record(row)

    async def vote_and_maybe_match(
        self,
        session_id: str,
        movie_id: int,
        movie_data: dict[str, Any] | None = None,
    ) -> QuorumCheck:
        data = await self._rpc(
            "check_and_create_match_v2",
            {
                "p_session_id": session_id,
                "p_movie_id": movie_id,
                "p_movie_data": movie_data,
            },
            session_id,
        )
        row = _first(data)
        if row is None:
            raise TransientStoreError("vote_and_maybe_match", "no row returned")
        return QuorumCheck(
            is_match=bool(row["is_match"]),
            likes_count=int(row["likes_count"] or 0),
            required_votes=int(row["required_votes"]),
        )

    async def undo_last_swipe(self, session_id: str, user_id: str) -> UndoneSwipe:
        data = await self._rpc(
            "undo_last_swipe", {"p_session_id": session_id, "p_user_id": user_id}
        )
        row = _first(data)
        if row is None or not row.get("success"):
            return UndoneSwipe(success=False)
        return UndoneSwipe(success=True, movie_id=row.get("movie_id"))

    async def list_member_swipe_counts(
        self, session_id: str
    ) -> list[MemberSwipeCount]:
        data = await self._rpc("get_member_swipe_counts", {"p_session_id": session_id})
        return [
            MemberSwipeCount(
                user_id=row["user_id"],
                user_name=row.get("user_name"),
                swipe_count=int(row.get("swipe_count") or 0),
            )
            for row in data or []
        ]

    async def update_session_filters(
        self, session_id: str, filters: SessionFilters
    ) -> bool:
        record = filters.to_record()
        data = await self._rpc(
            "update_session_filters",
            {
                "p_session_id": session_id,
                "p_streaming_providers": record["streaming_providers"],
                "p_genres": record["genres"],
                "p_max_certification": record["max_certification"],
            },
        )
        return bool(data)

    async def list_matches(self, session_id: str) -> list[Match]:
        response = await self._execute(
            "list_matches",
            lambda: self._client.table("matches")
            .select("*")
            .eq("session_id", session_id)
            .order("matched_at", desc=True)
            .execute(),
        )
        return [match_from_record(row) for row in response.data or []]

    async def get_partial_matches(
        self, session_id: str, min_votes: int = 1
    ) -> list[PartialMatch]:
        data = await self._rpc(
            "get_partial_matches",
            {"p_session_id": session_id, "p_min_votes": min_votes},
        )
        return [
            PartialMatch(
                movie_id=int(row["movie_id"]),
                likes_count=int(row["likes_count"]),
                movie_data=row.get("movie_data"),
            )
            for row in data or []
        ]

    async def get_session_stats(self, session_id: str) -> SessionStats:
        data = await self._rpc("get_session_stats", {"p_session_id": session_id})
        row = _first(data)
        if row is None:
            raise SessionNotFoundError(session_id)
        return SessionStats(
            total_members=int(row["total_members"]),
            total_swipes=int(row["total_swipes"]),
            total_likes=int(row["total_likes"]),
            total_matches=int(row["total_matches"]),
        )
