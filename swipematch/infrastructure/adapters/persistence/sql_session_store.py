"""SQLAlchemy implementation of SessionStoreProtocol.

Runs on PostgreSQL (asyncpg) and SQLite (aiosqlite). Each operation is one
transaction. The quorum step is a single statement:

    INSERT INTO matches (...)
    SELECT ... WHERE (distinct effective likers) >= :required_votes
    ON CONFLICT (session_id, movie_id) DO NOTHING
    RETURNING id

so counting, comparing and inserting cannot interleave with a concurrent
evaluation of the same movie, and the unique constraint makes the loser
of a race a no-op. Every swipe is committed before its evaluation runs,
so the last evaluation always sees every like.

Committed member and match inserts are published to the optional
``LocalChangeFeed`` after commit. SQLAlchemy errors are raised as
``TransientStoreError``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    DateTime,
    Integer,
    String,
    Table,
    and_,
    distinct,
    exists,
    func,
    literal,
    select,
    update,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

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
from swipematch.infrastructure.adapters.persistence.sql_schema import (
    matches,
    session_members,
    sessions,
    swipes,
)
from swipematch.infrastructure.realtime.local_change_feed import LocalChangeFeed


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime | None) -> datetime | None:
    """SQLite returns naive datetimes; stored values are always UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _session_from_row(row: Any) -> Session:
    data = dict(row._mapping)
    return Session(
        id=data["id"],
        host_user_id=data["host_user_id"],
        filters=SessionFilters.from_record(data),
        required_votes=data["required_votes"],
        total_members=data["total_members"],
        is_active=bool(data["is_active"]),
        created_at=_aware(data["created_at"]),  # type: ignore[arg-type]
    )


def _member_from_row(row: Any) -> Member:
    return Member(
        session_id=row.session_id,
        user_id=row.user_id,
        user_name=row.user_name,
        joined_at=_aware(row.joined_at),  # type: ignore[arg-type]
    )


def _swipe_from_row(row: Any) -> Swipe:
    return Swipe(
        id=row.id,
        session_id=row.session_id,
        user_id=row.user_id,
        movie_id=row.movie_id,
        direction=SwipeDirection.from_swiped_right(bool(row.swiped_right)),
        movie_data=row.movie_data,
        created_at=_aware(row.created_at),  # type: ignore[arg-type]
        retracted_at=_aware(row.retracted_at),
    )


def _match_from_row(row: Any) -> Match:
    return Match(
        id=row.id,
        session_id=row.session_id,
        movie_id=row.movie_id,
        movie_data=row.movie_data,
        matched_at=_aware(row.matched_at),  # type: ignore[arg-type]
    )


class SqlSessionStore(SessionStoreProtocol, LoggingMixin):
    """Session store on a relational database."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        feed: LocalChangeFeed | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            session_factory: SQLAlchemy async session factory.
            feed: Change feed that receives committed inserts.
        """
        self._session_factory = session_factory
        self._feed = feed
        self._init_logger(component="sql_store")

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as e:
            self._log.warning("store_call_error", operation=operation, error=str(e))
            raise TransientStoreError(operation, str(e)) from e

    @staticmethod
    def _insert(session: AsyncSession, table: Table) -> Any:
        """Dialect insert supporting ``on_conflict_do_nothing``."""
        if session.bind.dialect.name == "postgresql":
            return postgresql.insert(table)
        return sqlite.insert(table)

    @staticmethod
    def _effective_likers(session_id: str, movie_id: Any) -> Any:
        return select(func.count(distinct(swipes.c.user_id))).where(
            swipes.c.session_id == session_id,
            swipes.c.movie_id == movie_id,
            swipes.c.swiped_right.is_(True),
            swipes.c.retracted_at.is_(None),
        )

    async def _require_session(self, session: AsyncSession, session_id: str) -> Any:
        row = (
            await session.execute(select(sessions).where(sessions.c.id == session_id))
        ).first()
        if row is None:
            raise SessionNotFoundError(session_id)
        return row

    async def create_session(
        self,
        host_user_id: str,
        filters: SessionFilters,
        required_votes: int,
        host_name: str = "Host",
    ) -> Session:
        session_id = str(uuid4())
        now = _utc_now()
        async with self._transaction("create_session") as db:
            await db.execute(
                sessions.insert().values(
                    id=session_id,
                    host_user_id=host_user_id,
                    required_votes=required_votes,
                    total_members=1,
                    is_active=True,
                    created_at=now,
                    **filters.to_record(),
                )
            )
            await db.execute(
                session_members.insert().values(
                    session_id=session_id,
                    user_id=host_user_id,
                    user_name=host_name,
                    joined_at=now,
                )
            )

        self._log_operation("create_session", session_id=session_id).info(
            "session_created", required_votes=required_votes
        )
        if self._feed is not None:
            self._feed.publish_member(
                Member(session_id, host_user_id, host_name, joined_at=now)
            )
        return Session(
            id=session_id,
            host_user_id=host_user_id,
            filters=filters,
            required_votes=required_votes,
            total_members=1,
            created_at=now,
        )

    async def get_session(self, session_id: str) -> Session | None:
        async with self._transaction("get_session") as db:
            row = (
                await db.execute(select(sessions).where(sessions.c.id == session_id))
            ).first()
        return _session_from_row(row) if row is not None else None

    async def is_member(self, session_id: str, user_id: str) -> bool:
        async with self._transaction("is_member") as db:
            found = await db.scalar(
                select(session_members.c.id).where(
                    session_members.c.session_id == session_id,
                    session_members.c.user_id == user_id,
                )
            )
        return found is not None

    async def join_session(
        self, session_id: str, user_id: str, user_name: str | None = None
    ) -> Member:
        async with self._transaction("join_session") as db:
            await self._require_session(db, session_id)
            inserted = await db.scalar(
                self._insert(db, session_members)
                .values(
                    session_id=session_id,
                    user_id=user_id,
                    user_name=user_name,
                    joined_at=_utc_now(),
                )
                .on_conflict_do_nothing(index_elements=["session_id", "user_id"])
                .returning(session_members.c.id)
            )
            if inserted is not None:
                await db.execute(
                    update(sessions)
                    .where(sessions.c.id == session_id)
                    .values(total_members=sessions.c.total_members + 1)
                )
            row = (
                await db.execute(
                    select(session_members).where(
                        session_members.c.session_id == session_id,
                        session_members.c.user_id == user_id,
                    )
                )
            ).one()

        member = _member_from_row(row)
        if inserted is not None and self._feed is not None:
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
        swipe_id = swipe_id or str(uuid4())
        now = _utc_now()
        async with self._transaction("insert_swipe") as db:
            await self._require_session(db, session_id)
            existing = (
                await db.execute(select(swipes).where(swipes.c.id == swipe_id))
            ).first()
            if existing is not None:
                return _swipe_from_row(existing)

            await db.execute(
                update(swipes)
                .where(
                    swipes.c.session_id == session_id,
                    swipes.c.user_id == user_id,
                    swipes.c.movie_id == movie_id,
                    swipes.c.retracted_at.is_(None),
                )
                .values(retracted_at=now)
            )
            await db.execute(
                self._insert(db, swipes)
                .values(
                    id=swipe_id,
                    session_id=session_id,
                    user_id=user_id,
                    movie_id=movie_id,
                    swiped_right=direction.is_like,
                    movie_data=movie_data,
                    created_at=now,
                )
                .on_conflict_do_nothing(index_elements=["id"])
            )
            row = (
                await db.execute(select(swipes).where(swipes.c.id == swipe_id))
            ).one()
        return _swipe_from_row(row)

    async def vote_and_maybe_match(
        self,
        session_id: str,
        movie_id: int,
        movie_data: dict[str, Any] | None = None,
    ) -> QuorumCheck:
        async with self._transaction("vote_and_maybe_match") as db:
            row = await self._require_session(db, session_id)
            required_votes = int(row.required_votes)
            now = _utc_now()

            candidate = select(
                literal(str(uuid4()), String),
                literal(session_id, String),
                literal(movie_id, Integer),
                literal(movie_data, JSON),
                literal(now, DateTime(timezone=True)),
            ).where(
                self._effective_likers(session_id, movie_id).scalar_subquery()
                >= required_votes
            )
            inserted_id = await db.scalar(
                self._insert(db, matches)
                .from_select(
                    ["id", "session_id", "movie_id", "movie_data", "matched_at"],
                    candidate,
                )
                .on_conflict_do_nothing(index_elements=["session_id", "movie_id"])
                .returning(matches.c.id)
            )
            likes_count = int(
                await db.scalar(self._effective_likers(session_id, movie_id)) or 0
            )

        if inserted_id is not None and self._feed is not None:
            self._feed.publish_match(
                Match(
                    session_id=session_id,
                    movie_id=movie_id,
                    movie_data=movie_data,
                    matched_at=now,
                    id=inserted_id,
                )
            )
        return QuorumCheck(
            is_match=inserted_id is not None,
            likes_count=likes_count,
            required_votes=required_votes,
        )

    async def undo_last_swipe(self, session_id: str, user_id: str) -> UndoneSwipe:
        async with self._transaction("undo_last_swipe") as db:
            latest = (
                await db.execute(
                    select(swipes.c.seq, swipes.c.movie_id, swipes.c.retracted_at)
                    .where(
                        swipes.c.session_id == session_id,
                        swipes.c.user_id == user_id,
                    )
                    .order_by(swipes.c.seq.desc())
                    .limit(1)
                )
            ).first()
            if latest is None or latest.retracted_at is not None:
                return UndoneSwipe(success=False)

            await db.execute(
                update(swipes)
                .where(swipes.c.seq == latest.seq)
                .values(retracted_at=_utc_now())
            )
        return UndoneSwipe(success=True, movie_id=latest.movie_id)

    async def list_member_swipe_counts(
        self, session_id: str
    ) -> list[MemberSwipeCount]:
        swipe_count = func.count(swipes.c.seq)
        joined = session_members.outerjoin(
            swipes,
            and_(
                swipes.c.session_id == session_members.c.session_id,
                swipes.c.user_id == session_members.c.user_id,
                swipes.c.retracted_at.is_(None),
            ),
        )
        stmt = (
            select(session_members.c.user_id, session_members.c.user_name, swipe_count)
            .select_from(joined)
            .where(session_members.c.session_id == session_id)
            .group_by(
                session_members.c.id,
                session_members.c.user_id,
                session_members.c.user_name,
                session_members.c.joined_at,
            )
            .order_by(session_members.c.joined_at, session_members.c.id)
        )
        async with self._transaction("list_member_swipe_counts") as db:
            rows = (await db.execute(stmt)).all()
        return [
            MemberSwipeCount(user_id=r[0], user_name=r[1], swipe_count=int(r[2]))
            for r in rows
        ]

    async def update_session_filters(
        self, session_id: str, filters: SessionFilters
    ) -> bool:
        async with self._transaction("update_session_filters") as db:
            result = await db.execute(
                update(sessions)
                .where(sessions.c.id == session_id)
                .values(**filters.to_record())
            )
        return bool(result.rowcount)

    async def list_matches(self, session_id: str) -> list[Match]:
        async with self._transaction("list_matches") as db:
            rows = (
                await db.execute(
                    select(matches)
                    .where(matches.c.session_id == session_id)
                    .order_by(matches.c.matched_at.desc())
                )
            ).all()
        return [_match_from_row(row) for row in rows]

    async def get_partial_matches(
        self, session_id: str, min_votes: int = 1
    ) -> list[PartialMatch]:
        likes = func.count(distinct(swipes.c.user_id))
        already_matched = exists().where(
            matches.c.session_id == swipes.c.session_id,
            matches.c.movie_id == swipes.c.movie_id,
        )
        stmt = (
            select(swipes.c.movie_id, likes.label("likes_count"))
            .where(
                swipes.c.session_id == session_id,
                swipes.c.swiped_right.is_(True),
                swipes.c.retracted_at.is_(None),
                ~already_matched,
            )
            .group_by(swipes.c.movie_id)
            .having(likes >= min_votes)
            .order_by(likes.desc(), swipes.c.movie_id)
        )
        async with self._transaction("get_partial_matches") as db:
            counted = (await db.execute(stmt)).all()
            movie_ids = [row.movie_id for row in counted]
            snapshots: dict[int, Any] = {}
            if movie_ids:
                snapshot_rows = await db.execute(
                    select(swipes.c.movie_id, swipes.c.movie_data)
                    .where(
                        swipes.c.session_id == session_id,
                        swipes.c.movie_id.in_(movie_ids),
                        swipes.c.swiped_right.is_(True),
                    )
                    .order_by(swipes.c.seq)
                )
                for row in snapshot_rows:
                    snapshots[row.movie_id] = row.movie_data

        return [
            PartialMatch(
                movie_id=row.movie_id,
                likes_count=int(row.likes_count),
                movie_data=snapshots.get(row.movie_id),
            )
            for row in counted
        ]

    async def get_session_stats(self, session_id: str) -> SessionStats:
        async with self._transaction("get_session_stats") as db:
            row = await self._require_session(db, session_id)
            effective = and_(
                swipes.c.session_id == session_id, swipes.c.retracted_at.is_(None)
            )
            total_swipes = await db.scalar(
                select(func.count()).select_from(swipes).where(effective)
            )
            total_likes = await db.scalar(
                select(func.count())
                .select_from(swipes)
                .where(effective, swipes.c.swiped_right.is_(True))
            )
            total_matches = await db.scalar(
                select(func.count())
                .select_from(matches)
                .where(matches.c.session_id == session_id)
            )
        return SessionStats(
            total_members=int(row.total_members),
            total_swipes=int(total_swipes or 0),
            total_likes=int(total_likes or 0),
            total_matches=int(total_matches or 0),
        )
