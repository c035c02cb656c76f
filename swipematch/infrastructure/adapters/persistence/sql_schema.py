"""Table definitions for the SQL session store.

Portable between PostgreSQL and SQLite. Uniqueness that the consensus
rules depend on is enforced by the schema:

- ``session_members``: one row per (session_id, user_id)
- ``matches``: one row per (session_id, movie_id)
- ``swipes``: client-generated ``id`` is unique, so retried inserts are
  no-ops; ``seq`` orders a user's swipes for undo
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
)
from sqlalchemy.ext.asyncio import AsyncEngine

metadata = MetaData()

sessions = Table(
    "sessions",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("host_user_id", String(64), nullable=False),
    Column("streaming_providers", JSON, nullable=False),
    Column("genres", JSON, nullable=False),
    Column("max_certification", String(4), nullable=False, default="12"),
    Column("required_votes", Integer, nullable=False),
    Column("total_members", Integer, nullable=False, default=1),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

session_members = Table(
    "session_members",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "session_id",
        String(36),
        ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("user_id", String(64), nullable=False),
    Column("user_name", String(100)),
    Column("joined_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("session_id", "user_id", name="uq_session_members_user"),
)

swipes = Table(
    "swipes",
    metadata,
    Column("seq", Integer, primary_key=True, autoincrement=True),
    Column("id", String(36), nullable=False, unique=True),
    Column(
        "session_id",
        String(36),
        ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("user_id", String(64), nullable=False),
    Column("movie_id", Integer, nullable=False),
    Column("swiped_right", Boolean, nullable=False),
    Column("movie_data", JSON),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("retracted_at", DateTime(timezone=True)),
    Index("ix_swipes_session_movie", "session_id", "movie_id"),
    Index("ix_swipes_session_user", "session_id", "user_id"),
)

matches = Table(
    "matches",
    metadata,
    Column("id", String(36), primary_key=True),
    Column(
        "session_id",
        String(36),
        ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("movie_id", Integer, nullable=False),
    Column("movie_data", JSON),
    Column("matched_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("session_id", "movie_id", name="uq_matches_movie"),
)


async def create_schema(engine: AsyncEngine) -> None:
    """Create missing tables. Existing tables are left untouched."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


async def drop_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
