"""Supabase realtime implementation of RealtimeFeedProtocol.

One channel per subscription with two ``postgres_changes`` INSERT bindings,
``matches`` and ``session_members``, both filtered on ``session_id``.
The realtime client invokes callbacks synchronously; rows are queued and
handed to the async handlers by one delivery task per subscription, in
the order the server sent them.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import structlog
from supabase import AsyncClient

from swipematch.application.ports.realtime_feed import (
    MatchHandler,
    MemberHandler,
    RealtimeFeedProtocol,
)
from swipematch.infrastructure.adapters.persistence.supabase_session_store import (
    match_from_record,
    member_from_record,
)

logger = structlog.get_logger(__name__)

MATCHES_TABLE = "matches"
MEMBERS_TABLE = "session_members"


def extract_record(payload: Mapping[str, Any]) -> dict[str, Any] | None:
    """Inserted row of a ``postgres_changes`` payload.

    Realtime client versions differ in where they put the row.
    """
    data = payload.get("data")
    if isinstance(data, Mapping) and isinstance(data.get("record"), Mapping):
        return dict(data["record"])
    for key in ("record", "new"):
        if isinstance(payload.get(key), Mapping):
            return dict(payload[key])
    return None


class SupabaseSubscription:
    """Subscription handle of ``SupabaseRealtimeFeed``."""

    def __init__(
        self,
        client: AsyncClient,
        session_id: str,
        on_match: MatchHandler,
        on_member: MemberHandler,
    ) -> None:
        self._client = client
        self.session_id = session_id
        self._on_match = on_match
        self._on_member = on_member
        self._queue: asyncio.Queue[tuple[str, dict[str, Any]]] = asyncio.Queue()
        self._active = False
        self._channel: Any = None
        self._task: asyncio.Task[None] | None = None
        self._log = logger.bind(component="realtime", session_id=session_id)

    @property
    def active(self) -> bool:
        return self._active

    async def start(self) -> None:
        row_filter = f"session_id=eq.{self.session_id}"
        channel = self._client.channel(f"session-{self.session_id}")
        channel.on_postgres_changes(
            "INSERT",
            schema="public",
            table=MATCHES_TABLE,
            filter=row_filter,
            callback=lambda payload: self._enqueue(MATCHES_TABLE, payload),
        )
        channel.on_postgres_changes(
            "INSERT",
            schema="public",
            table=MEMBERS_TABLE,
            filter=row_filter,
            callback=lambda payload: self._enqueue(MEMBERS_TABLE, payload),
        )
        self._active = True
        self._task = asyncio.create_task(
            self._deliver(), name=f"realtime-{self.session_id}"
        )
        self._channel = channel
        await channel.subscribe()
        self._log.info("realtime_subscribed")

    async def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        if self._channel is not None:
            await self._client.remove_channel(self._channel)
        self._log.info("realtime_unsubscribed")

    def _enqueue(self, table: str, payload: Mapping[str, Any]) -> None:
        if not self._active:
            return
        record = extract_record(payload)
        if record is None:
            self._log.warning("realtime_payload_without_record", table=table)
            return
        self._queue.put_nowait((table, record))

    async def _deliver(self) -> None:
        while True:
            table, record = await self._queue.get()
            try:
                if not self._active:
                    continue
                if table == MATCHES_TABLE:
                    await self._on_match(match_from_record(record))
                else:
                    await self._on_member(member_from_record(record))
            except asyncio.CancelledError:
                raise
            except Exception:
                self._log.exception("realtime_handler_failed", table=table)
            finally:
                self._queue.task_done()


class SupabaseRealtimeFeed(RealtimeFeedProtocol):
    """Realtime feed over Supabase ``postgres_changes``."""

    def __init__(self, client: AsyncClient) -> None:
        self._client = client

    async def subscribe(
        self,
        session_id: str,
        on_match: MatchHandler,
        on_member: MemberHandler,
    ) -> SupabaseSubscription:
        subscription = SupabaseSubscription(
            self._client, session_id, on_match, on_member
        )
        await subscription.start()
        return subscription
