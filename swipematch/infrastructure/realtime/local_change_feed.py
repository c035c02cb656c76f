"""In-process change feed for store inserts.

Stores that have no native change feed (the SQL store and the in-memory
stub) publish every committed match and member insert here. Each
subscription owns a queue and a delivery task, so:

- publishing never waits on a slow subscriber,
- inserts reach each subscriber in the order they were published,
- a failing handler is logged and does not affect other subscribers,
- nothing is delivered after ``unsubscribe()``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from swipematch.application.ports.realtime_feed import (
    MatchHandler,
    MemberHandler,
    RealtimeFeedProtocol,
)
from swipematch.domain.models.match import Match
from swipematch.domain.models.session import Member

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class _FeedEvent:
    table: str
    row: Match | Member


class LocalSubscription:
    """Subscription handle of ``LocalChangeFeed``."""

    def __init__(
        self,
        feed: LocalChangeFeed,
        session_id: str,
        on_match: MatchHandler,
        on_member: MemberHandler,
    ) -> None:
        self._feed = feed
        self.session_id = session_id
        self._on_match = on_match
        self._on_member = on_member
        self._queue: asyncio.Queue[_FeedEvent] = asyncio.Queue()
        self._active = True
        self._task = asyncio.create_task(
            self._deliver(), name=f"feed-{session_id}"
        )
        self._log = logger.bind(component="realtime", session_id=session_id)

    @property
    def active(self) -> bool:
        return self._active

    def push(self, event: _FeedEvent) -> None:
        if self._active:
            self._queue.put_nowait(event)

    async def unsubscribe(self) -> None:
        """Stop delivery; pending events are dropped."""
        if not self._active:
            return
        self._active = False
        self._feed._remove(self)
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._log.info("realtime_unsubscribed")

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""
        if self._active:
            await self._queue.join()

    async def _deliver(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                if not self._active:
                    continue
                if isinstance(event.row, Match):
                    await self._on_match(event.row)
                else:
                    await self._on_member(event.row)
            except asyncio.CancelledError:
                raise
            except Exception:
                self._log.exception("realtime_handler_failed", table=event.table)
            finally:
                self._queue.task_done()


class LocalChangeFeed(RealtimeFeedProtocol):
    """Per-session publish/subscribe hub for one process."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[LocalSubscription]] = {}

    async def subscribe(
        self,
        session_id: str,
        on_match: MatchHandler,
        on_member: MemberHandler,
    ) -> LocalSubscription:
        subscription = LocalSubscription(self, session_id, on_match, on_member)
        self._subscriptions.setdefault(session_id, []).append(subscription)
        logger.info(
            "realtime_subscribed",
            session_id=session_id,
            subscribers=self.subscriber_count(session_id),
        )
        return subscription

    def publish_match(self, match: Match) -> None:
        """Fan a committed match insert out to the session's subscribers."""
        self._publish(match.session_id, _FeedEvent("matches", match))

    def publish_member(self, member: Member) -> None:
        """Fan a committed member insert out to the session's subscribers."""
        self._publish(member.session_id, _FeedEvent("session_members", member))

    def subscriber_count(self, session_id: str) -> int:
        return len(self._subscriptions.get(session_id, ()))

    async def drain(self, session_id: str | None = None) -> None:
        """Wait until subscribers have handled everything published so far."""
        if session_id is None:
            subscriptions = [s for subs in self._subscriptions.values() for s in subs]
        else:
            subscriptions = list(self._subscriptions.get(session_id, ()))
        for subscription in subscriptions:
            await subscription.drain()

    def _publish(self, session_id: str, event: _FeedEvent) -> None:
        subscriptions = self._subscriptions.get(session_id, ())
        for subscription in list(subscriptions):
            subscription.push(event)
        logger.debug(
            "realtime_published",
            session_id=session_id,
            table=event.table,
            subscribers=len(subscriptions),
        )

    def _remove(self, subscription: LocalSubscription) -> None:
        subscriptions = self._subscriptions.get(subscription.session_id)
        if not subscriptions:
            return
        if subscription in subscriptions:
            subscriptions.remove(subscription)
        if not subscriptions:
            del self._subscriptions[subscription.session_id]
