"""Realtime change feed port.

Per session, a subscription delivers newly inserted match rows and newly
inserted member rows to every subscriber, including the client whose own
action produced the row. Delivery is push-based and at-least-once; within
one feed connection inserts arrive in commit order.
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Awaitable, Callable
from typing import Protocol

from swipematch.domain.models.match import Match
from swipematch.domain.models.session import Member

MatchHandler = Callable[[Match], Awaitable[None]]
MemberHandler = Callable[[Member], Awaitable[None]]


class Subscription(Protocol):
    """Handle returned by ``subscribe``."""

    @property
    def active(self) -> bool:
        """False once unsubscribed."""
        ...

    @abstractmethod
    async def unsubscribe(self) -> None:
        """Stop delivery. Safe to call more than once."""
        ...


class RealtimeFeedProtocol(Protocol):
    """Publish/subscribe feed of store inserts."""

    @abstractmethod
    async def subscribe(
        self,
        session_id: str,
        on_match: MatchHandler,
        on_member: MemberHandler,
    ) -> Subscription:
        """Start receiving inserts for one session."""
        ...
