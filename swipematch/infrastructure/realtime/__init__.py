"""Realtime fan-out implementations."""

from swipematch.infrastructure.realtime.local_change_feed import (
    LocalChangeFeed,
    LocalSubscription,
)

__all__: list[str] = ["LocalChangeFeed", "LocalSubscription"]
