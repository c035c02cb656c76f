"""Bounded retry for store calls.

Only ``TransientStoreError`` is retried. After the last attempt the error
is raised to the caller; nothing blocks indefinitely.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from swipematch.domain.exceptions import TransientStoreError

T = TypeVar("T")

log = structlog.get_logger()


async def with_retry(
    operation: str,
    call: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 0.2,
) -> T:
    """Run ``call`` until it succeeds or ``max_attempts`` is reached.

    Args:
        operation: Name used in log entries.
        call: Zero-argument coroutine factory; invoked once per attempt.
        max_attempts: Total attempts, at least 1.
        base_delay: Sleep before the second attempt, doubled afterwards.

    Raises:
        TransientStoreError: The last attempt failed.
    """
    attempts = max(1, max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await call()
        except TransientStoreError as exc:
            if attempt == attempts:
                log.error(
                    "store_call_failed",
                    operation=operation,
                    attempts=attempt,
                    error=str(exc),
                )
                raise
            delay = base_delay * (2 ** (attempt - 1))
            log.warning(
                "store_call_retry",
                operation=operation,
                attempt=attempt,
                retry_in=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)

    raise AssertionError("unreachable")
