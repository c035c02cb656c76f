"""Correlation ID handling for swipe sessions.

Every user-facing action (create, join, vote, undo) runs inside a
correlation scope so that the log lines written by the controller, the
consensus engine and the store adapters for that action can be grouped.
The ID lives in a contextvar and therefore follows the action across
``await`` points and into tasks spawned from it.

Usage:
    with correlation_scope() as correlation_id:
        outcome = await engine.record_vote(...)

    # Anywhere below, in the same task:
    log = structlog.get_logger().bind(correlation_id=get_correlation_id())
"""

import functools
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, ParamSpec, TypeVar
from uuid import uuid4

P = ParamSpec("P")
R = TypeVar("R")

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def generate_correlation_id() -> str:
    """Generate a new correlation ID (UUID4 string)."""
    return str(uuid4())


def get_correlation_id() -> str:
    """Return the correlation ID of the current context.

    Returns:
        The current correlation ID, or an empty string outside any scope.
    """
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current context.

    Args:
        correlation_id: The ID to attach to subsequent log entries.
    """
    _correlation_id.set(correlation_id)


@contextmanager
def correlation_scope(correlation_id: str | None = None) -> Iterator[str]:
    """Run a block under a correlation ID, restoring the previous one after.

    An existing ID is reused when no explicit one is given, so nested scopes
    (controller -> engine) share the ID of the outermost action.

    Args:
        correlation_id: Explicit ID to use. Generated when omitted.

    Yields:
        The correlation ID active inside the block.
    """
    active = correlation_id or get_correlation_id() or generate_correlation_id()
    token = _correlation_id.set(active)
    try:
        yield active
    finally:
        _correlation_id.reset(token)


def correlation_id_processor(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Structlog processor adding ``correlation_id`` to every entry.

    Entries logged outside a scope are left untouched.
    """
    correlation_id = get_correlation_id()
    if correlation_id:
        event_dict.setdefault("correlation_id", correlation_id)
    return event_dict


def correlated(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    """Run a coroutine function inside ``correlation_scope()``."""

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        with correlation_scope():
            return await func(*args, **kwargs)

    return wrapper
