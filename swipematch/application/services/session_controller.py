"""Session controller: one participant's view of one session.

States::

    NO_SESSION --create_session--------------------------> SWIPING
    NO_SESSION --open_session--> AWAITING_JOIN_DECISION --join--> SWIPING
    NO_SESSION --open_session (already a member)---------> SWIPING
    any        --close------------------------------------> CLOSED

Client-local state (candidates, cursor, can_undo, match counter) has one
writer. Caller-driven operations (``vote``, ``undo``, ``update_filters``)
mutate it directly; everything that arrives asynchronously, realtime
events and next-page results, is put on one ``asyncio.Queue`` and applied
by a single consumer task. A page append therefore never interleaves with
a cursor change, and nothing is applied after ``close()``.

Candidate paging: when the number of candidates ahead of the cursor drops
to ``low_water_mark`` or fewer, exactly one next-page load is started. Its
items are appended behind the existing ones; ids already present are
skipped, so nothing already seen moves.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeVar
from uuid import uuid4

from swipematch.application.ports.identity_store import IdentityStoreProtocol
from swipematch.application.ports.realtime_feed import (
    RealtimeFeedProtocol,
    Subscription,
)
from swipematch.application.ports.session_store import SessionStoreProtocol
from swipematch.application.services.base import LoggingMixin
from swipematch.application.services.catalog_client import CatalogClient
from swipematch.application.services.consensus_engine import ConsensusEngine
from swipematch.application.services.store_retry import with_retry
from swipematch.domain.errors.session import (
    EmptyJoinNameError,
    InvalidRequiredVotesError,
    NotHostError,
    SessionNotFoundError,
    SessionStateError,
)
from swipematch.domain.errors.vote import NoCandidateError, NothingToUndoError
from swipematch.domain.exceptions import TransientStoreError
from swipematch.domain.models.catalog import CatalogResult
from swipematch.domain.models.filters import SessionFilters
from swipematch.domain.models.match import Match, MemberSwipeCount
from swipematch.domain.models.movie import MovieSummary
from swipematch.domain.models.session import Member, Session
from swipematch.domain.models.swipe import SwipeDirection
from swipematch.domain.models.vote import QueryResult, UndoResult, VoteOutcome
from swipematch.infrastructure.observability.correlation import correlated

T = TypeVar("T")

DEFAULT_LOW_WATER_MARK = 5
DEFAULT_REQUIRED_VOTES = 2
HOST_NAME = "Host"

Update = Callable[[], Awaitable[None]]


class SessionState(str, Enum):
    """Lifecycle of a controller."""

    NO_SESSION = "no_session"
    AWAITING_JOIN_DECISION = "awaiting_join_decision"
    SWIPING = "swiping"
    CLOSED = "closed"


class MatchSource(str, Enum):
    """Where a match notification came from."""

    LOCAL = "local"
    REALTIME = "realtime"


@dataclass(frozen=True)
class MatchNotification:
    """A match to show to the user.

    A match caused by this client's own vote is usually surfaced twice, once
    from the vote outcome and once from the realtime feed.
    """

    movie_id: int
    title: str
    source: MatchSource
    movie_data: dict[str, Any] | None = None
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class _PendingVote:
    movie_id: int
    direction: SwipeDirection
    swipe_id: str


class SessionController(LoggingMixin):
    """Drives one participant through a session.

    Example:
        >>> controller = SessionController(store, engine, catalog, feed, identity)
        >>> await controller.create_session(filters, required_votes=2)
        >>> outcome = await controller.vote(SwipeDirection.LIKE)
        >>> controller.current_candidate
    """

    def __init__(
        self,
        store: SessionStoreProtocol,
        engine: ConsensusEngine,
        catalog: CatalogClient,
        feed: RealtimeFeedProtocol,
        identity: IdentityStoreProtocol,
        low_water_mark: int = DEFAULT_LOW_WATER_MARK,
        default_required_votes: int = DEFAULT_REQUIRED_VOTES,
        max_attempts: int = 3,
        retry_base_delay: float = 0.2,
    ) -> None:
        """Initialize the controller in ``NO_SESSION``.

        Args:
            store: Session store for lifecycle calls.
            engine: Consensus engine for votes and undo.
            catalog: Catalog client owned by this controller; closed by
                ``close()``.
            feed: Realtime feed of match and member inserts.
            identity: Source of this device's user id.
            low_water_mark: Load the next page when this many or fewer
                candidates remain ahead of the cursor.
            default_required_votes: Quorum used when ``create_session``
                gets none.
            max_attempts: Attempts per store call.
            retry_base_delay: First retry delay in seconds.
        """
        self._store = store
        self._engine = engine
        self._catalog = catalog
        self._feed = feed
        self._user_id = identity.get_or_create_user_id()
        self._low_water_mark = low_water_mark
        self._default_required_votes = default_required_votes
        self._max_attempts = max_attempts
        self._retry_base_delay = retry_base_delay

        self._state = SessionState.NO_SESSION
        self._session: Session | None = None
        self._subscription: Subscription | None = None

        self._candidates: list[MovieSummary] = []
        self._candidate_ids: set[int] = set()
        self._cursor = 0
        self._page = 0
        self._total_pages = 0
        self._generation = 0
        self._page_loading = False
        self._page_task: asyncio.Task[None] | None = None
        self._last_catalog_error: str | None = None

        self._can_undo = False
        self._pending_vote: _PendingVote | None = None
        self._match_count = 0
        self._notifications: list[MatchNotification] = []
        self._members: list[MemberSwipeCount] = []

        self._updates: asyncio.Queue[Update] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None

        self._init_logger(component="controller")

    # State

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def is_host(self) -> bool:
        return self._session is not None and self._session.is_host(self._user_id)

    @property
    def candidates(self) -> tuple[MovieSummary, ...]:
        return tuple(self._candidates)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current_candidate(self) -> MovieSummary | None:
        if self._cursor < len(self._candidates):
            return self._candidates[self._cursor]
        return None

    @property
    def remaining(self) -> int:
        """Candidates at or after the cursor."""
        return max(0, len(self._candidates) - self._cursor)

    @property
    def can_undo(self) -> bool:
        return self._can_undo

    @property
    def match_count(self) -> int:
        return self._match_count

    @property
    def notifications(self) -> tuple[MatchNotification, ...]:
        return tuple(self._notifications)

    @property
    def members(self) -> tuple[MemberSwipeCount, ...]:
        return tuple(self._members)

    @property
    def last_catalog_error(self) -> str | None:
        """Error of the most recent failed page load, cleared on success."""
        return self._last_catalog_error

    @property
    def page_loading(self) -> bool:
        return self._page_loading

    # Session lifecycle

    @correlated
    async def create_session(
        self, filters: SessionFilters, required_votes: int | None = None
    ) -> Session:
        """Create a session as host and start swiping.

        ``required_votes`` falls back to the configured default quorum.

        Raises:
            EmptyFilterSelectionError: No providers or no genres selected.
            InvalidRequiredVotesError: ``required_votes`` below 1.
            TransientStoreError: The store stayed unavailable.
        """
        self._require_state("create_session", SessionState.NO_SESSION)
        filters.validate()
        if required_votes is None:
            required_votes = self._default_required_votes
        if required_votes < 1:
            raise InvalidRequiredVotesError(required_votes)

        session = await self._call(
            "create_session",
            lambda: self._store.create_session(
                self._user_id, filters, required_votes, HOST_NAME
            ),
        )
        self._session = session
        self._log_operation("create_session", session_id=session.id).info(
            "session_created", required_votes=required_votes
        )
        await self._enter_swiping()
        return session

    @correlated
    async def open_session(self, session_id: str) -> SessionState:
        """Open a session from a shared reference.

        Returns:
            ``SWIPING`` when this identity already joined, else
            ``AWAITING_JOIN_DECISION``.

        Raises:
            SessionNotFoundError: The session does not exist or is no
                longer active. The controller stays in ``NO_SESSION``.
            TransientStoreError: The store stayed unavailable.
        """
        self._require_state("open_session", SessionState.NO_SESSION)
        log = self._log_operation("open_session", session_id=session_id)

        session = await self._call(
            "get_session", lambda: self._store.get_session(session_id)
        )
        if session is None or not session.is_active:
            log.warning("session_not_found")
            raise SessionNotFoundError(session_id)

        self._session = session
        already_member = await self._call(
            "is_member", lambda: self._store.is_member(session_id, self._user_id)
        )
        if already_member:
            log.info("session_rejoined")
            await self._enter_swiping()
        else:
            self._state = SessionState.AWAITING_JOIN_DECISION
        return self._state

    @correlated
    async def join(self, user_name: str) -> Member:
        """Join the opened session under ``user_name`` and start swiping.

        Raises:
            EmptyJoinNameError: The name is blank.
            SessionNotFoundError: The session disappeared meanwhile.
            TransientStoreError: The store stayed unavailable.
        """
        self._require_state("join", SessionState.AWAITING_JOIN_DECISION)
        name = (user_name or "").strip()
        if not name:
            raise EmptyJoinNameError()

        session = self._require_session()
        member = await self._call(
            "join_session",
            lambda: self._store.join_session(session.id, self._user_id, name),
        )
        self._log_operation("join", session_id=session.id).info(
            "session_joined", user_name=name
        )
        await self._enter_swiping()
        return member

    async def close(self) -> None:
        """Leave the session view.

        Unsubscribes from the feed, stops the update consumer and closes the
        catalog client. Events arriving later are dropped.
        """
        if self._state is SessionState.CLOSED:
            return
        self._state = SessionState.CLOSED

        if self._subscription is not None:
            await self._subscription.unsubscribe()
            self._subscription = None

        for task in (self._page_task, self._consumer):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._page_task = None
        self._consumer = None

        await self._catalog.aclose()
        self._log_operation(
            "close", session_id=self._session.id if self._session else None
        ).info("session_closed")

    def share_link(self, base_url: str) -> str:
        """Link that opens this session on another device."""
        session = self._require_session()
        return f"{base_url}?session={session.id}"

    # Swiping

    @correlated
    async def vote(self, direction: SwipeDirection) -> VoteOutcome:
        """Vote on the current candidate.

        The cursor only advances once the vote is confirmed. On failure the
        outcome carries ``error`` and calling ``vote`` again on the same
        candidate reuses the swipe id, so a vote that did reach the store
        is not stored twice.

        Raises:
            NoCandidateError: No candidate is on screen.
        """
        self._require_state("vote", SessionState.SWIPING)
        session = self._require_session()
        candidate = self.current_candidate
        if candidate is None:
            raise NoCandidateError()

        pending = self._pending_vote
        if (
            pending is None
            or pending.movie_id != candidate.id
            or pending.direction != direction
        ):
            pending = _PendingVote(candidate.id, direction, str(uuid4()))
            self._pending_vote = pending

        snapshot = candidate.to_snapshot(self._catalog.genre_names)
        outcome = await self._engine.record_vote(
            session.id,
            self._user_id,
            candidate.id,
            direction,
            snapshot,
            swipe_id=pending.swipe_id,
        )
        if self._state is not SessionState.SWIPING:
            return outcome
        if not outcome.ok:
            return outcome

        self._pending_vote = None
        self._can_undo = True
        self._cursor += 1
        if outcome.is_match:
            self._notifications.append(
                MatchNotification(
                    movie_id=candidate.id,
                    title=candidate.title,
                    source=MatchSource.LOCAL,
                    movie_data=snapshot,
                )
            )
        self._maybe_load_next_page()
        return outcome

    @correlated
    async def undo(self) -> UndoResult:
        """Retract this user's last vote and show that candidate again.

        Only the vote recorded since the last undo can be undone; a second
        undo is a no-op reported as "nothing to undo".
        """
        self._require_state("undo", SessionState.SWIPING)
        session = self._require_session()
        if not self._can_undo:
            return UndoResult(success=False, message=NothingToUndoError().message)

        result = await self._engine.undo_last_vote(session.id, self._user_id)
        if result.success:
            self._can_undo = False
            self._cursor = max(0, self._cursor - 1)
        elif result.error is None:
            self._can_undo = False
        return result

    @correlated
    async def update_filters(self, filters: SessionFilters) -> bool:
        """Replace the session's filters and reload candidates. Host only.

        Returns:
            False when the store could not be updated; local state is then
            unchanged.

        Raises:
            NotHostError: This identity is not the host.
            EmptyFilterSelectionError: No providers or no genres selected.
        """
        self._require_state("update_filters", SessionState.SWIPING)
        session = self._require_session()
        if not session.is_host(self._user_id):
            raise NotHostError(session.id, self._user_id)
        filters.validate()

        log = self._log_operation("update_filters", session_id=session.id)
        try:
            updated = await self._call(
                "update_session_filters",
                lambda: self._store.update_session_filters(session.id, filters),
            )
        except TransientStoreError as exc:
            log.warning("filters_not_updated", error=str(exc))
            return False
        if not updated:
            return False

        self._session = session.with_filters(filters)
        self._catalog.clear_cache()
        self._reset_candidates()
        log.info("filters_updated")
        await self._load_first_page()
        return True

    async def refresh_members(self) -> QueryResult[MemberSwipeCount]:
        """Reload member progress (swipe count per member)."""
        session = self._require_session()
        try:
            rows = await self._call(
                "list_member_swipe_counts",
                lambda: self._store.list_member_swipe_counts(session.id),
            )
        except TransientStoreError as exc:
            return QueryResult(error=exc)
        if self._state is not SessionState.CLOSED:
            self._members = rows
        return QueryResult(items=rows)

    async def drain(self) -> None:
        """Wait until pending page loads and queued updates are applied."""
        while True:
            task = self._page_task
            if task is not None and not task.done():
                await asyncio.gather(task, return_exceptions=True)
            if self._consumer is not None and not self._consumer.done():
                await self._updates.join()
            if self._page_task is task and self._updates.empty():
                return

    # Internals

    def _require_state(self, operation: str, *allowed: SessionState) -> None:
        if self._state not in allowed:
            raise SessionStateError(operation, self._state.value)

    def _require_session(self) -> Session:
        if self._session is None:
            raise SessionStateError("access session", self._state.value)
        return self._session

    async def _call(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        return await with_retry(
            operation,
            call,
            max_attempts=self._max_attempts,
            base_delay=self._retry_base_delay,
        )

    async def _enter_swiping(self) -> None:
        session = self._require_session()
        self._subscription = await self._feed.subscribe(
            session.id, self._on_match_inserted, self._on_member_inserted
        )
        self._consumer = asyncio.create_task(
            self._consume_updates(), name=f"controller-{session.id}"
        )
        self._state = SessionState.SWIPING
        await self._load_first_page()
        await self.refresh_members()

    def _reset_candidates(self) -> None:
        self._generation += 1
        if self._page_task is not None and not self._page_task.done():
            self._page_task.cancel()
        self._page_task = None
        self._page_loading = False
        self._candidates = []
        self._candidate_ids = set()
        self._cursor = 0
        self._page = 0
        self._total_pages = 0
        self._can_undo = False
        self._pending_vote = None

    async def _load_first_page(self) -> None:
        session = self._require_session()
        result = await self._catalog.fetch(session.filters, page=1)
        self._apply_page(result)
        if result.ok:
            self._maybe_load_next_page()

    def _maybe_load_next_page(self) -> None:
        if self._page_loading or self._page >= self._total_pages:
            return
        if self.remaining > self._low_water_mark:
            return

        self._page_loading = True
        self._page_task = asyncio.create_task(
            self._load_page(self._page + 1, self._generation)
        )

    async def _load_page(self, page: int, generation: int) -> None:
        session = self._require_session()
        self._log.debug("candidate_page_requested", page=page)
        result = await self._catalog.fetch(session.filters, page=page)
        self._submit(lambda: self._apply_loaded_page(result, generation))

    async def _apply_loaded_page(self, result: CatalogResult, generation: int) -> None:
        if generation != self._generation:
            return
        self._page_loading = False
        self._apply_page(result)
        if result.ok:
            self._maybe_load_next_page()

    def _apply_page(self, result: CatalogResult) -> None:
        if not result.ok:
            self._last_catalog_error = result.error
            self._log.warning(
                "candidate_page_failed", page=result.page, error=result.error
            )
            return

        self._last_catalog_error = None
        added = 0
        for movie in result.items:
            if movie.id in self._candidate_ids:
                continue
            self._candidate_ids.add(movie.id)
            self._candidates.append(movie)
            added += 1
        self._page = result.page
        self._total_pages = result.total_pages
        self._log.info(
            "candidates_appended",
            page=result.page,
            added=added,
            total=len(self._candidates),
        )

    # Serialized update path

    def _submit(self, update: Update) -> None:
        if self._state is SessionState.CLOSED:
            return
        self._updates.put_nowait(update)

    async def _consume_updates(self) -> None:
        while True:
            update = await self._updates.get()
            try:
                if self._state is not SessionState.CLOSED:
                    await update()
            except asyncio.CancelledError:
                raise
            except Exception:
                self._log.exception("controller_update_failed")
            finally:
                self._updates.task_done()

    async def _on_match_inserted(self, match: Match) -> None:
        self._submit(lambda: self._apply_match(match))

    async def _on_member_inserted(self, member: Member) -> None:
        self._submit(self._apply_member_change)

    async def _apply_match(self, match: Match) -> None:
        self._match_count += 1
        self._notifications.append(
            MatchNotification(
                movie_id=match.movie_id,
                title=match.title,
                source=MatchSource.REALTIME,
                movie_data=match.movie_data,
            )
        )
        self._log.info("match_received", movie_id=match.movie_id)

    async def _apply_member_change(self) -> None:
        result = await self.refresh_members()
        if not result.ok:
            self._log.warning("members_refresh_failed", error=str(result.error))
