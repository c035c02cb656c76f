"""Session and member models."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from swipematch.domain.models.filters import SessionFilters


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Session:
    """A shared swiping room.

    ``required_votes`` is fixed when the session is created. Filters may be
    replaced by the host while the session is active; already formed matches
    are unaffected.

    Attributes:
        id: Opaque unique token.
        host_user_id: Pseudo-identity of the creator.
        filters: Current catalog filters.
        required_votes: Distinct likes needed for a match (>= 1).
        total_members: Number of distinct members (>= 1, host included).
        is_active: False once the host deactivates the session.
        created_at: Creation time (UTC).
    """

    id: str
    host_user_id: str
    filters: SessionFilters
    required_votes: int
    total_members: int = 1
    is_active: bool = True
    created_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        if self.required_votes < 1:
            raise ValueError(f"required_votes must be >= 1, got {self.required_votes}")
        if self.total_members < 1:
            raise ValueError(f"total_members must be >= 1, got {self.total_members}")

    def is_host(self, user_id: str) -> bool:
        return self.host_user_id == user_id

    def with_filters(self, filters: SessionFilters) -> Session:
        return replace(self, filters=filters)


@dataclass(frozen=True)
class Member:
    """A participant of one session.

    Attributes:
        session_id: Session the member belongs to.
        user_id: Per-device pseudo-identity.
        user_name: Optional display name.
        joined_at: First join time (UTC).
    """

    session_id: str
    user_id: str
    user_name: str | None = None
    joined_at: datetime = field(default_factory=_utc_now)
