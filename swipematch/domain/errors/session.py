"""Session lifecycle errors.

Raised by the session controller and the store adapters when a session
reference is invalid or user input for creating/joining/updating a session
is rejected.
"""

from __future__ import annotations

from swipematch.domain.exceptions import (
    NotFoundError,
    SwipeMatchError,
    ValidationError,
)


class SessionNotFoundError(NotFoundError):
    """The session id does not resolve to a session.

    Attributes:
        session_id: The id that was looked up.
    """

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(
            f"Session {session_id} not found. Start a new session instead."
        )


class EmptyFilterSelectionError(ValidationError):
    """A filter set was submitted without providers or without genres.

    Attributes:
        field: ``"provider_ids"`` or ``"genre_ids"``.
    """

    def __init__(self, field: str) -> None:
        self.field = field
        label = "streaming service" if field == "provider_ids" else "genre"
        super().__init__(f"Select at least one {label}")


class EmptyJoinNameError(ValidationError):
    """A guest tried to join without a display name."""

    def __init__(self) -> None:
        super().__init__("Enter a name to join the session")


class InvalidRequiredVotesError(ValidationError):
    """The quorum threshold is below one.

    Attributes:
        required_votes: The rejected value.
    """

    def __init__(self, required_votes: int) -> None:
        self.required_votes = required_votes
        super().__init__(f"required_votes must be at least 1, got {required_votes}")


class NotHostError(SwipeMatchError):
    """A non-host identity attempted a host-only action.

    Attributes:
        session_id: Session the action targeted.
        user_id: Identity that attempted it.
    """

    def __init__(self, session_id: str, user_id: str) -> None:
        self.session_id = session_id
        self.user_id = user_id
        super().__init__(f"Only the host can change filters of session {session_id}")


class SessionStateError(SwipeMatchError):
    """An operation was called in a controller state that does not allow it.

    Attributes:
        operation: The attempted operation.
        state: The controller state at the time.
    """

    def __init__(self, operation: str, state: str) -> None:
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation} while in state {state}")
