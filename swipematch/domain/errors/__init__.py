"""Domain errors for SwipeMatch.

Category bases live in ``swipematch.domain.exceptions``; this package holds
the concrete errors raised by the services and adapters.
"""

from swipematch.domain.errors.session import (
    EmptyFilterSelectionError,
    EmptyJoinNameError,
    InvalidRequiredVotesError,
    NotHostError,
    SessionNotFoundError,
    SessionStateError,
)
from swipematch.domain.errors.vote import NoCandidateError, NothingToUndoError
from swipematch.domain.exceptions import (
    ConfigurationError,
    NoOpError,
    NotFoundError,
    SwipeMatchError,
    TransientStoreError,
    ValidationError,
)

__all__: list[str] = [
    "ConfigurationError",
    "EmptyFilterSelectionError",
    "EmptyJoinNameError",
    "InvalidRequiredVotesError",
    "NoCandidateError",
    "NoOpError",
    "NotFoundError",
    "NotHostError",
    "NothingToUndoError",
    "SessionNotFoundError",
    "SessionStateError",
    "SwipeMatchError",
    "TransientStoreError",
    "ValidationError",
]
