"""Domain models for SwipeMatch.

Immutable value objects with no infrastructure dependencies.
"""

from swipematch.domain.models.catalog import CatalogResult
from swipematch.domain.models.filters import Certification, SessionFilters
from swipematch.domain.models.match import (
    Match,
    MemberSwipeCount,
    PartialMatch,
    SessionStats,
)
from swipematch.domain.models.movie import MovieSummary
from swipematch.domain.models.session import Member, Session
from swipematch.domain.models.swipe import Swipe, SwipeDirection
from swipematch.domain.models.vote import QueryResult, UndoResult, VoteOutcome

__all__: list[str] = [
    "CatalogResult",
    "Certification",
    "Match",
    "Member",
    "MemberSwipeCount",
    "MovieSummary",
    "PartialMatch",
    "QueryResult",
    "Session",
    "SessionFilters",
    "SessionStats",
    "Swipe",
    "SwipeDirection",
    "UndoResult",
    "VoteOutcome",
]
