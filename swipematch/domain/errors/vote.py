"""Vote and undo errors."""

from __future__ import annotations

from swipematch.domain.exceptions import NoOpError, SwipeMatchError


class NothingToUndoError(NoOpError):
    """Undo was requested but the user has no undoable swipe.

    Either no vote was recorded since the last undo, or the store has no
    non-retracted swipe for the user in this session.
    """

    def __init__(self) -> None:
        super().__init__("nothing to undo")


class NoCandidateError(SwipeMatchError):
    """A vote was attempted while no candidate is on screen."""

    def __init__(self) -> None:
        super().__init__("No candidate to vote on")
