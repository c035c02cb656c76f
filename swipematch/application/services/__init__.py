"""Application services.

Available services:
- CatalogClient: cached, prefetching catalog access
- ConsensusEngine: votes, quorum evaluation, undo, reports
- SessionController: one participant's session state machine
"""

from swipematch.application.services.base import LoggingMixin
from swipematch.application.services.catalog_client import (
    CatalogClient,
    format_runtime,
)
from swipematch.application.services.consensus_engine import (
    NOTHING_TO_UNDO,
    ConsensusEngine,
)
from swipematch.application.services.session_controller import (
    MatchNotification,
    MatchSource,
    SessionController,
    SessionState,
)
from swipematch.application.services.store_retry import with_retry

__all__: list[str] = [
    "NOTHING_TO_UNDO",
    "CatalogClient",
    "ConsensusEngine",
    "LoggingMixin",
    "MatchNotification",
    "MatchSource",
    "SessionController",
    "SessionState",
    "format_runtime",
    "with_retry",
]
