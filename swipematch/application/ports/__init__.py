"""Application ports: contracts implemented by infrastructure adapters.

Available ports:
- SessionStoreProtocol: sessions, members, swipes, matches
- RealtimeFeedProtocol: push feed of match/member inserts
- CatalogProviderProtocol: raw movie database access
- IdentityStoreProtocol: per-device pseudo-identity
"""

from swipematch.application.ports.catalog_provider import (
    CatalogProviderError,
    CatalogProviderProtocol,
)
from swipematch.application.ports.identity_store import IdentityStoreProtocol
from swipematch.application.ports.realtime_feed import (
    MatchHandler,
    MemberHandler,
    RealtimeFeedProtocol,
    Subscription,
)
from swipematch.application.ports.session_store import (
    QuorumCheck,
    SessionStoreProtocol,
    UndoneSwipe,
)

__all__: list[str] = [
    "CatalogProviderError",
    "CatalogProviderProtocol",
    "IdentityStoreProtocol",
    "MatchHandler",
    "MemberHandler",
    "QuorumCheck",
    "RealtimeFeedProtocol",
    "SessionStoreProtocol",
    "Subscription",
    "UndoneSwipe",
]
