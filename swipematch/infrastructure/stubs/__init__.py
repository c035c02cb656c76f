"""Infrastructure stubs for development and testing.

Available stubs:
- InMemorySessionStore: Session store with atomic quorum check, supersede
  and undo semantics, optional change-feed publishing, injectable failures
- CatalogProviderStub: Paged catalog with call recording, injectable
  failures and a gate to hold requests in flight

WARNING: These stubs are NOT for production use.
Production implementations are in swipematch/infrastructure/adapters/.
"""

from swipematch.infrastructure.stubs.catalog_provider_stub import (
    CatalogProviderStub,
    make_movies,
)
from swipematch.infrastructure.stubs.session_store_stub import InMemorySessionStore

__all__: list[str] = [
    "CatalogProviderStub",
    "InMemorySessionStore",
    "make_movies",
]
