"""
Pytest configuration and shared fixtures for SwipeMatch tests.

Testing Standards:
- All async tests use pytest.mark.asyncio (auto mode enabled in pyproject.toml)
- Use AsyncMock for async function mocking
- Store and catalog tests use the in-memory stubs unless they target an adapter
- Unit tests go in tests/unit/
"""

import pytest

from swipematch.application.services.catalog_client import CatalogClient
from swipematch.application.services.consensus_engine import ConsensusEngine
from swipematch.domain.models.filters import Certification, SessionFilters
from swipematch.infrastructure.realtime.local_change_feed import LocalChangeFeed
from swipematch.infrastructure.stubs import (
    CatalogProviderStub,
    InMemorySessionStore,
    make_movies,
)


@pytest.fixture
def filters() -> SessionFilters:
    """Netflix + Action, up to 12 years."""
    return SessionFilters.create(["8"], ["28"], Certification.AGE_12)


@pytest.fixture
def feed() -> LocalChangeFeed:
    """Fresh in-process change feed."""
    return LocalChangeFeed()


@pytest.fixture
def store(feed: LocalChangeFeed) -> InMemorySessionStore:
    """In-memory session store publishing to ``feed``."""
    return InMemorySessionStore(feed=feed)


@pytest.fixture
def engine(store: InMemorySessionStore) -> ConsensusEngine:
    """Consensus engine without retry delays."""
    return ConsensusEngine(store, max_attempts=3, retry_base_delay=0)


@pytest.fixture
def provider() -> CatalogProviderStub:
    """Catalog of 45 titles served in pages of 20 (3 pages)."""
    return CatalogProviderStub(make_movies(1, 45), page_size=20)


@pytest.fixture
def catalog(provider: CatalogProviderStub) -> CatalogClient:
    """Catalog client over the stub provider."""
    return CatalogClient(provider)
