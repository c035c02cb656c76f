"""Bootstrap wiring for SwipeMatch dependencies.

Backend selection:
- DATABASE_URL set: ``SqlSessionStore`` with an in-process
  ``LocalChangeFeed`` (tables are created when missing)
- otherwise SUPABASE_URL + SUPABASE_ANON_KEY: ``SupabaseSessionStore`` with
  ``SupabaseRealtimeFeed``

Store, feed and engine are process-wide singletons. Every controller gets
its own catalog client, since the controller closes it on exit.

Usage:
    settings = load_settings()
    controller = await create_session_controller(settings)
    await controller.create_session(filters, required_votes=2)
"""

from __future__ import annotations

from pathlib import Path

from structlog import get_logger
from supabase import AsyncClient, acreate_client

from swipematch.application.ports.identity_store import IdentityStoreProtocol
from swipematch.application.ports.realtime_feed import RealtimeFeedProtocol
from swipematch.application.ports.session_store import SessionStoreProtocol
from swipematch.application.services.catalog_client import CatalogClient
from swipematch.application.services.consensus_engine import ConsensusEngine
from swipematch.application.services.session_controller import SessionController
from swipematch.bootstrap.database import (
    close_database_engine,
    get_engine,
    get_session_factory,
)
from swipematch.config.catalog_constants import GENRE_NAMES
from swipematch.config.settings import Settings
from swipematch.domain.exceptions import ConfigurationError
from swipematch.infrastructure.adapters.persistence.sql_schema import create_schema
from swipematch.infrastructure.adapters.persistence.sql_session_store import (
    SqlSessionStore,
)
from swipematch.infrastructure.adapters.persistence.supabase_session_store import (
    SupabaseSessionStore,
)
from swipematch.infrastructure.adapters.realtime.supabase_realtime_feed import (
    SupabaseRealtimeFeed,
)
from swipematch.infrastructure.adapters.tmdb.discover_client import (
    TmdbCatalogProvider,
)
from swipematch.infrastructure.cache.catalog_page_cache import CatalogPageCache
from swipematch.infrastructure.identity.file_identity_store import FileIdentityStore
from swipematch.infrastructure.observability.logging import configure_structlog
from swipematch.infrastructure.realtime.local_change_feed import LocalChangeFeed

logger = get_logger()

_session_store: SessionStoreProtocol | None = None
_realtime_feed: RealtimeFeedProtocol | None = None
_consensus_engine: ConsensusEngine | None = None
_supabase_client: AsyncClient | None = None


async def init_backend(
    settings: Settings,
) -> tuple[SessionStoreProtocol, RealtimeFeedProtocol]:
    """Create the session store and realtime feed on first call.

    Raises:
        ConfigurationError: Neither a database nor Supabase is configured.
    """
    global _session_store, _realtime_feed, _supabase_client

    if _session_store is not None and _realtime_feed is not None:
        return _session_store, _realtime_feed

    configure_structlog(settings.environment)

    if settings.database is not None:
        session_factory = get_session_factory(settings.database)
        engine = get_engine()
        assert engine is not None
        await create_schema(engine)
        feed = LocalChangeFeed()
        _session_store = SqlSessionStore(session_factory, feed=feed)
        _realtime_feed = feed
        logger.info("session_store_initialized", store_type="sql")
    elif settings.supabase is not None:
        _supabase_client = await acreate_client(
            settings.supabase.url, settings.supabase.anon_key
        )
        _session_store = SupabaseSessionStore(_supabase_client)
        _realtime_feed = SupabaseRealtimeFeed(_supabase_client)
        logger.info("session_store_initialized", store_type="supabase")
    else:
        raise ConfigurationError(
            "No session store configured. Set DATABASE_URL or "
            "SUPABASE_URL and SUPABASE_ANON_KEY."
        )

    return _session_store, _realtime_feed


async def get_consensus_engine(settings: Settings) -> ConsensusEngine:
    global _consensus_engine
    if _consensus_engine is None:
        store, _ = await init_backend(settings)
        _consensus_engine = ConsensusEngine(
            store,
            max_attempts=settings.swipe.store_max_retries,
            retry_base_delay=settings.swipe.store_retry_base_delay,
        )
    return _consensus_engine


def create_catalog_client(settings: Settings) -> CatalogClient:
    """New catalog client with its own HTTP client and page cache."""
    return CatalogClient(
        TmdbCatalogProvider(settings.catalog),
        cache=CatalogPageCache(),
        image_base=settings.catalog.image_base,
        genre_names=GENRE_NAMES,
        region=settings.catalog.region,
    )


async def create_session_controller(
    settings: Settings,
    identity: IdentityStoreProtocol | None = None,
    identity_path: Path | str | None = None,
) -> SessionController:
    """Wire a controller for one session view.

    Args:
        settings: Loaded settings.
        identity: Identity store; a ``FileIdentityStore`` is used when omitted.
        identity_path: File for the default identity store.
    """
    store, feed = await init_backend(settings)
    engine = await get_consensus_engine(settings)
    return SessionController(
        store,
        engine,
        create_catalog_client(settings),
        feed,
        identity or FileIdentityStore(identity_path),
        low_water_mark=settings.swipe.prefetch_low_water_mark,
        default_required_votes=settings.swipe.default_required_votes,
        max_attempts=settings.swipe.store_max_retries,
        retry_base_delay=settings.swipe.store_retry_base_delay,
    )


async def shutdown_app() -> None:
    """Release backend connections (for graceful shutdown)."""
    global _supabase_client
    if _supabase_client is not None:
        await _supabase_client.remove_all_channels()
        _supabase_client = None
    await close_database_engine()
    reset_app_bootstrap()


def reset_app_bootstrap() -> None:
    """Reset singletons for testing."""
    global _session_store, _realtime_feed, _consensus_engine, _supabase_client
    _session_store = None
    _realtime_feed = None
    _consensus_engine = None
    _supabase_client = None
