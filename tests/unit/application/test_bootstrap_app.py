"""Unit tests for dependency wiring in swipematch.bootstrap.app."""

from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from swipematch.bootstrap.app import (
    create_catalog_client,
    create_session_controller,
    get_consensus_engine,
    init_backend,
    shutdown_app,
)
from swipematch.config.settings import (
    CatalogSettings,
    DatabaseSettings,
    Settings,
    SwipeSettings,
)
from swipematch.domain.exceptions import ConfigurationError
from swipematch.infrastructure.adapters.persistence import SqlSessionStore
from swipematch.infrastructure.identity import InMemoryIdentityStore
from swipematch.infrastructure.realtime.local_change_feed import LocalChangeFeed


@pytest.fixture
async def sql_settings(tmp_path: Path) -> AsyncIterator[Settings]:
    """Settings for a SQLite backend; singletons are released afterwards."""
    yield Settings(
        catalog=CatalogSettings(api_key="test-key"),
        swipe=SwipeSettings(
            prefetch_low_water_mark=3,
            default_required_votes=3,
            store_max_retries=2,
        ),
        database=DatabaseSettings(url=f"sqlite:///{tmp_path}/swipes.db"),
        environment="development",
    )
    await shutdown_app()


class TestInitBackend:
    """Tests for backend selection."""

    @pytest.mark.asyncio
    async def test_database_selects_sql_store(self, sql_settings: Settings) -> None:
        """Test that DATABASE_URL wires the SQL store and local feed once."""
        store, feed = await init_backend(sql_settings)
        again, _ = await init_backend(sql_settings)

        assert isinstance(store, SqlSessionStore)
        assert isinstance(feed, LocalChangeFeed)
        assert again is store

    @pytest.mark.asyncio
    async def test_no_backend_configured(self) -> None:
        """Test that missing backends are a configuration error."""
        settings = Settings(catalog=CatalogSettings(api_key="test-key"))

        with pytest.raises(ConfigurationError):
            await init_backend(settings)

    @pytest.mark.asyncio
    async def test_engine_is_shared(self, sql_settings: Settings) -> None:
        """Test that the consensus engine is a process-wide singleton."""
        first = await get_consensus_engine(sql_settings)
        second = await get_consensus_engine(sql_settings)

        assert first is second


class TestCreateSessionController:
    """Tests for controller wiring."""

    @pytest.mark.asyncio
    async def test_controller_uses_identity_and_settings(
        self, sql_settings: Settings
    ) -> None:
        """Test that the controller gets the identity and its own catalog."""
        controller = await create_session_controller(
            sql_settings, identity=InMemoryIdentityStore("device-1")
        )

        assert controller.user_id == "device-1"
        assert controller.session is None
        assert controller._default_required_votes == 3
        await controller.close()

    @pytest.mark.asyncio
    async def test_catalog_clients_are_independent(
        self, sql_settings: Settings
    ) -> None:
        """Test that every call builds a fresh client and cache."""
        first = create_catalog_client(sql_settings)
        second = create_catalog_client(sql_settings)

        assert first is not second
        assert first.cache is not second.cache
        assert first.genre_name(28) == "Actie"
        await first.aclose()
        await second.aclose()
