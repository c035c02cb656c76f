"""Unit tests for database bootstrap helpers."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from swipematch.bootstrap.database import (
    _mask_password,
    get_database_url,
    get_engine,
    get_session_factory,
    normalize_database_url,
    reset_database_bootstrap,
)
from swipematch.config.settings import DatabaseSettings
from swipematch.domain.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def reset_bootstrap() -> Iterator[None]:
    """Reset the session factory singleton around each test."""
    reset_database_bootstrap()
    yield
    reset_database_bootstrap()


class TestNormalizeDatabaseUrl:
    """Tests for driver rewriting."""

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("postgresql://u:p@db/swipes", "postgresql+asyncpg://u:p@db/swipes"),
            ("postgres://u:p@db/swipes", "postgresql+asyncpg://u:p@db/swipes"),
            ("sqlite:///swipes.db", "sqlite+aiosqlite:///swipes.db"),
            ("u:p@db/swipes", "postgresql+asyncpg://u:p@db/swipes"),
            (
                "postgresql+asyncpg://u:p@db/swipes",
                "postgresql+asyncpg://u:p@db/swipes",
            ),
        ],
    )
    def test_normalize(self, url: str, expected: str) -> None:
        """Test that each URL form maps to its async driver."""
        assert normalize_database_url(url) == expected


class TestDatabaseBootstrap:
    """Tests for URL lookup and the session factory singleton."""

    def test_missing_url_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that a missing DATABASE_URL is a configuration error."""
        monkeypatch.delenv("DATABASE_URL", raising=False)

        with pytest.raises(ConfigurationError, match="DATABASE_URL"):
            get_database_url()

    def test_mask_password(self) -> None:
        """Test that passwords are hidden in logged URLs."""
        masked = _mask_password("postgresql+asyncpg://user:secret@db/swipes")

        assert "secret" not in masked
        assert masked == "postgresql+asyncpg://user:***@db/swipes"
        assert _mask_password("sqlite+aiosqlite:///x.db") == "sqlite+aiosqlite:///x.db"

    @pytest.mark.asyncio
    async def test_session_factory_is_singleton(self, tmp_path: Path) -> None:
        """Test that the factory and engine are created once."""
        settings = DatabaseSettings(url=f"sqlite:///{tmp_path}/swipes.db")

        first = get_session_factory(settings)
        second = get_session_factory()
        engine = get_engine()

        assert first is second
        assert engine is not None
        assert engine.dialect.name == "sqlite"
        await engine.dispose()
