"""Unit tests for configuration loading."""

import pytest

from swipematch.config.settings import (
    CatalogSettings,
    SwipeSettings,
    load_settings,
)
from swipematch.domain.exceptions import ConfigurationError

_ENV_KEYS = (
    "TMDB_API_KEY",
    "DATABASE_URL",
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "CATALOG_LANGUAGE",
    "CATALOG_MIN_VOTE_COUNT",
    "PREFETCH_LOW_WATER_MARK",
    "STORE_MAX_RETRIES",
    "SQLALCHEMY_ECHO",
    "APP_ENV",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove every variable the loader reads."""
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestLoadSettings:
    """Tests for load_settings."""

    def test_missing_everything_lists_all_variables(self) -> None:
        """Test that the error names every missing variable."""
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(load_dotenv_file=False)

        message = str(exc_info.value)
        assert "TMDB_API_KEY" in message
        assert "SUPABASE_URL" in message
        assert "SUPABASE_ANON_KEY" in message

    def test_placeholders_count_as_missing(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that example placeholder values are rejected."""
        monkeypatch.setenv("TMDB_API_KEY", "YOUR_TMDB_API_KEY_HERE")
        monkeypatch.setenv("DATABASE_URL", "sqlite:///swipes.db")

        with pytest.raises(ConfigurationError, match="TMDB_API_KEY"):
            load_settings(load_dotenv_file=False)

    def test_database_url_satisfies_backend(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that DATABASE_URL alone is enough as backend."""
        monkeypatch.setenv("TMDB_API_KEY", "key")
        monkeypatch.setenv("DATABASE_URL", "sqlite:///swipes.db")
        monkeypatch.setenv("SQLALCHEMY_ECHO", "true")

        settings = load_settings(load_dotenv_file=False)

        assert settings.database is not None
        assert settings.database.url == "sqlite:///swipes.db"
        assert settings.database.echo is True
        assert settings.supabase is None

    def test_supabase_backend(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that Supabase URL and key build the hosted section."""
        monkeypatch.setenv("TMDB_API_KEY", "key")
        monkeypatch.setenv("SUPABASE_URL", "https://abc.supabase.co")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")

        settings = load_settings(load_dotenv_file=False)

        assert settings.supabase is not None
        assert settings.supabase.url == "https://abc.supabase.co"
        assert settings.database is None

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test catalog and swipe defaults."""
        monkeypatch.setenv("TMDB_API_KEY", "key")
        monkeypatch.setenv("DATABASE_URL", "sqlite:///swipes.db")

        settings = load_settings(load_dotenv_file=False)

        assert settings.catalog.language == "nl-NL"
        assert settings.catalog.region == "NL"
        assert settings.catalog.min_vote_count == 50
        assert settings.swipe.prefetch_low_water_mark == 5
        assert settings.swipe.default_required_votes == 2
        assert settings.environment == "production"

    def test_overrides_and_invalid_numbers(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that overrides apply and unparsable numbers fall back."""
        monkeypatch.setenv("TMDB_API_KEY", "key")
        monkeypatch.setenv("DATABASE_URL", "sqlite:///swipes.db")
        monkeypatch.setenv("CATALOG_LANGUAGE", "en-US")
        monkeypatch.setenv("CATALOG_MIN_VOTE_COUNT", "lots")
        monkeypatch.setenv("PREFETCH_LOW_WATER_MARK", "8")
        monkeypatch.setenv("APP_ENV", "development")

        settings = load_settings(load_dotenv_file=False)

        assert settings.catalog.language == "en-US"
        assert settings.catalog.min_vote_count == CatalogSettings.min_vote_count
        assert settings.swipe.prefetch_low_water_mark == 8
        assert settings.environment == "development"

    def test_invalid_retry_count_rejected(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that a zero retry budget is a configuration error."""
        monkeypatch.setenv("TMDB_API_KEY", "key")
        monkeypatch.setenv("DATABASE_URL", "sqlite:///swipes.db")
        monkeypatch.setenv("STORE_MAX_RETRIES", "0")

        with pytest.raises(ConfigurationError, match="store_max_retries"):
            load_settings(load_dotenv_file=False)


class TestSwipeSettings:
    """Tests for SwipeSettings validation."""

    def test_negative_low_water_mark_rejected(self) -> None:
        """Test that a negative low-water mark is rejected."""
        with pytest.raises(ConfigurationError):
            SwipeSettings(prefetch_low_water_mark=-1)

    def test_zero_required_votes_rejected(self) -> None:
        """Test that the default quorum must be at least one."""
        with pytest.raises(ConfigurationError):
            SwipeSettings(default_required_votes=0)
