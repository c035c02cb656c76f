"""Runtime configuration loaded from environment variables.

A ``.env`` file in the working directory (or its parent) is loaded first
when present.

Required (at least one backend):
- DATABASE_URL: SQL store connection string (PostgreSQL or SQLite), or
- SUPABASE_URL + SUPABASE_ANON_KEY: hosted store with realtime feed
- TMDB_API_KEY: movie catalog API key (v3 auth)

Optional:
- TMDB_BASE_URL (default: https://api.themoviedb.org/3)
- TMDB_IMAGE_BASE (default: https://image.tmdb.org/t/p)
- CATALOG_LANGUAGE (default: nl-NL)
- CATALOG_REGION (default: NL)
- CATALOG_MIN_VOTE_COUNT (default: 50)
- CATALOG_SORT_BY (default: popularity.desc)
- CATALOG_TIMEOUT_SECONDS (default: 10.0)
- PREFETCH_LOW_WATER_MARK (default: 5)
- DEFAULT_REQUIRED_VOTES (default: 2)
- STORE_MAX_RETRIES (default: 3)
- STORE_RETRY_BASE_DELAY (default: 0.2)
- SQLALCHEMY_ECHO (default: false)
- APP_ENV (default: production)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from swipematch.domain.exceptions import ConfigurationError

# Values shipped in example configs that must never reach a real service.
_PLACEHOLDERS = frozenset(
    {
        "YOUR_SUPABASE_URL_HERE",
        "YOUR_SUPABASE_ANON_KEY_HERE",
        "YOUR_TMDB_API_KEY_HERE",
    }
)


def load_env_file() -> None:
    """Load ``.env`` from the current directory or its parent, if any."""
    env_path = Path(".env")
    if not env_path.exists():
        env_path = Path("../.env")
    if env_path.exists():
        load_dotenv(env_path)


def _get_str_env(key: str) -> str | None:
    value = os.environ.get(key, "").strip()
    if not value or value in _PLACEHOLDERS:
        return None
    return value


def _get_int_env(key: str, default: int) -> int:
    """Get integer environment variable with default.

    Args:
        key: Environment variable name.
        default: Default value if not set or invalid.
    """
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float_env(key: str, default: float) -> float:
    """Get float environment variable with default.

    Args:
        key: Environment variable name.
        default: Default value if not set or invalid.
    """
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_bool_env(key: str, default: bool = False) -> bool:
    value = os.environ.get(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class SupabaseSettings:
    """Hosted store connection."""

    url: str
    anon_key: str


@dataclass(frozen=True)
class DatabaseSettings:
    """SQL store connection."""

    url: str
    echo: bool = False


@dataclass(frozen=True)
class CatalogSettings:
    """Movie catalog (TMDB) settings.

    Attributes:
        api_key: TMDB v3 API key.
        base_url: API root.
        image_base: Image CDN root; a size segment is appended.
        language: Response language.
        region: Release and watch-provider region.
        min_vote_count: Skip titles with fewer votes.
        sort_by: Discover ordering.
        timeout_seconds: Per-request timeout.
    """

    api_key: str
    base_url: str = "https://api.themoviedb.org/3"
    image_base: str = "https://image.tmdb.org/t/p"
    language: str = "nl-NL"
    region: str = "NL"
    min_vote_count: int = 50
    sort_by: str = "popularity.desc"
    timeout_seconds: float = 10.0


@dataclass(frozen=True)
class SwipeSettings:
    """Swiping and consensus behaviour.

    Attributes:
        prefetch_low_water_mark: Load the next page when this many or fewer
            candidates remain ahead of the cursor.
        default_required_votes: Quorum offered when the host picks none.
        store_max_retries: Attempts per store call before surfacing failure.
        store_retry_base_delay: First backoff delay in seconds, doubled per
            attempt.
    """

    prefetch_low_water_mark: int = 5
    default_required_votes: int = 2
    store_max_retries: int = 3
    store_retry_base_delay: float = 0.2

    def __post_init__(self) -> None:
        if self.prefetch_low_water_mark < 0:
            raise ConfigurationError("prefetch_low_water_mark must be >= 0")
        if self.default_required_votes < 1:
            raise ConfigurationError("default_required_votes must be >= 1")
        if self.store_max_retries < 1:
            raise ConfigurationError("store_max_retries must be >= 1")


@dataclass(frozen=True)
class Settings:
    """Application configuration."""

    catalog: CatalogSettings
    swipe: SwipeSettings = field(default_factory=SwipeSettings)
    database: DatabaseSettings | None = None
    supabase: SupabaseSettings | None = None
    environment: str = "production"


def load_settings(load_dotenv_file: bool = True) -> Settings:
    """Load configuration from environment variables.

    Args:
        load_dotenv_file: Read ``.env`` before looking at the environment.

    Returns:
        Settings with every section populated.

    Raises:
        ConfigurationError: Required variables are missing. Nothing should
            proceed when this is raised.
    """
    if load_dotenv_file:
        load_env_file()

    tmdb_key = _get_str_env("TMDB_API_KEY")
    database_url = _get_str_env("DATABASE_URL")
    supabase_url = _get_str_env("SUPABASE_URL")
    supabase_key = _get_str_env("SUPABASE_ANON_KEY")

    missing = []
    if not tmdb_key:
        missing.append("TMDB_API_KEY")
    if not database_url:
        if not supabase_url:
            missing.append("SUPABASE_URL (or DATABASE_URL)")
        if not supabase_key:
            missing.append("SUPABASE_ANON_KEY (or DATABASE_URL)")

    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}"
        )
    assert tmdb_key is not None

    catalog = CatalogSettings(
        api_key=tmdb_key,
        base_url=os.environ.get("TMDB_BASE_URL", CatalogSettings.base_url),
        image_base=os.environ.get("TMDB_IMAGE_BASE", CatalogSettings.image_base),
        language=os.environ.get("CATALOG_LANGUAGE", CatalogSettings.language),
        region=os.environ.get("CATALOG_REGION", CatalogSettings.region),
        min_vote_count=_get_int_env(
            "CATALOG_MIN_VOTE_COUNT", CatalogSettings.min_vote_count
        ),
        sort_by=os.environ.get("CATALOG_SORT_BY", CatalogSettings.sort_by),
        timeout_seconds=_get_float_env(
            "CATALOG_TIMEOUT_SECONDS", CatalogSettings.timeout_seconds
        ),
    )
    swipe = SwipeSettings(
        prefetch_low_water_mark=_get_int_env("PREFETCH_LOW_WATER_MARK", 5),
        default_required_votes=_get_int_env("DEFAULT_REQUIRED_VOTES", 2),
        store_max_retries=_get_int_env("STORE_MAX_RETRIES", 3),
        store_retry_base_delay=_get_float_env("STORE_RETRY_BASE_DELAY", 0.2),
    )

    database = (
        DatabaseSettings(url=database_url, echo=_get_bool_env("SQLALCHEMY_ECHO"))
        if database_url
        else None
    )
    supabase = (
        SupabaseSettings(url=supabase_url, anon_key=supabase_key)
        if supabase_url and supabase_key
        else None
    )

    return Settings(
        catalog=catalog,
        swipe=swipe,
        database=database,
        supabase=supabase,
        environment=os.environ.get("APP_ENV", "production"),
    )
