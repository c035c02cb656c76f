"""Configuration for SwipeMatch."""

from swipematch.config.catalog_constants import (
    CERTIFICATION_COUNTRY,
    CERTIFICATION_LABELS,
    GENRE_NAMES,
    GENRES,
    STREAMING_PROVIDERS,
)
from swipematch.config.settings import (
    CatalogSettings,
    DatabaseSettings,
    Settings,
    SupabaseSettings,
    SwipeSettings,
    load_settings,
)

__all__: list[str] = [
    "CERTIFICATION_COUNTRY",
    "CERTIFICATION_LABELS",
    "CatalogSettings",
    "DatabaseSettings",
    "GENRES",
    "GENRE_NAMES",
    "STREAMING_PROVIDERS",
    "Settings",
    "SupabaseSettings",
    "SwipeSettings",
    "load_settings",
]
