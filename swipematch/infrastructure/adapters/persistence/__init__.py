"""Session store adapters (SQLAlchemy and Supabase)."""

from swipematch.infrastructure.adapters.persistence.sql_schema import (
    create_schema,
    drop_schema,
    metadata,
)
from swipematch.infrastructure.adapters.persistence.sql_session_store import (
    SqlSessionStore,
)
from swipematch.infrastructure.adapters.persistence.supabase_session_store import (
    SupabaseSessionStore,
)

__all__: list[str] = [
    "SqlSessionStore",
    "SupabaseSessionStore",
    "create_schema",
    "drop_schema",
    "metadata",
]
