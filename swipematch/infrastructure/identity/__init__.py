"""Device identity stores."""

from swipematch.infrastructure.identity.file_identity_store import (
    FileIdentityStore,
    InMemoryIdentityStore,
)

__all__: list[str] = ["FileIdentityStore", "InMemoryIdentityStore"]
