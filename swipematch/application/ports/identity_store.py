"""Local device identity port.

Identities are per-device pseudo-identities, not accounts. Clearing the
local store yields a new identity; that is an accepted trust boundary.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Protocol


class IdentityStoreProtocol(Protocol):
    """Persists the device's user id between runs."""

    @abstractmethod
    def get_or_create_user_id(self) -> str:
        """Return the stored user id, creating one on first use."""
        ...
