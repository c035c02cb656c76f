"""Device pseudo-identity stores.

The user id is a UUID4 generated on first use and kept in a small file,
so the same device keeps its identity across runs. Deleting the file
yields a new identity.
"""

from __future__ import annotations

import os
from pathlib import Path
from uuid import UUID, uuid4

import structlog

from swipematch.application.ports.identity_store import IdentityStoreProtocol

logger = structlog.get_logger(__name__)

DEFAULT_IDENTITY_PATH = Path.home() / ".swipematch" / "user_id"


def _is_valid(value: str) -> bool:
    try:
        UUID(value)
    except ValueError:
        return False
    return True


class FileIdentityStore(IdentityStoreProtocol):
    """Keeps the user id in a local file."""

    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path) if path is not None else DEFAULT_IDENTITY_PATH
        self._user_id: str | None = None

    @property
    def path(self) -> Path:
        return self._path

    def get_or_create_user_id(self) -> str:
        if self._user_id is not None:
            return self._user_id

        if self._path.exists():
            stored = self._path.read_text(encoding="utf-8").strip()
            if _is_valid(stored):
                self._user_id = stored
                return stored
            logger.warning("identity_file_invalid", path=str(self._path))

        user_id = str(uuid4())
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(user_id, encoding="utf-8")
        os.replace(tmp_path, self._path)
        logger.info("identity_created", path=str(self._path))
        self._user_id = user_id
        return user_id


class InMemoryIdentityStore(IdentityStoreProtocol):
    """Identity that lives as long as the object. For tests."""

    def __init__(self, user_id: str | None = None) -> None:
        self._user_id = user_id

    def get_or_create_user_id(self) -> str:
        if self._user_id is None:
            self._user_id = str(uuid4())
        return self._user_id
