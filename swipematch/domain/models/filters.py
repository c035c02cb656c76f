"""Session filter models.

A session's filter set decides which titles the catalog offers:

- ``provider_ids``: streaming services, OR semantics (available on any).
- ``genre_ids``: genres, AND semantics (tagged with all).
- ``max_certification``: highest Kijkwijzer age rating allowed.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from swipematch.domain.errors.session import EmptyFilterSelectionError


class Certification(str, Enum):
    """Dutch Kijkwijzer age ratings, in ascending order of strictness."""

    ALL_AGES = "AL"
    AGE_6 = "6"
    AGE_9 = "9"
    AGE_12 = "12"
    AGE_16 = "16"

    @property
    def rank(self) -> int:
        """Ordinal position, ``ALL_AGES`` is 0."""
        return _CERTIFICATION_ORDER.index(self)

    def allows(self, other: Certification) -> bool:
        """Return True if a title rated ``other`` passes this maximum."""
        return other.rank <= self.rank

    @classmethod
    def parse(cls, value: str | Certification | None) -> Certification:
        """Parse a stored rating, defaulting to ``AGE_12`` when absent."""
        if value is None or value == "":
            return cls.AGE_12
        if isinstance(value, Certification):
            return value
        return cls(str(value))


_CERTIFICATION_ORDER: tuple[Certification, ...] = (
    Certification.ALL_AGES,
    Certification.AGE_6,
    Certification.AGE_9,
    Certification.AGE_12,
    Certification.AGE_16,
)


def _frozen(values: Iterable[str | int]) -> frozenset[str]:
    return frozenset(str(value) for value in values)


@dataclass(frozen=True)
class SessionFilters:
    """Catalog filters chosen by the host.

    Attributes:
        provider_ids: TMDB watch provider ids (OR).
        genre_ids: TMDB genre ids (AND).
        max_certification: Highest allowed age rating.
    """

    provider_ids: frozenset[str] = field(default_factory=frozenset)
    genre_ids: frozenset[str] = field(default_factory=frozenset)
    max_certification: Certification = Certification.AGE_12

    @classmethod
    def create(
        cls,
        provider_ids: Iterable[str | int],
        genre_ids: Iterable[str | int],
        max_certification: str | Certification | None = None,
    ) -> SessionFilters:
        """Build filters from loose input (lists of ints or strings)."""
        return cls(
            provider_ids=_frozen(provider_ids),
            genre_ids=_frozen(genre_ids),
            max_certification=Certification.parse(max_certification),
        )

    def validate(self) -> None:
        """Reject a selection without providers or without genres.

        Raises:
            EmptyFilterSelectionError: A required set is empty.
        """
        if not self.provider_ids:
            raise EmptyFilterSelectionError("provider_ids")
        if not self.genre_ids:
            raise EmptyFilterSelectionError("genre_ids")

    def cache_key(self) -> tuple[tuple[str, ...], tuple[str, ...], str]:
        """Order-independent key identifying this exact filter set."""
        return (
            tuple(sorted(self.provider_ids)),
            tuple(sorted(self.genre_ids)),
            self.max_certification.value,
        )

    def to_record(self) -> dict[str, object]:
        """Column values as stored by the session store."""
        return {
            "streaming_providers": sorted(self.provider_ids),
            "genres": sorted(self.genre_ids),
            "max_certification": self.max_certification.value,
        }

    @classmethod
    def from_record(cls, row: dict[str, object]) -> SessionFilters:
        """Inverse of ``to_record``; tolerates missing columns."""
        providers = row.get("streaming_providers") or []
        genres = row.get("genres") or []
        return cls.create(
            providers,  # type: ignore[arg-type]
            genres,  # type: ignore[arg-type]
            row.get("max_certification"),  # type: ignore[arg-type]
        )
