"""Catalog reference data for the Dutch market.

TMDB provider ids, genre ids and Kijkwijzer certifications offered when a
host builds a filter set.
"""

from swipematch.domain.models.filters import Certification

STREAMING_PROVIDERS: dict[str, int] = {
    "Netflix": 8,
    "Videoland": 71,
    "Prime Video": 119,
    "Disney+": 337,
    "HBO Max": 380,
}

GENRES: dict[str, int] = {
    "Actie": 28,
    "Avontuur": 12,
    "Animatie": 16,
    "Komedie": 35,
    "Misdaad": 80,
    "Documentaire": 99,
    "Drama": 18,
    "Familie": 10751,
    "Fantasy": 14,
    "Geschiedenis": 36,
    "Horror": 27,
    "Muziek": 10402,
    "Mysterie": 9648,
    "Romantiek": 10749,
    "Sciencefiction": 878,
    "Thriller": 53,
    "Oorlog": 10752,
    "Western": 37,
}

GENRE_NAMES: dict[int, str] = {genre_id: name for name, genre_id in GENRES.items()}

CERTIFICATION_LABELS: dict[Certification, str] = {
    Certification.ALL_AGES: "Alle leeftijden",
    Certification.AGE_6: "6 jaar",
    Certification.AGE_9: "9 jaar",
    Certification.AGE_12: "12 jaar",
    Certification.AGE_16: "16 jaar",
}

CERTIFICATION_COUNTRY = "NL"
