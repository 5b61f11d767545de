"""
Combine local catalog rows with provider results into one ranked list.

Local films always win over provider films sharing the same TMDB id, so a
film never appears twice in a merged list. Sorting is stable: entries that
compare equal keep their local-then-provider order.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence, Union

from .tmdb import ProviderFilm

FEED_CAP = 5
SEARCH_CAP = 50


@dataclass
class MergedFilm:
    id: Optional[int]
    tmdb_id: Optional[int]
    title: str
    original_title: Optional[str] = None
    synopsis: Optional[str] = None
    release_date: Optional[date] = None
    poster_url: Optional[str] = None
    average_rating: float = 0.0
    vote_count: int = 0

    @property
    def is_local(self) -> bool:
        return self.id is not None

    @classmethod
    def from_provider(cls, film: ProviderFilm) -> "MergedFilm":
        return cls(
            id=None,
            tmdb_id=film.tmdb_id,
            title=film.title,
            original_title=film.original_title,
            synopsis=film.synopsis,
            release_date=film.release_date,
            poster_url=film.poster_url,
            average_rating=film.average_rating or 0.0,
            vote_count=film.vote_count or 0,
        )


def parse_release_date(value: Union[date, datetime, str, None]) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def merge_top_rated(
    local: Sequence[MergedFilm],
    external: Iterable[ProviderFilm],
    cap: int = FEED_CAP,
) -> List[MergedFilm]:
    combined = _combine(local, external, require_release_date=False)
    combined.sort(key=lambda film: (-film.average_rating, -film.vote_count))
    return combined[:cap]


def merge_recent(
    local: Sequence[MergedFilm],
    external: Iterable[ProviderFilm],
    cap: int = FEED_CAP,
) -> List[MergedFilm]:
    combined = _combine(local, external, require_release_date=True)
    combined = [film for film in combined if parse_release_date(film.release_date)]
    combined.sort(key=lambda film: -parse_release_date(film.release_date).toordinal())  # type: ignore[union-attr]
    return combined[:cap]


def merge_search(
    local: Sequence[MergedFilm],
    external: Iterable[ProviderFilm],
    cap: int = SEARCH_CAP,
) -> List[MergedFilm]:
    """Local matches first, then unseen provider matches in provider order."""
    return _combine(local, external, require_release_date=False)[:cap]


def _combine(
    local: Sequence[MergedFilm],
    external: Iterable[ProviderFilm],
    *,
    require_release_date: bool,
) -> List[MergedFilm]:
    seen = {film.tmdb_id for film in local if film.tmdb_id is not None}
    combined = [_normalize_local(film) for film in local]
    for film in external:
        if film.tmdb_id in seen:
            continue
        if require_release_date and not film.release_date:
            continue
        # provider pages can repeat an id; keep the first one
        seen.add(film.tmdb_id)
        combined.append(MergedFilm.from_provider(film))
    return combined


def _normalize_local(film: MergedFilm) -> MergedFilm:
    return replace(
        film,
        average_rating=float(film.average_rating or 0.0),
        vote_count=int(film.vote_count or 0),
        release_date=parse_release_date(film.release_date),
    )
