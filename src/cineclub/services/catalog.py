from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional
import logging

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from ..db import models
from .merge import MergedFilm
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


class FilmNotFoundError(LookupError):
    pass


class DuplicateFilmError(ValueError):
    def __init__(self, film_id: int):
        super().__init__(f"A film with this title already exists (id={film_id}).")
        self.film_id = film_id


@dataclass
class FilmDraft:
    title: str
    original_title: Optional[str] = None
    synopsis: Optional[str] = None
    release_date: Optional[date] = None
    runtime_minutes: Optional[int] = None
    poster_url: Optional[str] = None
    director: Optional[str] = None
    genres: List[str] = field(default_factory=list)


def _rating_join():
    return and_(
        models.Review.film_id == models.Film.id,
        models.Review.rating.is_not(None),
        models.Review.rating >= MIN_RATING,
        models.Review.rating <= MAX_RATING,
    )


def _aggregated_films():
    average = func.round(func.coalesce(func.avg(models.Review.rating), 0), 1).label("average_rating")
    votes = func.count(models.Review.id).label("vote_count")
    stmt = (
        select(models.Film, average, votes)
        .outerjoin(models.Review, _rating_join())
        .group_by(models.Film.id)
    )
    return stmt, average, votes


def _to_merged(film: models.Film, average_rating, vote_count) -> MergedFilm:
    return MergedFilm(
        id=film.id,
        tmdb_id=film.tmdb_id,
        title=film.title,
        original_title=film.original_title,
        synopsis=film.synopsis,
        release_date=film.release_date,
        poster_url=film.poster_url,
        average_rating=round(float(average_rating or 0), 1),
        vote_count=int(vote_count or 0),
    )


def top_rated_local(session: Session, limit: int = 5, min_votes: int = 2) -> List[MergedFilm]:
    """Best rated local films having at least ``min_votes`` ratings in [1, 5]."""
    stmt, average, votes = _aggregated_films()
    stmt = (
        stmt.having(func.count(models.Review.id) >= min_votes)
        .order_by(
            average.desc(),
            votes.desc(),
            models.Film.release_date.desc().nulls_last(),
        )
        .limit(limit)
    )
    return [_to_merged(*row) for row in session.execute(stmt).all()]


def recent_local(session: Session, limit: int = 5) -> List[MergedFilm]:
    stmt, _, _ = _aggregated_films()
    stmt = (
        stmt.where(models.Film.release_date.is_not(None))
        .order_by(models.Film.release_date.desc(), models.Film.id.desc())
        .limit(limit)
    )
    return [_to_merged(*row) for row in session.execute(stmt).all()]


def search_local(session: Session, query: str, limit: int = 20) -> List[MergedFilm]:
    """Case-insensitive substring match on title or original title."""
    term = query.strip().lower()
    if not term:
        return []
    pattern = f"%{_escape_like(term)}%"
    stmt, _, _ = _aggregated_films()
    stmt = (
        stmt.where(
            or_(
                func.lower(models.Film.title).like(pattern, escape="\\"),
                func.lower(models.Film.original_title).like(pattern, escape="\\"),
            )
        )
        .order_by(models.Film.release_date.desc().nulls_last(), models.Film.id)
        .limit(limit)
    )
    return [_to_merged(*row) for row in session.execute(stmt).all()]


def latest_local(session: Session, limit: int = 20) -> List[MergedFilm]:
    """Locally stored films, newest release first (undated films last)."""
    stmt, _, _ = _aggregated_films()
    stmt = stmt.order_by(models.Film.release_date.desc().nulls_last(), models.Film.id.desc()).limit(limit)
    return [_to_merged(*row) for row in session.execute(stmt).all()]


def rating_summary(session: Session, film_id: int) -> tuple[float, int]:
    stmt, _, _ = _aggregated_films()
    row = session.execute(stmt.where(models.Film.id == film_id)).one_or_none()
    if row is None:
        raise FilmNotFoundError(f"Film {film_id} not found")
    return round(float(row.average_rating or 0), 1), int(row.vote_count or 0)


def get_film(session: Session, film_id: int) -> Optional[models.Film]:
    return session.get(models.Film, film_id)


def get_film_by_tmdb_id(session: Session, tmdb_id: int) -> Optional[models.Film]:
    stmt = select(models.Film).where(models.Film.tmdb_id == tmdb_id)
    return session.scalars(stmt).one_or_none()


def promote_from_provider(
    session: Session, client: TMDBClient, tmdb_id: int
) -> Optional[models.Film]:
    """
    Return the local film for ``tmdb_id``, persisting it from provider data
    on first use.

    Returns None when the provider does not know the id. Provider failures
    propagate to the caller.
    """
    film = get_film_by_tmdb_id(session, tmdb_id)
    if film:
        return film
    details = client.fetch_movie(tmdb_id)
    if details is None:
        logger.info("TMDB has no film %s; nothing to promote", tmdb_id)
        return None
    film = models.Film(
        tmdb_id=details.tmdb_id,
        title=details.title,
        original_title=details.original_title,
        synopsis=details.synopsis,
        release_date=details.release_date,
        runtime_minutes=details.runtime_minutes,
        poster_url=details.poster_url,
        director=details.director,
        genres=list(details.genres),
        cast=list(details.cast),
    )
    session.add(film)
    session.flush()
    logger.info("Promoted TMDB film %s to local film %s", tmdb_id, film.id)
    return film


def create_manual_film(session: Session, draft: FilmDraft) -> models.Film:
    title = (draft.title or "").strip()
    if not title:
        raise ValueError("Film title is required.")
    stmt = select(models.Film.id).where(
        func.lower(models.Film.title) == title.lower(),
        models.Film.tmdb_id.is_(None),
    )
    existing_id = session.scalars(stmt).first()
    if existing_id is not None:
        raise DuplicateFilmError(existing_id)
    film = models.Film(
        title=title,
        original_title=_clean(draft.original_title),
        synopsis=_clean(draft.synopsis),
        release_date=draft.release_date,
        runtime_minutes=draft.runtime_minutes,
        poster_url=_clean(draft.poster_url),
        director=_clean(draft.director),
        genres=list(draft.genres),
    )
    session.add(film)
    session.flush()
    return film


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
