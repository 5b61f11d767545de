from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db import models
from . import catalog
from .catalog import FilmNotFoundError
from .friends import friendship_clause
from .tmdb import TMDBClient


@dataclass
class CommentEntry:
    id: int
    rating: Optional[int]
    comment: str
    created_at: datetime
    user_id: int
    username: str
    user_avatar_url: Optional[str]
    user_bio: Optional[str]
    film_id: int
    film_title: str
    film_poster_url: Optional[str]
    film_release_date: Optional[date]


def resolve_film(
    session: Session,
    client: Optional[TMDBClient],
    *,
    film_id: Optional[int] = None,
    tmdb_id: Optional[int] = None,
) -> models.Film:
    """
    Find the film a review targets, promoting it from TMDB when only an
    external id is known.
    """
    if film_id is None and tmdb_id is None:
        raise ValueError("A film id or a TMDB id is required.")
    film = catalog.get_film(session, film_id) if film_id is not None else None
    if film is None and film_id is not None and tmdb_id is None:
        # clients sometimes send the TMDB id in place of the local one
        film = catalog.get_film_by_tmdb_id(session, film_id)
        tmdb_id = film_id if film is None else None
    if film is None and tmdb_id is not None:
        if client is None:
            film = catalog.get_film_by_tmdb_id(session, tmdb_id)
        else:
            film = catalog.promote_from_provider(session, client, tmdb_id)
    if film is None:
        raise FilmNotFoundError(
            f"Film not found (film_id={film_id}, tmdb_id={tmdb_id})"
        )
    return film


def upsert_review(
    session: Session,
    client: Optional[TMDBClient],
    user: models.User,
    *,
    film_id: Optional[int] = None,
    tmdb_id: Optional[int] = None,
    rating: Optional[int] = None,
    comment: Optional[str] = None,
) -> models.Review:
    if rating is not None and not catalog.MIN_RATING <= rating <= catalog.MAX_RATING:
        raise ValueError("Rating must be between 1 and 5.")
    film = resolve_film(session, client, film_id=film_id, tmdb_id=tmdb_id)
    stmt = select(models.Review).where(
        models.Review.user_id == user.id,
        models.Review.film_id == film.id,
    )
    review = session.scalars(stmt).one_or_none()
    comment = comment.strip() if comment else None
    if review:
        review.rating = rating
        review.comment = comment
        review.updated_at = datetime.utcnow()
    else:
        review = models.Review(user_id=user.id, film_id=film.id, rating=rating, comment=comment)
        session.add(review)
    session.flush()
    return review


def list_user_reviews(session: Session, user_id: int) -> List[models.Review]:
    stmt = (
        select(models.Review)
        .join(models.Film)
        .where(models.Review.user_id == user_id)
        .order_by(models.Review.created_at.desc(), models.Review.id.desc())
    )
    return list(session.scalars(stmt))


def recent_comments(
    session: Session,
    *,
    limit: int = 50,
    friends_of: Optional[int] = None,
) -> List[CommentEntry]:
    """
    Most recent reviews carrying a non-empty comment.

    ``friends_of`` restricts authors to the friends of that user and drops
    the user's own reviews.
    """
    stmt = (
        select(models.Review, models.User, models.Film)
        .join(models.User, models.Review.user_id == models.User.id)
        .join(models.Film, models.Review.film_id == models.Film.id)
        .where(models.Review.comment.is_not(None), models.Review.comment != "")
    )
    if friends_of is not None:
        stmt = stmt.where(
            models.Review.user_id != friends_of,
            friendship_clause(friends_of, models.Review.user_id),
        )
    stmt = stmt.order_by(models.Review.created_at.desc(), models.Review.id.desc()).limit(limit)
    return [
        CommentEntry(
            id=review.id,
            rating=review.rating,
            comment=review.comment or "",
            created_at=review.created_at,
            user_id=user.id,
            username=user.username,
            user_avatar_url=user.avatar_url,
            user_bio=user.bio,
            film_id=film.id,
            film_title=film.title,
            film_poster_url=film.poster_url,
            film_release_date=film.release_date,
        )
        for review, user, film in session.execute(stmt).all()
    ]
