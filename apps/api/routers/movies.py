from __future__ import annotations

from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from cineclub.config import Settings
from cineclub.db import models
from cineclub.services import catalog
from cineclub.services import feeds as feed_service
from cineclub.services.tmdb import ProviderError, TMDBClient

from ..auth import require_api_user
from ..dependencies import get_db_session, get_settings, get_tmdb_client
from ..schemas import (
    FilmCreateRequest,
    FilmDetail,
    FilmList,
    FilmReview,
    FilmSummary,
    ReviewAuthor,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/movies", tags=["movies"])


@router.get("/search", response_model=FilmList, summary="Search films by title")
def search_movies(
    q: str = Query("", description="Title fragment"),
    session: Session = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
    client: Optional[TMDBClient] = Depends(get_tmdb_client),
) -> FilmList:
    films = feed_service.search_films(session, client, settings, q)
    return FilmList(films=[FilmSummary.model_validate(film) for film in films])


@router.get("/latest", response_model=FilmList, summary="Latest local films")
def latest_movies(
    limit: int = Query(20, ge=1, le=100),
    session: Session = Depends(get_db_session),
) -> FilmList:
    films = catalog.latest_local(session, limit=limit)
    return FilmList(films=[FilmSummary.model_validate(film) for film in films])


@router.get("/{film_ref}", response_model=FilmDetail, summary="Film details")
def get_movie(
    film_ref: int,
    session: Session = Depends(get_db_session),
    client: Optional[TMDBClient] = Depends(get_tmdb_client),
) -> FilmDetail:
    """Look a film up by local id, then by TMDB id, promoting it from TMDB if needed."""
    film = catalog.get_film(session, film_ref) or catalog.get_film_by_tmdb_id(session, film_ref)
    if film is None and client is not None:
        try:
            film = catalog.promote_from_provider(session, client, film_ref)
        except ProviderError as exc:
            logger.warning("Could not promote TMDB film %s: %s", film_ref, exc)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Film metadata provider unavailable, retry later.",
            ) from exc
    if film is None:
        raise HTTPException(status_code=404, detail="Film not found")
    return _film_detail(session, film)


@router.post(
    "/",
    response_model=FilmDetail,
    status_code=status.HTTP_201_CREATED,
    summary="Create film manually",
)
def create_movie(
    payload: FilmCreateRequest,
    session: Session = Depends(get_db_session),
    user: models.User = Depends(require_api_user),
) -> FilmDetail:
    draft = catalog.FilmDraft(**payload.model_dump())
    try:
        film = catalog.create_manual_film(session, draft)
    except catalog.DuplicateFilmError as exc:
        raise HTTPException(
            status_code=409,
            detail={"message": str(exc), "film_id": exc.film_id},
        ) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _film_detail(session, film)


def _film_detail(session: Session, film: models.Film) -> FilmDetail:
    average_rating, vote_count = catalog.rating_summary(session, film.id)
    stmt = (
        select(models.Review)
        .options(joinedload(models.Review.user))
        .where(models.Review.film_id == film.id)
        .order_by(models.Review.created_at.desc(), models.Review.id.desc())
    )
    reviews = [
        FilmReview(
            id=review.id,
            rating=review.rating,
            comment=review.comment,
            created_at=review.created_at,
            user=ReviewAuthor(
                id=review.user.id,
                username=review.user.username,
                avatar_url=review.user.avatar_url,
            ),
        )
        for review in session.scalars(stmt)
    ]
    return FilmDetail(
        id=film.id,
        tmdb_id=film.tmdb_id,
        title=film.title,
        original_title=film.original_title,
        synopsis=film.synopsis,
        release_date=film.release_date,
        poster_url=film.poster_url,
        average_rating=average_rating,
        vote_count=vote_count,
        runtime_minutes=film.runtime_minutes,
        director=film.director,
        genres=film.genres or [],
        cast=film.cast or [],
        reviews=reviews,
    )
