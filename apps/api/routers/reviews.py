from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from cineclub.db import models
from cineclub.services import reviews as review_service
from cineclub.services.catalog import FilmNotFoundError
from cineclub.services.tmdb import ProviderError, TMDBClient

from ..auth import require_api_user
from ..dependencies import get_db_session, get_tmdb_client
from ..schemas import FeedItem, ReviewCreateRequest, ReviewFilm, ReviewItem


router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.post("/", response_model=ReviewItem, summary="Create or update a review")
def save_review(
    payload: ReviewCreateRequest,
    session: Session = Depends(get_db_session),
    client: Optional[TMDBClient] = Depends(get_tmdb_client),
    user: models.User = Depends(require_api_user),
) -> ReviewItem:
    try:
        review = review_service.upsert_review(
            session,
            client,
            user,
            film_id=payload.film_id,
            tmdb_id=payload.tmdb_id,
            rating=payload.rating,
            comment=payload.comment,
        )
    except FilmNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ProviderError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Film metadata provider unavailable, retry later.",
        ) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _review_item(review)


@router.get("/recent", response_model=List[FeedItem], summary="Latest commented reviews")
def list_recent_reviews(
    limit: int = Query(20, ge=1, le=50),
    session: Session = Depends(get_db_session),
) -> list[FeedItem]:
    return [FeedItem.from_comment(entry) for entry in review_service.recent_comments(session, limit=limit)]


@router.get("/me", response_model=List[ReviewItem], summary="Current user's reviews")
def list_my_reviews(
    session: Session = Depends(get_db_session),
    user: models.User = Depends(require_api_user),
) -> list[ReviewItem]:
    return [_review_item(review) for review in review_service.list_user_reviews(session, user.id)]


def _review_item(review: models.Review) -> ReviewItem:
    return ReviewItem(
        id=review.id,
        rating=review.rating,
        comment=review.comment,
        created_at=review.created_at,
        updated_at=review.updated_at,
        film=ReviewFilm(
            id=review.film.id,
            tmdb_id=review.film.tmdb_id,
            title=review.film.title,
            poster_url=review.film.poster_url,
            release_date=review.film.release_date,
        ),
    )
