from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cineclub.config import Settings
from cineclub.db import models
from cineclub.services import feeds as feed_service
from cineclub.services.tmdb import TMDBClient

from ..auth import require_api_user
from ..dependencies import get_db_session, get_settings, get_tmdb_client
from ..schemas import FeedItem, FeedResponse, FilmSummary


router = APIRouter(prefix="/feed", tags=["feed"])


@router.get("/global", response_model=FeedResponse, summary="Public feed")
def read_global_feed(
    session: Session = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
    client: Optional[TMDBClient] = Depends(get_tmdb_client),
) -> FeedResponse:
    payload = feed_service.global_feed(session, client, settings)
    return _to_response(payload)


@router.get("/", response_model=FeedResponse, summary="Friends feed")
def read_friend_feed(
    session: Session = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
    client: Optional[TMDBClient] = Depends(get_tmdb_client),
    user: models.User = Depends(require_api_user),
) -> FeedResponse:
    payload = feed_service.friend_feed(session, client, settings, user.id)
    return _to_response(payload)


def _to_response(payload: feed_service.FeedPayload) -> FeedResponse:
    return FeedResponse(
        feed=[FeedItem.from_comment(entry) for entry in payload.feed],
        top_rated_films=[FilmSummary.model_validate(film) for film in payload.top_rated_films],
        recent_films=[FilmSummary.model_validate(film) for film in payload.recent_films],
        total=payload.total,
    )
