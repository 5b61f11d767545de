from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field


class ReviewCreateRequest(BaseModel):
    film_id: int | None = None
    tmdb_id: int | None = None
    rating: int | None = Field(default=None, ge=1, le=5)
    comment: str | None = None


class ReviewFilm(BaseModel):
    id: int
    tmdb_id: int | None = None
    title: str
    poster_url: str | None = None
    release_date: date | None = None


class ReviewItem(BaseModel):
    id: int
    rating: int | None = None
    comment: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
    film: ReviewFilm
