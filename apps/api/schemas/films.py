from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field


class FilmSummary(BaseModel):
    id: int | None = None
    tmdb_id: int | None = None
    title: str
    original_title: str | None = None
    synopsis: str | None = None
    release_date: date | None = None
    poster_url: str | None = None
    average_rating: float = 0.0
    vote_count: int = 0

    model_config = {
        "from_attributes": True,
    }


class FilmList(BaseModel):
    films: list[FilmSummary]


class ReviewAuthor(BaseModel):
    id: int
    username: str
    avatar_url: str | None = None


class FilmReview(BaseModel):
    id: int
    rating: int | None = None
    comment: str | None = None
    created_at: datetime | None = None
    user: ReviewAuthor


class FilmDetail(FilmSummary):
    runtime_minutes: int | None = None
    director: str | None = None
    genres: list[str] = []
    cast: list[str] = []
    reviews: list[FilmReview] = []


class FilmCreateRequest(BaseModel):
    title: str = Field(..., description="Display title; must not be blank.")
    original_title: str | None = None
    synopsis: str | None = None
    release_date: date | None = None
    runtime_minutes: int | None = None
    poster_url: str | None = None
    director: str | None = None
    genres: list[str] = []
