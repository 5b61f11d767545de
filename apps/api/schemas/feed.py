from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel

from cineclub.services.reviews import CommentEntry

from .films import FilmSummary


class FeedUser(BaseModel):
    id: int
    username: str
    avatar_url: str | None = None
    bio: str | None = None


class FeedReview(BaseModel):
    rating: int | None = None
    comment: str


class FeedFilm(BaseModel):
    id: int
    title: str
    poster_url: str | None = None
    release_date: date | None = None


class FeedItem(BaseModel):
    id: int
    type: str = "review"
    created_at: datetime
    user: FeedUser
    review: FeedReview
    film: FeedFilm

    @classmethod
    def from_comment(cls, entry: CommentEntry) -> "FeedItem":
        return cls(
            id=entry.id,
            created_at=entry.created_at,
            user=FeedUser(
                id=entry.user_id,
                username=entry.username,
                avatar_url=entry.user_avatar_url,
                bio=entry.user_bio,
            ),
            review=FeedReview(rating=entry.rating, comment=entry.comment),
            film=FeedFilm(
                id=entry.film_id,
                title=entry.film_title,
                poster_url=entry.film_poster_url,
                release_date=entry.film_release_date,
            ),
        )


class FeedResponse(BaseModel):
    feed: list[FeedItem]
    top_rated_films: list[FilmSummary]
    recent_films: list[FilmSummary]
    total: int
