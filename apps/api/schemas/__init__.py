"""Pydantic schemas for API responses."""

from .feed import FeedFilm, FeedItem, FeedResponse, FeedReview, FeedUser
from .films import FilmCreateRequest, FilmDetail, FilmList, FilmReview, FilmSummary, ReviewAuthor
from .groups import (
    GroupCreateRequest,
    GroupDetail,
    GroupFilmItem,
    GroupFilmRequest,
    GroupInviteRequest,
    GroupItem,
    GroupList,
    GroupMemberItem,
    GroupUpdateRequest,
    InvitationItem,
    InvitationList,
)
from .reviews import ReviewCreateRequest, ReviewFilm, ReviewItem

__all__ = [
    "FeedFilm",
    "FeedItem",
    "FeedResponse",
    "FeedReview",
    "FeedUser",
    "FilmCreateRequest",
    "FilmDetail",
    "FilmList",
    "FilmReview",
    "FilmSummary",
    "GroupCreateRequest",
    "GroupDetail",
    "GroupFilmItem",
    "GroupFilmRequest",
    "GroupInviteRequest",
    "GroupItem",
    "GroupList",
    "GroupMemberItem",
    "GroupUpdateRequest",
    "InvitationItem",
    "InvitationList",
    "ReviewAuthor",
    "ReviewCreateRequest",
    "ReviewFilm",
    "ReviewItem",
]
