"""Service layer for business logic."""

from . import catalog, feeds, friends, groups, merge, reviews, telemetry, tmdb, users

__all__ = [
    "catalog",
    "feeds",
    "friends",
    "groups",
    "merge",
    "reviews",
    "telemetry",
    "tmdb",
    "users",
]
