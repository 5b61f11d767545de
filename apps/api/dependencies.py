"""Shared FastAPI dependencies used across routers."""

from functools import lru_cache
from typing import Iterator, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from cineclub.config import Settings, load_settings
from cineclub.db.session import get_session
from cineclub.services.tmdb import TMDBClient


@lru_cache(maxsize=1)
def _load_settings() -> Settings:
    return load_settings()


def get_settings() -> Settings:
    return _load_settings()


def get_db_session(settings: Settings = Depends(get_settings)) -> Iterator[Session]:
    with get_session(settings) as session:
        yield session


def get_tmdb_client(settings: Settings = Depends(get_settings)) -> Iterator[Optional[TMDBClient]]:
    """TMDB client for the request, or None when no API key is configured."""
    if not settings.tmdb.api_key:
        yield None
        return
    client = TMDBClient(settings)
    try:
        yield client
    finally:
        client.close()
