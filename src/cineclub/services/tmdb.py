from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterator, List, Optional
import logging

import httpx

from ..config import Settings

logger = logging.getLogger(__name__)

CAST_LIMIT = 10


class ProviderError(Exception):
    """Raised when the metadata provider cannot answer a query."""

    def __init__(self, message: str, *, retryable: bool = False, status_code: Optional[int] = None):
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


class ProviderUnavailable(ProviderError):
    """Transport failure, server error or rate limiting."""


@dataclass
class ProviderFilm:
    tmdb_id: int
    title: str
    original_title: Optional[str]
    synopsis: str
    release_date: Optional[date]
    poster_url: Optional[str]
    average_rating: float = 0.0
    vote_count: int = 0
    genres: List[str] = field(default_factory=list)


@dataclass
class ProviderFilmDetails(ProviderFilm):
    runtime_minutes: Optional[int] = None
    director: Optional[str] = None
    cast: List[str] = field(default_factory=list)


def rescale_rating(vote_average: Optional[float]) -> float:
    """Convert a 0-10 provider score to the local 0-5 scale (one decimal, halves up)."""
    if not vote_average:
        return 0.0
    halved = Decimal(str(float(vote_average))) / 2
    return float(halved.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        return None


class TMDBClient:
    """Thin wrapper around the TMDB movie list, search and detail endpoints."""

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        if not settings.tmdb.api_key:
            raise ValueError("TMDB API key is not configured.")
        self.api_key = settings.tmdb.api_key
        self.base_url = settings.tmdb.base_url.rstrip("/")
        self.image_base_url = settings.tmdb.image_base_url.rstrip("/")
        self.language = settings.tmdb.language
        timeout = settings.tmdb.request_timeout_seconds
        self._client = http_client or httpx.Client(timeout=timeout)

    def top_rated(self, page: int = 1) -> List[ProviderFilm]:
        data = self._request_json("/movie/top_rated", {"page": page})
        with _malformed("/movie/top_rated"):
            return [self._parse_list_item(item) for item in _results(data)]

    def latest(self, page: int = 1) -> List[ProviderFilm]:
        """Upcoming and now-playing releases, newest first."""
        upcoming = self._request_json("/movie/upcoming", {"page": page})
        now_playing = self._request_json("/movie/now_playing", {"page": page})
        with _malformed("/movie/upcoming + /movie/now_playing"):
            seen: set[int] = set()
            films: List[ProviderFilm] = []
            for item in _results(upcoming) + _results(now_playing):
                if item["id"] in seen:
                    continue
                seen.add(item["id"])
                films.append(self._parse_list_item(item))
            return sorted(films, key=_release_sort_key)

    def search(self, query: str, page: int = 1) -> List[ProviderFilm]:
        data = self._request_json("/search/movie", {"query": query, "page": page})
        with _malformed("/search/movie"):
            return [self._parse_list_item(item) for item in _results(data)]

    def fetch_movie(self, tmdb_id: int) -> Optional[ProviderFilmDetails]:
        path = f"/movie/{tmdb_id}"
        data = self._request_json(path)
        if not data:
            return None
        director, cast = self._fetch_credits(tmdb_id)
        with _malformed(path):
            base = self._parse_list_item({**data, "id": data.get("id") or tmdb_id})
            runtime = data.get("runtime")
            return ProviderFilmDetails(
                tmdb_id=base.tmdb_id,
                title=base.title,
                original_title=base.original_title,
                synopsis=base.synopsis,
                release_date=base.release_date,
                poster_url=base.poster_url,
                average_rating=base.average_rating,
                vote_count=base.vote_count,
                genres=[genre["name"] for genre in data.get("genres") or [] if genre.get("name")],
                runtime_minutes=int(runtime) if runtime else None,
                director=director,
                cast=cast,
            )

    def close(self) -> None:
        self._client.close()

    def _fetch_credits(self, tmdb_id: int) -> tuple[Optional[str], List[str]]:
        try:
            data = self._request_json(f"/movie/{tmdb_id}/credits")
            with _malformed(f"/movie/{tmdb_id}/credits"):
                director = next(
                    (crew.get("name") for crew in data.get("crew") or [] if crew.get("job") == "Director"),
                    None,
                )
                cast = [
                    actor.get("name") for actor in (data.get("cast") or [])[:CAST_LIMIT] if actor.get("name")
                ]
        except ProviderError as exc:
            logger.warning("TMDB credits lookup failed for %s: %s", tmdb_id, exc)
            return None, []
        return director, cast

    def _request_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        params = dict(params or {})
        params["api_key"] = self.api_key
        params.setdefault("language", self.language)
        url = f"{self.base_url}{path}"
        try:
            response = self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(f"TMDB request to {path} failed: {exc}") from exc
        status = response.status_code
        if status == 404:
            return {}
        if status == 429:
            raise ProviderUnavailable(
                "TMDB rate limit reached, retry later.", retryable=True, status_code=status
            )
        if status >= 500:
            raise ProviderUnavailable(f"TMDB returned HTTP {status} for {path}", status_code=status)
        if status >= 400:
            raise ProviderError(f"TMDB returned HTTP {status} for {path}", status_code=status)
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderUnavailable(f"TMDB returned invalid JSON for {path}") from exc
        if not isinstance(payload, dict):
            raise ProviderUnavailable(
                f"TMDB returned a {type(payload).__name__} instead of an object for {path}"
            )
        return payload

    def _parse_list_item(self, data: Dict[str, Any]) -> ProviderFilm:
        poster_path = data.get("poster_path")
        poster_url = f"{self.image_base_url}{poster_path}" if poster_path else None
        return ProviderFilm(
            tmdb_id=int(data["id"]),
            title=data.get("title") or data.get("original_title") or "",
            original_title=data.get("original_title"),
            synopsis=data.get("overview") or "",
            release_date=parse_iso_date(data.get("release_date")),
            poster_url=poster_url,
            average_rating=rescale_rating(data.get("vote_average")),
            vote_count=int(data.get("vote_count") or 0),
        )


@contextmanager
def _malformed(path: str) -> Iterator[None]:
    """Turn payload shape errors into ``ProviderUnavailable``."""
    try:
        yield
    except (KeyError, TypeError, ValueError, AttributeError, ArithmeticError) as exc:
        raise ProviderUnavailable(f"TMDB returned a malformed payload for {path}: {exc!r}") from exc


def _results(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    results = data.get("results") or []
    if not isinstance(results, list):
        raise TypeError(f"'results' is a {type(results).__name__}, expected a list")
    return [item for item in results if isinstance(item, dict) and item.get("id") is not None]


def _release_sort_key(film: ProviderFilm) -> tuple[bool, int]:
    if film.release_date is None:
        return (True, 0)
    return (False, -film.release_date.toordinal())
