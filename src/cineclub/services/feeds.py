"""
Feed and search assemblers.

Each call runs its TMDB lookups on a worker thread while the local catalog
query runs on the caller's session, then merges both lists. Provider
failures degrade to an empty external list; database errors propagate.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional
import logging

from sqlalchemy.orm import Session

from ..config import Settings
from . import catalog, merge
from .merge import MergedFilm
from .reviews import CommentEntry, recent_comments
from .telemetry import timed_operation
from .tmdb import ProviderError, ProviderFilm, TMDBClient

logger = logging.getLogger(__name__)

ProviderCall = Callable[[], List[ProviderFilm]]


@dataclass
class FeedPayload:
    feed: List[CommentEntry]
    top_rated_films: List[MergedFilm] = field(default_factory=list)
    recent_films: List[MergedFilm] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.feed)


def global_feed(session: Session, client: Optional[TMDBClient], settings: Settings) -> FeedPayload:
    with timed_operation("feed.global"):
        return _assemble_feed(session, client, settings, friends_of=None)


def friend_feed(
    session: Session,
    client: Optional[TMDBClient],
    settings: Settings,
    user_id: int,
) -> FeedPayload:
    with timed_operation(f"feed.friends[{user_id}]"):
        return _assemble_feed(session, client, settings, friends_of=user_id)


def search_films(
    session: Session,
    client: Optional[TMDBClient],
    settings: Settings,
    query: str,
) -> List[MergedFilm]:
    term = (query or "").strip()
    if not term:
        return []
    cfg = settings.feed
    with timed_operation("search"), ThreadPoolExecutor(max_workers=1) as executor:
        external_future = _submit(executor, client, lambda: client.search(term, 1))  # type: ignore[union-attr]
        local = catalog.search_local(session, term, limit=cfg.search_local_limit)
        external = _collect(external_future, "search")
    return merge.merge_search(local, external, cap=cfg.search_cap)


def _assemble_feed(
    session: Session,
    client: Optional[TMDBClient],
    settings: Settings,
    *,
    friends_of: Optional[int],
) -> FeedPayload:
    cfg = settings.feed
    workers = max(1, cfg.provider_workers)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        top_future = _submit(executor, client, lambda: client.top_rated(1))  # type: ignore[union-attr]
        latest_future = _submit(executor, client, lambda: client.latest(1))  # type: ignore[union-attr]
        comments = recent_comments(session, limit=cfg.comment_limit, friends_of=friends_of)
        top_local = catalog.top_rated_local(session, limit=cfg.top_rated_cap, min_votes=cfg.min_votes)
        recent_local = catalog.recent_local(session, limit=cfg.recent_cap)
        top_external = _collect(top_future, "top_rated")
        latest_external = _collect(latest_future, "latest")
    return FeedPayload(
        feed=comments,
        top_rated_films=merge.merge_top_rated(top_local, top_external, cap=cfg.top_rated_cap),
        recent_films=merge.merge_recent(recent_local, latest_external, cap=cfg.recent_cap),
    )


def _submit(
    executor: ThreadPoolExecutor,
    client: Optional[TMDBClient],
    call: ProviderCall,
) -> Optional[Future]:
    if client is None:
        return None
    return executor.submit(call)


def _collect(future: Optional[Future], label: str) -> List[ProviderFilm]:
    if future is None:
        logger.debug("No TMDB client configured; skipping %s lookup", label)
        return []
    try:
        return list(future.result())
    except ProviderError as exc:
        logger.warning(
            "TMDB %s lookup failed (retryable=%s): %s", label, exc.retryable, exc
        )
        return []
