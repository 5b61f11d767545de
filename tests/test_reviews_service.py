from datetime import date
from typing import Optional

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from cineclub.db import models
from cineclub.services import reviews as review_service
from cineclub.services import users as user_service
from cineclub.services.catalog import FilmNotFoundError
from cineclub.services.tmdb import ProviderFilmDetails


def make_session() -> Session:
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    return SessionLocal()


def make_details(tmdb_id: int) -> ProviderFilmDetails:
    return ProviderFilmDetails(
        tmdb_id=tmdb_id,
        title=f"Remote {tmdb_id}",
        original_title=None,
        synopsis="",
        release_date=date(2024, 1, 1),
        poster_url=None,
    )


class FakeProvider:
    def __init__(self, known: Optional[set[int]] = None):
        self.known = known or set()
        self.calls: list[int] = []

    def fetch_movie(self, tmdb_id: int) -> Optional[ProviderFilmDetails]:
        self.calls.append(tmdb_id)
        return make_details(tmdb_id) if tmdb_id in self.known else None


def test_upsert_review_creates_then_updates():
    session = make_session()
    user = user_service.get_or_create_user(session, "critic")
    film = models.Film(title="Local")
    session.add(film)
    session.flush()

    first = review_service.upsert_review(session, None, user, film_id=film.id, rating=3, comment=" meh ")
    second = review_service.upsert_review(session, None, user, film_id=film.id, rating=5, comment="great")

    assert first.id == second.id
    assert second.rating == 5
    assert second.comment == "great"
    assert len(session.execute(select(models.Review)).scalars().all()) == 1
    session.close()


def test_upsert_review_promotes_tmdb_film():
    session = make_session()
    user = user_service.get_or_create_user(session, "critic")
    provider = FakeProvider(known={550})

    review = review_service.upsert_review(session, provider, user, tmdb_id=550, rating=4)

    film = session.get(models.Film, review.film_id)
    assert film.tmdb_id == 550
    assert film.title == "Remote 550"
    assert provider.calls == [550]
    session.close()


def test_film_id_falls_back_to_tmdb_lookup():
    session = make_session()
    user = user_service.get_or_create_user(session, "critic")
    existing = models.Film(title="Known", tmdb_id=9001)
    session.add(existing)
    session.flush()
    provider = FakeProvider()

    review = review_service.upsert_review(session, provider, user, film_id=9001, rating=2)

    assert review.film_id == existing.id
    assert provider.calls == []
    session.close()


def test_unknown_film_raises_not_found():
    session = make_session()
    user = user_service.get_or_create_user(session, "critic")
    with pytest.raises(FilmNotFoundError):
        review_service.upsert_review(session, FakeProvider(), user, tmdb_id=1, rating=4)
    session.close()


def test_invalid_input_raises_value_error():
    session = make_session()
    user = user_service.get_or_create_user(session, "critic")
    with pytest.raises(ValueError):
        review_service.upsert_review(session, None, user, rating=4)
    with pytest.raises(ValueError):
        review_service.upsert_review(session, None, user, film_id=1, rating=6)
    session.close()


def test_list_user_reviews_returns_own_reviews():
    session = make_session()
    critic = user_service.get_or_create_user(session, "critic")
    other = user_service.get_or_create_user(session, "other")
    film = models.Film(title="Shared")
    session.add(film)
    session.flush()
    review_service.upsert_review(session, None, critic, film_id=film.id, rating=4)
    review_service.upsert_review(session, None, other, film_id=film.id, rating=2)

    reviews = review_service.list_user_reviews(session, critic.id)

    assert [(review.user_id, review.rating) for review in reviews] == [(critic.id, 4)]
    session.close()


def test_api_key_round_trip():
    session = make_session()
    user = user_service.get_or_create_user(session, "keyholder")
    key = user_service.issue_api_key(session, user)
    assert user.api_key_hash != key
    assert user_service.get_user_by_api_key(session, key) is user
    assert user_service.get_user_by_api_key(session, "wrong") is None
    session.close()
