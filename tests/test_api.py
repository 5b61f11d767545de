from datetime import date
from typing import Iterator, List, Optional

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from apps.api.dependencies import get_db_session, get_settings, get_tmdb_client
from apps.api.routers import api_router
from cineclub.config import DatabaseSettings, Settings, TMDBSettings
from cineclub.db import models
from cineclub.services import users as user_service
from cineclub.services.tmdb import ProviderFilm, ProviderFilmDetails, ProviderUnavailable


class FakeTMDBClient:
    def __init__(self, fail: bool = False):
        self.fail = fail

    def _check(self) -> None:
        if self.fail:
            raise ProviderUnavailable("down")

    def top_rated(self, page: int = 1) -> List[ProviderFilm]:
        self._check()
        return [
            ProviderFilm(
                tmdb_id=238,
                title="Le Parrain",
                original_title="The Godfather",
                synopsis="",
                release_date=date(1972, 3, 14),
                poster_url=None,
                average_rating=4.4,
                vote_count=20000,
            )
        ]

    def latest(self, page: int = 1) -> List[ProviderFilm]:
        self._check()
        return []

    def search(self, query: str, page: int = 1) -> List[ProviderFilm]:
        self._check()
        return [
            ProviderFilm(
                tmdb_id=77,
                title=f"{query} (TMDB)",
                original_title=None,
                synopsis="",
                release_date=None,
                poster_url=None,
            )
        ]

    def fetch_movie(self, tmdb_id: int) -> Optional[ProviderFilmDetails]:
        self._check()
        if tmdb_id != 4242:
            return None
        return ProviderFilmDetails(
            tmdb_id=4242,
            title="Promoted",
            original_title=None,
            synopsis="",
            release_date=date(2001, 1, 1),
            poster_url=None,
            director="Someone",
        )


@pytest.fixture()
def env():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    settings = Settings(
        database=DatabaseSettings(url="sqlite:///:memory:"),
        tmdb=TMDBSettings(api_key="key"),
    )
    provider = FakeTMDBClient()

    def override_session() -> Iterator[Session]:
        session = SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app = FastAPI()
    app.include_router(api_router)
    app.dependency_overrides[get_db_session] = override_session
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_tmdb_client] = lambda: provider

    with SessionLocal() as session:
        alice = user_service.get_or_create_user(session, "alice")
        bob = user_service.get_or_create_user(session, "bob")
        key = user_service.issue_api_key(session, alice)
        bob_key = user_service.issue_api_key(session, bob)
        session.add(models.Film(title="Local Hero", tmdb_id=11, release_date=date(1983, 2, 17)))
        session.commit()

    app.state.api_keys = {"alice": key, "bob": bob_key}
    yield TestClient(app), {"X-API-Key": key}, provider


def test_health(env):
    client, _, _ = env
    response = client.get("/health/")
    assert response.status_code == 200
    assert response.json()["tmdb"] == "configured"


def test_global_feed_shape(env):
    client, _, _ = env
    response = client.get("/feed/global")
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 0
    assert body["feed"] == []
    assert body["top_rated_films"][0]["tmdb_id"] == 238
    assert body["top_rated_films"][0]["id"] is None
    assert body["recent_films"][0]["title"] == "Local Hero"


def test_global_feed_survives_provider_outage(env):
    client, _, provider = env
    provider.fail = True
    response = client.get("/feed/global")
    assert response.status_code == 200
    assert response.json()["top_rated_films"] == []


def test_friend_feed_requires_api_key(env):
    client, headers, _ = env
    assert client.get("/feed/").status_code == 401
    assert client.get("/feed/", headers={"X-API-Key": "nope"}).status_code == 403
    assert client.get("/feed/", headers=headers).status_code == 200


def test_search_lists_local_before_provider(env):
    client, _, _ = env
    response = client.get("/movies/search", params={"q": "hero"})
    assert response.status_code == 200
    films = response.json()["films"]
    assert [film["title"] for film in films] == ["Local Hero", "hero (TMDB)"]


def test_search_with_blank_query_is_empty(env):
    client, _, _ = env
    assert client.get("/movies/search", params={"q": " "}).json() == {"films": []}


def test_movie_details_promotes_unknown_tmdb_id(env):
    client, _, _ = env
    response = client.get("/movies/4242")
    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Promoted"
    assert body["tmdb_id"] == 4242
    assert body["id"] is not None
    assert client.get("/movies/999999").status_code == 404


def test_movie_details_by_tmdb_id_of_local_film(env):
    client, _, _ = env
    response = client.get("/movies/11")
    assert response.status_code == 200
    assert response.json()["title"] == "Local Hero"


def test_create_movie_conflicts_on_duplicate_title(env):
    client, headers, _ = env
    created = client.post("/movies/", json={"title": "Home Movie"}, headers=headers)
    assert created.status_code == 201
    duplicate = client.post("/movies/", json={"title": "home movie"}, headers=headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["film_id"] == created.json()["id"]
    blank = client.post("/movies/", json={"title": "  "}, headers=headers)
    assert blank.status_code == 400


def test_review_flow(env):
    client, headers, _ = env
    response = client.post(
        "/reviews/",
        json={"tmdb_id": 4242, "rating": 5, "comment": "Superb"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["film"]["tmdb_id"] == 4242

    mine = client.get("/reviews/me", headers=headers).json()
    assert [review["comment"] for review in mine] == ["Superb"]

    feed = client.get("/feed/global").json()
    assert feed["feed"][0]["review"]["comment"] == "Superb"
    assert feed["feed"][0]["user"]["username"] == "alice"


def test_review_validation_errors(env):
    client, headers, _ = env
    assert client.post("/reviews/", json={"rating": 3}, headers=headers).status_code == 400
    assert client.post("/reviews/", json={"film_id": 1, "rating": 9}, headers=headers).status_code == 422
    assert client.post("/reviews/", json={"tmdb_id": 1, "rating": 3}, headers=headers).status_code == 404


def test_friends_endpoints(env):
    client, headers, _ = env
    assert client.post("/friends/bob", headers=headers).status_code == 201
    assert len(client.get("/friends/", headers=headers).json()["friend_ids"]) == 1
    assert client.post("/friends/alice", headers=headers).status_code == 400
    assert client.delete("/friends/bob", headers=headers).status_code == 204
    assert client.delete("/friends/bob", headers=headers).status_code == 404


def test_recent_reviews_are_public_and_skip_blank_comments(env):
    client, headers, _ = env
    client.post("/reviews/", json={"tmdb_id": 11, "rating": 4, "comment": "Moody"}, headers=headers)
    client.post("/reviews/", json={"tmdb_id": 4242, "rating": 2}, headers=headers)

    response = client.get("/reviews/recent")

    assert response.status_code == 200
    items = response.json()
    assert [item["review"]["comment"] for item in items] == ["Moody"]
    assert items[0]["film"]["title"] == "Local Hero"
    assert items[0]["user"]["username"] == "alice"
    assert client.get("/reviews/recent", params={"limit": 0}).status_code == 422


def test_private_group_invitation_flow(env):
    client, headers, _ = env
    bob_headers = {"X-API-Key": client.app.state.api_keys["bob"]}

    created = client.post("/groups/", json={"title": "Nuit noire", "is_public": False}, headers=headers)
    assert created.status_code == 201
    group = created.json()
    assert group["user_role"] == "admin"
    assert group["member_count"] == 1

    assert client.get(f"/groups/{group['id']}", headers=bob_headers).status_code == 403
    assert client.post(f"/groups/{group['id']}/join", headers=bob_headers).status_code == 403
    bob_id = client.get("/friends/", headers=bob_headers).json()["user_id"]
    invite = client.post(f"/groups/{group['id']}/invitations", json={"user_id": bob_id}, headers=headers)
    assert invite.status_code == 403

    client.post("/friends/bob", headers=headers)
    invite = client.post(f"/groups/{group['id']}/invitations", json={"user_id": bob_id}, headers=headers)
    assert invite.status_code == 201
    again = client.post(f"/groups/{group['id']}/invitations", json={"user_id": bob_id}, headers=headers)
    assert again.status_code == 409

    invitations = client.get("/groups/invitations", headers=bob_headers).json()["invitations"]
    assert [item["group_title"] for item in invitations] == ["Nuit noire"]
    accepted = client.post(f"/groups/invitations/{invitations[0]['id']}/accept", headers=bob_headers)
    assert accepted.json()["status"] == "accepted"

    details = client.get(f"/groups/{group['id']}", headers=bob_headers).json()
    assert [member["username"] for member in details["members"]] == ["alice", "bob"]


def test_group_films_and_admin_rules(env):
    client, headers, _ = env
    bob_headers = {"X-API-Key": client.app.state.api_keys["bob"]}
    group = client.post("/groups/", json={"title": "Eighties"}, headers=headers).json()
    film_id = client.get("/movies/11").json()["id"]

    assert client.post(f"/groups/{group['id']}/films", json={"film_id": film_id}, headers=bob_headers).status_code == 403
    assert client.post(f"/groups/{group['id']}/join", headers=bob_headers).status_code == 201
    assert client.post(f"/groups/{group['id']}/films", json={"film_id": film_id}, headers=bob_headers).status_code == 201
    assert client.post(f"/groups/{group['id']}/films", json={"film_id": film_id}, headers=headers).status_code == 409
    assert client.post(f"/groups/{group['id']}/films", json={"film_id": 999}, headers=headers).status_code == 404

    assert client.patch(f"/groups/{group['id']}", json={"theme": "synth"}, headers=bob_headers).status_code == 403
    patched = client.patch(f"/groups/{group['id']}", json={"theme": "synth"}, headers=headers)
    assert patched.json()["theme"] == "synth"
    assert patched.json()["film_count"] == 1

    assert client.post(f"/groups/{group['id']}/leave", headers=headers).status_code == 403
    assert client.delete(f"/groups/{group['id']}", headers=bob_headers).status_code == 403
    assert client.post(f"/groups/{group['id']}/leave", headers=bob_headers).status_code == 204
    assert client.delete(f"/groups/{group['id']}", headers=headers).status_code == 204
    assert client.get(f"/groups/{group['id']}", headers=headers).status_code == 404
    assert [item["title"] for item in client.get("/groups/", headers=headers).json()["groups"]] == []
