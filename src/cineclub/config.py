from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import os

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - fallback for <3.11
    import tomli as tomllib  # type: ignore

from dotenv import load_dotenv


@dataclass
class DatabaseSettings:
    url: str
    echo: bool = False
    pool_size: int = 5
    pool_timeout: int = 30


@dataclass
class TMDBSettings:
    api_key: Optional[str] = None
    base_url: str = "https://api.themoviedb.org/3"
    image_base_url: str = "https://image.tmdb.org/t/p/w500"
    language: str = "fr-FR"
    request_timeout_seconds: int = 10


@dataclass
class FeedSettings:
    comment_limit: int = 50
    top_rated_cap: int = 5
    recent_cap: int = 5
    min_votes: int = 2
    search_local_limit: int = 20
    search_cap: int = 50
    provider_workers: int = 2


@dataclass
class APISettings:
    cors_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )


@dataclass
class Settings:
    database: DatabaseSettings
    tmdb: TMDBSettings
    feed: FeedSettings = field(default_factory=FeedSettings)
    api: APISettings = field(default_factory=APISettings)
    raw: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "database": self.database.__dict__,
            "tmdb": {k: v for k, v in self.tmdb.__dict__.items() if k != "api_key"},
            "feed": self.feed.__dict__,
            "api": self.api.__dict__,
        }


def _load_toml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("rb") as fh:
        return tomllib.load(fh)


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Load configuration from TOML + environment variables."""
    load_dotenv()

    if config_path is None:
        env_path = os.getenv("CINECLUB_CONFIG")
        config_path = (
            Path(env_path)
            if env_path
            else Path(__file__).resolve().parents[2] / "config" / "default.toml"
        )

    data = _load_toml(config_path)
    database_cfg = data.get("database", {})
    tmdb_cfg = data.get("tmdb", {})
    feed_cfg = data.get("feed", {})
    api_cfg = data.get("api", {})

    db_settings = DatabaseSettings(
        url=os.getenv("DATABASE_URL", database_cfg.get("url", "")),
        echo=bool_from_env("DATABASE_ECHO", database_cfg.get("echo", False)),
        pool_size=int(os.getenv("DATABASE_POOL_SIZE", database_cfg.get("pool_size", 5))),
        pool_timeout=int(os.getenv("DATABASE_POOL_TIMEOUT", database_cfg.get("pool_timeout", 30))),
    )

    tmdb_settings = TMDBSettings(
        api_key=os.getenv("TMDB_API_KEY", tmdb_cfg.get("api_key")),
        base_url=os.getenv("TMDB_BASE_URL", tmdb_cfg.get("base_url", "https://api.themoviedb.org/3")),
        image_base_url=os.getenv(
            "TMDB_IMAGE_BASE_URL", tmdb_cfg.get("image_base_url", "https://image.tmdb.org/t/p/w500")
        ),
        language=os.getenv("TMDB_LANGUAGE", tmdb_cfg.get("language", "fr-FR")),
        request_timeout_seconds=int(
            os.getenv("TMDB_TIMEOUT", tmdb_cfg.get("request_timeout_seconds", 10))
        ),
    )

    feed_settings = FeedSettings(
        comment_limit=int(os.getenv("FEED_COMMENT_LIMIT", feed_cfg.get("comment_limit", 50))),
        top_rated_cap=int(os.getenv("FEED_TOP_RATED_CAP", feed_cfg.get("top_rated_cap", 5))),
        recent_cap=int(os.getenv("FEED_RECENT_CAP", feed_cfg.get("recent_cap", 5))),
        min_votes=int(os.getenv("FEED_MIN_VOTES", feed_cfg.get("min_votes", 2))),
        search_local_limit=int(
            os.getenv("SEARCH_LOCAL_LIMIT", feed_cfg.get("search_local_limit", 20))
        ),
        search_cap=int(os.getenv("SEARCH_CAP", feed_cfg.get("search_cap", 50))),
        provider_workers=int(os.getenv("FEED_PROVIDER_WORKERS", feed_cfg.get("provider_workers", 2))),
    )

    cors_env = os.getenv("API_CORS_ORIGINS")
    api_settings = APISettings(
        cors_origins=(
            [origin.strip() for origin in cors_env.split(",") if origin.strip()]
            if cors_env
            else list(api_cfg.get("cors_origins", APISettings().cors_origins))
        ),
    )

    return Settings(
        database=db_settings,
        tmdb=tmdb_settings,
        feed=feed_settings,
        api=api_settings,
        raw=data,
    )


def bool_from_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return bool(default)
    return value.lower() in {"1", "true", "yes", "on"}
