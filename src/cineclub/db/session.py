from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from ..config import Settings
from . import models

engine = None
SessionLocal = None


def init_engine(settings: Settings) -> None:
    global engine, SessionLocal
    if engine is None:
        options = {"echo": settings.database.echo}
        if not settings.database.url.startswith("sqlite"):
            options["pool_size"] = settings.database.pool_size
            options["pool_timeout"] = settings.database.pool_timeout
        engine = create_engine(settings.database.url, **options)
        SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def create_schema(settings: Settings) -> None:
    """Create missing tables on the configured database."""
    init_engine(settings)
    models.Base.metadata.create_all(engine)


@contextmanager
def get_session(settings: Settings) -> Iterator[Session]:
    if SessionLocal is None:
        init_engine(settings)
    session = SessionLocal()  # type: ignore[misc]
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
