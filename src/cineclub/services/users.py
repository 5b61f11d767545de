from __future__ import annotations

import secrets
from hashlib import sha256
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db import models


def hash_api_key(api_key: str) -> str:
    return sha256(api_key.encode("utf-8")).hexdigest()


def generate_api_key() -> tuple[str, str]:
    key = secrets.token_hex(24)
    return key, hash_api_key(key)


def get_user_by_username(session: Session, username: str) -> Optional[models.User]:
    stmt = select(models.User).where(models.User.username == username)
    return session.scalars(stmt).one_or_none()


def get_user_by_api_key(session: Session, api_key: str) -> Optional[models.User]:
    stmt = select(models.User).where(models.User.api_key_hash == hash_api_key(api_key))
    return session.scalars(stmt).one_or_none()


def get_or_create_user(session: Session, username: str, display_name: Optional[str] = None) -> models.User:
    user = get_user_by_username(session, username)
    if user:
        if display_name and user.display_name != display_name:
            user.display_name = display_name
        return user
    user = models.User(username=username, display_name=display_name)
    session.add(user)
    session.flush()
    return user


def issue_api_key(session: Session, user: models.User) -> str:
    """Rotate the user's API key and return the plaintext value once."""
    key, hashed = generate_api_key()
    user.api_key_hash = hashed
    session.flush()
    return key
