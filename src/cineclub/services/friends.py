from __future__ import annotations

from typing import List

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from ..db import models


def _ordered(user_a: int, user_b: int) -> tuple[int, int]:
    if user_a == user_b:
        raise ValueError("A user cannot befriend themselves.")
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


def are_friends(session: Session, user_a: int, user_b: int) -> bool:
    low, high = _ordered(user_a, user_b)
    return session.get(models.Friendship, {"user1_id": low, "user2_id": high}) is not None


def add_friendship(session: Session, user_a: int, user_b: int) -> models.Friendship:
    low, high = _ordered(user_a, user_b)
    existing = session.get(models.Friendship, {"user1_id": low, "user2_id": high})
    if existing:
        return existing
    friendship = models.Friendship(user1_id=low, user2_id=high)
    session.add(friendship)
    session.flush()
    return friendship


def remove_friendship(session: Session, user_a: int, user_b: int) -> bool:
    low, high = _ordered(user_a, user_b)
    result = session.execute(
        delete(models.Friendship).where(
            models.Friendship.user1_id == low,
            models.Friendship.user2_id == high,
        )
    )
    return bool(result.rowcount)


def friendship_clause(user_id: int, other_column):
    """SQL condition matching rows where ``other_column`` is a friend of ``user_id``."""
    pairs = select(models.Friendship).where(
        or_(
            (models.Friendship.user1_id == user_id) & (models.Friendship.user2_id == other_column),
            (models.Friendship.user2_id == user_id) & (models.Friendship.user1_id == other_column),
        )
    )
    return pairs.exists()


def friend_ids(session: Session, user_id: int) -> List[int]:
    stmt = select(models.Friendship.user1_id, models.Friendship.user2_id).where(
        or_(models.Friendship.user1_id == user_id, models.Friendship.user2_id == user_id)
    )
    ids = [high if low == user_id else low for low, high in session.execute(stmt)]
    return sorted(ids)
