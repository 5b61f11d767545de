from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from cineclub.db import models
from cineclub.services import friends as friend_service
from cineclub.services import users as user_service

from ..auth import require_api_user
from ..dependencies import get_db_session


router = APIRouter(prefix="/friends", tags=["friends"])


def _resolve(session: Session, username: str, user: models.User) -> models.User:
    other = user_service.get_user_by_username(session, username)
    if not other:
        raise HTTPException(status_code=404, detail="User not found")
    if other.id == user.id:
        raise HTTPException(status_code=400, detail="Cannot befriend yourself")
    return other


@router.get("/", summary="List friend ids")
def list_friends(
    session: Session = Depends(get_db_session),
    user: models.User = Depends(require_api_user),
) -> dict:
    return {"user_id": user.id, "friend_ids": friend_service.friend_ids(session, user.id)}


@router.post("/{username}", status_code=status.HTTP_201_CREATED, summary="Add friend")
def add_friend(
    username: str,
    session: Session = Depends(get_db_session),
    user: models.User = Depends(require_api_user),
) -> dict:
    other = _resolve(session, username, user)
    friend_service.add_friendship(session, user.id, other.id)
    return {"user_id": user.id, "friend_id": other.id}


@router.delete("/{username}", status_code=status.HTTP_204_NO_CONTENT, summary="Remove friend")
def remove_friend(
    username: str,
    session: Session = Depends(get_db_session),
    user: models.User = Depends(require_api_user),
) -> None:
    other = _resolve(session, username, user)
    if not friend_service.remove_friendship(session, user.id, other.id):
        raise HTTPException(status_code=404, detail="Not friends")
