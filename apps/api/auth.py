from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Security
from fastapi.security import APIKeyHeader
from sqlalchemy.orm import Session

from cineclub.db import models
from cineclub.services import users as user_service

from .dependencies import get_db_session

API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)


def require_api_user(
    api_key: Optional[str] = Security(API_KEY_HEADER),
    session: Session = Depends(get_db_session),
) -> models.User:
    if not api_key:
        raise HTTPException(status_code=401, detail="Missing API key")
    user = user_service.get_user_by_api_key(session, api_key)
    if not user:
        raise HTTPException(status_code=403, detail="Invalid API key")
    return user
