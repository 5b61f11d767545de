from fastapi import APIRouter, Depends

from ..dependencies import get_settings
from cineclub.config import Settings


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/", summary="Readiness check")
def read_health(settings: Settings = Depends(get_settings)) -> dict[str, str]:
    return {
        "status": "ok",
        "database_url": settings.database.url.split("@")[-1],
        "tmdb": "configured" if settings.tmdb.api_key else "disabled",
    }
