from fastapi import APIRouter

from .health import router as health_router
from .feed import router as feed_router
from .friends import router as friends_router
from .groups import router as groups_router
from .movies import router as movies_router
from .reviews import router as reviews_router


api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(feed_router)
api_router.include_router(movies_router)
api_router.include_router(reviews_router)
api_router.include_router(friends_router)
api_router.include_router(groups_router)

__all__ = ["api_router"]
