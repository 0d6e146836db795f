from fastapi import APIRouter

from realty.api.v1.endpoints.health import router as health_router
from realty.api.v1.endpoints.media import router as media_router
from realty.api.v1.endpoints.listings import router as listings_router
from realty.api.v1.endpoints.maps import router as maps_router


router = APIRouter(prefix="/v1")
router.include_router(health_router, tags=["health"])
router.include_router(media_router, tags=["media"])
router.include_router(listings_router, tags=["listings"])
router.include_router(maps_router, tags=["maps"])
