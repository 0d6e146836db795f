from typing import Any

from fastapi import APIRouter, Depends, Query

from realty.core.errors import ValidationError
from realty.services.geocoder import PlacesClient
from realty.services.providers import get_places_client

router = APIRouter()


@router.get("/maps/nearby")
async def nearby_places(
    latitude: float | None = Query(default=None),
    longitude: float | None = Query(default=None),
    radius: float = Query(default=1500, gt=0, le=50_000),
    type: str = Query(default="restaurant", max_length=60),
    places: PlacesClient = Depends(get_places_client),
) -> dict[str, Any]:
    if latitude is None or longitude is None:
        raise ValidationError("Missing latitude/longitude")
    return await places.search_nearby(latitude=latitude, longitude=longitude, radius=radius, place_type=type)
