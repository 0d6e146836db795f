"""
Long-lived service handles (object store, HTTP clients) and the FastAPI
dependencies that hand request-scoped orchestrators to the endpoints.

Handles are created once in the application lifespan and parked on
app.state; tests swap them through dependency_overrides.
"""
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from realty.core.config import Settings
from realty.core.db import get_db
from realty.services.geocoder import GeocoderClient, PlacesClient
from realty.services.http_client import ProviderHttpClient
from realty.services.listings import ListingIngestionService, ListingQueryService
from realty.services.media import MediaIngestionService
from realty.services.repositories import SqlListingRepository, SqlUserRepository
from realty.services.storage import ObjectStoreGateway, build_object_store


@dataclass
class ServiceHandles:
    settings: Settings
    http: ProviderHttpClient
    gateway: ObjectStoreGateway
    geocoder: GeocoderClient
    places: PlacesClient

    async def aclose(self) -> None:
        await self.http.aclose()


def build_handles(settings: Settings) -> ServiceHandles:
    http = ProviderHttpClient(timeout_seconds=settings.http_timeout_seconds)
    api_key = settings.google_maps_api_key.get_secret_value()
    return ServiceHandles(
        settings=settings,
        http=http,
        gateway=ObjectStoreGateway(build_object_store(settings)),
        geocoder=GeocoderClient(http=http, api_key=api_key, base_url=settings.geocoder_base_url),
        places=PlacesClient(http=http, api_key=api_key, base_url=settings.places_base_url),
    )


def get_handles(request: Request) -> ServiceHandles:
    return request.app.state.handles


def get_media_service(handles: ServiceHandles = Depends(get_handles)) -> MediaIngestionService:
    s = handles.settings
    return MediaIngestionService(
        handles.gateway,
        allowed_types=tuple(s.allowed_image_types),
        max_file_bytes=s.max_upload_bytes,
        max_batch_files=s.max_batch_files,
    )


def get_listing_service(
    handles: ServiceHandles = Depends(get_handles),
    db: AsyncSession = Depends(get_db),
) -> ListingIngestionService:
    return ListingIngestionService(
        geocoder=handles.geocoder,
        listings=SqlListingRepository(db),
        users=SqlUserRepository(db),
    )


def get_query_service(
    handles: ServiceHandles = Depends(get_handles),
    db: AsyncSession = Depends(get_db),
) -> ListingQueryService:
    s = handles.settings
    return ListingQueryService(
        listings=SqlListingRepository(db),
        related_radius_m=s.related_radius_meters,
        related_limit=s.related_limit,
        page_size=s.page_size,
    )


def get_places_client(handles: ServiceHandles = Depends(get_handles)) -> PlacesClient:
    return handles.places
