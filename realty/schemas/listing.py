from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ListingCreate(BaseModel):
    """
    create-ad body. Presence rules are enforced by the ingestion service so
    that the first missing field is reported by name, so most fields are optional here.
    Accepts both snake_case and the camelCase names older clients send.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    photos: list[Any] | None = None
    description: Any = None
    address: str | None = None
    property_type: str | None = Field(default=None, alias="propertyType")
    price: str | int | float | None = None
    action: str | None = None

    bedrooms: int | None = None
    bathrooms: int | None = None
    carpark: int | None = None
    landsize: float | None = None
    landsize_type: str | None = Field(default=None, alias="landsizeType")

    title: str | None = Field(default=None, max_length=255)
    features: Any = None
    nearby: Any = None
    inspection_time: str | None = Field(default=None, alias="inspectionTime")

    @field_validator("bedrooms", "bathrooms", "carpark", "landsize", mode="before")
    @classmethod
    def _blank_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class PointOut(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: list[float]


class CreatedListingOut(BaseModel):
    id: str
    slug: str
    photos: list[str]
    address: str
    price: str
    property_type: str
    action: str
    location: PointOut


class CreateListingResponse(BaseModel):
    success: bool = True
    ad: CreatedListingOut


class OwnerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str | None = None
    username: str | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    photo: str | None = None
    logo: str | None = None


class ListingOut(BaseModel):
    """Read projection. The raw geocoder payload is deliberately absent."""
    id: str
    slug: str
    owner: OwnerOut | None
    address: str
    formatted_address: str | None
    location: PointOut
    property_type: str
    action: str
    price: str
    bedrooms: int | None
    bathrooms: int | None
    carpark: int | None
    landsize: float | None
    landsize_type: str | None
    title: str | None
    description: Any
    features: Any
    nearby: Any
    inspection_time: str | None
    photos: list[str]
    published: bool
    status: str
    views: int
    created_at: datetime | None
    updated_at: datetime | None


class ListingDetailResponse(BaseModel):
    ad: ListingOut
    related: list[ListingOut]


class ListingPageResponse(BaseModel):
    ads: list[ListingOut]
    current_page: int
    total_pages: int
    total_ads: int
