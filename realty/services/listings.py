from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Any

from realty.core.errors import (
    NotFoundError,
    ServiceUnavailableError,
    UpstreamError,
    ValidationError,
)
from realty.core.ids import short_token
from realty.models.listing import ACTIONS, PROPERTY_TYPES, Listing
from realty.schemas.listing import ListingCreate
from realty.services.geocoder import GeocoderClient, GeocodeResult, GeoPoint
from realty.services.repositories import ListingRepository, UserRepository

log = logging.getLogger(__name__)

SELLER_ROLE = "Seller"
DEFAULT_STATUS = "In market"

_SLUG_STRIPPED = re.compile(r"""[*+~.()'"!:@]""")
_SLUG_SEPARATORS = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    text = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    text = _SLUG_STRIPPED.sub("", text).lower()
    return _SLUG_SEPARATORS.sub("-", text).strip("-")


def build_slug(*, property_type: str, action: str, address: str, price: Any, token: str | None = None) -> str:
    token = token or short_token(6)
    return slugify(f"{property_type}-for-{action}-address-{address}-price-{price}-{token}")


def normalize_photos(photos: list[Any]) -> list[str]:
    """Photos arrive as bare URLs or as upload descriptors; only the URL is kept."""
    out: list[str] = []
    for photo in photos:
        if isinstance(photo, str) and photo.strip():
            out.append(photo.strip())
        elif isinstance(photo, dict) and isinstance(photo.get("url"), str) and photo["url"].strip():
            out.append(photo["url"].strip())
        else:
            raise ValidationError("Each photo must be a URL or an object with a url", context={"photo": photo})
    return out


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    if isinstance(value, (int, float)):
        # a numeric zero price or landsize counts as not given
        return value == 0
    return False


def validate_listing_input(payload: ListingCreate) -> None:
    """First missing field wins; runs before any external call."""
    required = (
        (payload.photos, "Photos"),
        (payload.description, "Description"),
        (payload.address, "Address"),
        (payload.property_type, "Property Type"),
        (payload.price, "Price"),
        (payload.action, "Action"),
    )
    for value, name in required:
        if _is_blank(value):
            raise ValidationError(f"{name} is required", context={"field": name})

    if payload.property_type == "Land":
        if _is_blank(payload.landsize):
            raise ValidationError("Landsize is required", context={"field": "Landsize"})
        if _is_blank(payload.landsize_type):
            raise ValidationError("Landsize Type is required", context={"field": "Landsize Type"})

    if payload.property_type not in PROPERTY_TYPES:
        raise ValidationError(
            f"Property Type must be one of {', '.join(PROPERTY_TYPES)}",
            context={"field": "Property Type", "value": payload.property_type},
        )
    if payload.action not in ACTIONS:
        raise ValidationError(
            f"Action must be one of {', '.join(ACTIONS)}",
            context={"field": "Action", "value": payload.action},
        )


@dataclass(frozen=True)
class CreatedListing:
    id: str
    slug: str
    photos: list[str]
    address: str
    price: str
    property_type: str
    action: str
    location: GeoPoint

    @classmethod
    def from_model(cls, listing: Listing) -> "CreatedListing":
        return cls(
            id=listing.id,
            slug=listing.slug,
            photos=list(listing.photos),
            address=listing.address,
            price=listing.price,
            property_type=listing.property_type,
            action=listing.action,
            location=GeoPoint(longitude=listing.longitude, latitude=listing.latitude),
        )


class ListingIngestionService:
    """
    validate -> geocode -> slug -> persist -> promote owner to Seller.

    Nothing is written until the persist step. The role promotion runs only
    after a successful persist and its failure does not undo the listing.
    """

    def __init__(self, *, geocoder: GeocoderClient, listings: ListingRepository, users: UserRepository):
        self.geocoder = geocoder
        self.listings = listings
        self.users = users

    async def _geocode(self, address: str) -> GeocodeResult:
        try:
            return await self.geocoder.resolve(address)
        except NotFoundError as e:
            raise NotFoundError("Address not found", context={**e.context, "cause": e.message}) from e
        except UpstreamError as e:
            raise ServiceUnavailableError("Geocoding service unavailable", context={**e.context, "cause": e.message}) from e

    async def create_listing(self, owner_id: str, payload: ListingCreate) -> CreatedListing:
        validate_listing_input(payload)
        photos = normalize_photos(payload.photos or [])
        address = payload.address.strip()
        price = str(payload.price).strip()

        geo = await self._geocode(address)

        slug = build_slug(
            property_type=payload.property_type,
            action=payload.action,
            address=address,
            price=price,
        )

        listing = await self.listings.create(
            {
                "slug": slug,
                "owner_id": owner_id,
                "address": address,
                "formatted_address": geo.formatted_address,
                "longitude": geo.location.longitude,
                "latitude": geo.location.latitude,
                "geocode": geo.raw,
                "property_type": payload.property_type,
                "action": payload.action,
                "price": price,
                "bedrooms": payload.bedrooms,
                "bathrooms": payload.bathrooms,
                "carpark": payload.carpark,
                "landsize": payload.landsize,
                "landsize_type": payload.landsize_type,
                "title": payload.title,
                "description": payload.description,
                "features": payload.features,
                "nearby": payload.nearby,
                "inspection_time": payload.inspection_time,
                "photos": photos,
                "published": True,
                "status": DEFAULT_STATUS,
                "views": 0,
            }
        )
        log.info("listing created id=%s slug=%s owner=%s", listing.id, listing.slug, owner_id)

        try:
            await self.users.add_role(owner_id, SELLER_ROLE)
        except Exception:
            # listing stays; the owner simply is not tagged yet
            log.exception("role promotion failed owner=%s listing=%s", owner_id, listing.id)

        return CreatedListing.from_model(listing)


@dataclass(frozen=True)
class ListingDetail:
    listing: Listing
    related: list[Listing]


@dataclass(frozen=True)
class ListingPage:
    listings: list[Listing]
    page: int
    total: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.page_size) if self.page_size else 0


class ListingQueryService:
    """Read side: single listing with nearby related ones, and paged browse by action."""

    def __init__(self, *, listings: ListingRepository, related_radius_m: int = 50_000, related_limit: int = 3, page_size: int = 2):
        self.listings = listings
        self.related_radius_m = related_radius_m
        self.related_limit = related_limit
        self.page_size = page_size

    async def get_detail(self, slug: str) -> ListingDetail:
        listing = await self.listings.get_by_slug(slug)
        if listing is None:
            raise NotFoundError("Ad not found", context={"slug": slug})

        related = await self.listings.find_nearby(
            point=GeoPoint(longitude=listing.longitude, latitude=listing.latitude),
            action=listing.action,
            property_type=listing.property_type,
            exclude_id=listing.id,
            radius_m=self.related_radius_m,
            limit=self.related_limit,
        )
        try:
            await self.listings.increment_views(listing.id)
        except Exception:
            # a lost view count never fails the read
            log.exception("view count update failed listing=%s", listing.id)
        return ListingDetail(listing=listing, related=related)

    async def browse(self, action: str, page: Any) -> ListingPage:
        try:
            page_no = int(page)
        except (TypeError, ValueError):
            raise ValidationError("Invalid page number", context={"page": page})
        if page_no < 1:
            raise ValidationError("Invalid page number", context={"page": page})

        rows, total = await self.listings.page_by_action(action=action, page=page_no, page_size=self.page_size)
        return ListingPage(listings=rows, page=page_no, total=total, page_size=self.page_size)
