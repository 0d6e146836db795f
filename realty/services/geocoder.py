from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from realty.core.errors import NotFoundError, UpstreamError, ValidationError
from realty.services.http_client import ProviderHttpClient

log = logging.getLogger(__name__)

MIN_ADDRESS_CHARS = 3

# any other provider status is a service-side failure
_ZERO_RESULTS = "ZERO_RESULTS"
_OK = "OK"

_DISPLAY_COMPONENT_TYPES = ("premise", "establishment", "point_of_interest", "subpremise")


@dataclass(frozen=True)
class GeoPoint:
    longitude: float
    latitude: float

    def to_geojson(self) -> dict[str, Any]:
        return {"type": "Point", "coordinates": [self.longitude, self.latitude]}


@dataclass(frozen=True)
class GeocodeResult:
    location: GeoPoint
    formatted_address: str
    display_name: str
    place_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


def _display_name(result: dict[str, Any], fallback: str) -> str:
    components = result.get("address_components") or []
    for comp in components:
        if set(comp.get("types") or []) & set(_DISPLAY_COMPONENT_TYPES) and comp.get("long_name"):
            return comp["long_name"]

    by_type = {t: c.get("long_name") for c in components for t in (c.get("types") or [])}
    street = " ".join(p for p in (by_type.get("street_number"), by_type.get("route")) if p)
    return street or fallback


def _point(result: dict[str, Any]) -> GeoPoint | None:
    loc = (result.get("geometry") or {}).get("location") or {}
    lat, lng = loc.get("lat"), loc.get("lng")
    if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
        return None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None
    return GeoPoint(longitude=float(lng), latitude=float(lat))


class GeocoderClient:
    """
    Resolves free-text addresses against the Google Geocoding API.

    Exactly one upstream call per resolve(); no retries here.
    """

    def __init__(self, *, http: ProviderHttpClient, api_key: str, base_url: str):
        self._http = http
        self._api_key = api_key
        self._base_url = base_url

    async def resolve(self, address: str) -> GeocodeResult:
        text = (address or "").strip()
        if len(text) < MIN_ADDRESS_CHARS:
            raise ValidationError("Address must be at least 3 characters", context={"address": address})

        res = await self._http.get_json(url=self._base_url, params={"address": text, "key": self._api_key})
        if not res.ok:
            log.warning("geocoder transport failure: %s %s", res.error_code, res.error_message)
            raise UpstreamError(f"Geocoding provider error: {res.error_message}", context={"address": text, "error_code": res.error_code})

        status = res.detail.get("status")
        if status == _ZERO_RESULTS:
            raise NotFoundError(f"No results found for address: {text}", context={"address": text})
        if status != _OK:
            message = res.detail.get("error_message") or status or "unknown status"
            log.warning("geocoder provider failure: status=%s message=%s", status, message)
            raise UpstreamError(f"Geocoding provider error: {message}", context={"address": text, "status": status})

        results = res.detail.get("results") or []
        if not results:
            raise NotFoundError(f"No results found for address: {text}", context={"address": text})

        first = results[0]
        point = _point(first)
        if point is None:
            raise ValidationError("Geocoding result has no usable coordinates", context={"address": text})

        return GeocodeResult(
            location=point,
            formatted_address=first.get("formatted_address") or text,
            display_name=_display_name(first, text),
            place_id=first.get("place_id"),
            raw=first,
        )


class PlacesClient:
    """Nearby-search proxy against the Google Places API (v1)."""

    FIELD_MASK = "places.displayName,places.formattedAddress,places.location,places.types"
    MAX_RESULTS = 10

    def __init__(self, *, http: ProviderHttpClient, api_key: str, base_url: str):
        self._http = http
        self._api_key = api_key
        self._base_url = base_url

    async def search_nearby(self, *, latitude: float, longitude: float, radius: float = 1500, place_type: str = "restaurant") -> dict[str, Any]:
        body = {
            "includedTypes": [place_type],
            "maxResultCount": self.MAX_RESULTS,
            "locationRestriction": {
                "circle": {
                    "center": {"latitude": latitude, "longitude": longitude},
                    "radius": radius,
                },
            },
        }
        res = await self._http.post_json(
            url=self._base_url,
            headers={"X-Goog-Api-Key": self._api_key, "X-Goog-FieldMask": self.FIELD_MASK},
            json_body=body,
        )
        if not res.ok:
            log.warning("places request failed: %s %s", res.error_code, res.detail)
            raise UpstreamError("Places provider request failed", context={"status_code": res.status_code, "detail": res.detail})
        return res.detail
