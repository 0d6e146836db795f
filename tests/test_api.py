import httpx
import jwt
import pytest

from realty.core.config import settings
from realty.core.errors import NotFoundError
from realty.main import app
from realty.services.geocoder import PlacesClient
from realty.services.http_client import ProviderHttpClient
from realty.services.providers import get_places_client

from conftest import OTHER_ID, OWNER_ID
from fakes import make_image

AD_BODY = {
    "photos": ["https://cdn.test/uploads/usr_owner/1_front.jpg"],
    "description": "Renovated family home",
    "address": "5 Pitt St, Sydney",
    "propertyType": "House",
    "price": "1200000",
    "action": "Sell",
}


@pytest.mark.asyncio
async def test_routes_require_a_bearer_token(client):
    r = await client.post("/v1/create-ad", json=AD_BODY)
    assert r.status_code == 401
    assert r.json() == {"error": "Authentication failed"}

    r = await client.post("/v1/upload-image", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_legacy_id_claim_is_accepted(client):
    token = jwt.encode({"_id": OWNER_ID}, settings.jwt_secret.get_secret_value(), algorithm=settings.jwt_algorithm)

    r = await client.post("/v1/create-ad", json=AD_BODY, headers={"Authorization": f"Bearer {token}"})

    assert r.status_code == 200


@pytest.mark.asyncio
async def test_upload_single_image(client, auth_headers, store):
    files = {"image": ("porch.png", make_image(3000, 2000, fmt="PNG"), "image/png")}

    r = await client.post("/v1/upload-image", files=files, params={"profile": "thumbnail"}, headers=auth_headers)

    assert r.status_code == 200
    data = r.json()["data"]
    assert data["key"].startswith(f"uploads/{OWNER_ID}/")
    assert data["url"] == f"https://cdn.test/{data['key']}"
    assert data["format"] == "jpeg"
    assert data["dimensions"] == {"width": 400, "height": 400}
    assert data["pixels"] == {"width": 400, "height": 400}
    assert data["size"]["unit"] == "%"
    assert store.exists(data["key"])


@pytest.mark.asyncio
async def test_upload_image_without_file_is_400(client, auth_headers):
    r = await client.post("/v1/upload-image", headers=auth_headers)

    assert r.status_code == 400
    assert r.json() == {"error": 'No file uploaded. Use field name "image"'}


@pytest.mark.asyncio
async def test_batch_upload_partial_is_207(client, auth_headers, store):
    files = [
        ("images", ("one.jpg", make_image(1600, 1200), "image/jpeg")),
        ("images", ("two.jpg", b"\xff\xd8 not really a jpeg", "image/jpeg")),
        ("images", ("three.jpg", make_image(800, 600), "image/jpeg")),
    ]

    r = await client.post("/v1/upload-images", files=files, headers=auth_headers)

    assert r.status_code == 207
    body = r.json()
    assert body["status"] == "partial"
    assert len(body["data"]["successful"]) == 2
    assert [f["filename"] for f in body["data"]["failed"]] == ["two.jpg"]
    assert len(store.puts) == 2


@pytest.mark.asyncio
async def test_batch_upload_all_ok_is_200(client, auth_headers):
    files = [("images", (f"{i}.jpg", make_image(100, 100), "image/jpeg")) for i in range(2)]

    r = await client.post("/v1/upload-images", files=files, headers=auth_headers)

    assert r.status_code == 200
    assert r.json()["status"] == "success"
    assert r.json()["data"]["failed"] == []


@pytest.mark.asyncio
async def test_batch_upload_all_failed_is_400(client, auth_headers, store):
    files = [("images", ("bad.jpg", b"nope", "image/jpeg"))]

    r = await client.post("/v1/upload-images", files=files, headers=auth_headers)

    assert r.status_code == 400
    assert r.json() == {"error": "All files failed processing"}
    assert store.puts == []


@pytest.mark.asyncio
async def test_upload_rejects_gif(client, auth_headers):
    files = {"image": ("anim.gif", b"GIF89a....", "image/gif")}

    r = await client.post("/v1/upload-image", files=files, headers=auth_headers)

    assert r.status_code == 400
    assert "Invalid file type" in r.json()["error"]


@pytest.mark.asyncio
async def test_remove_image_roundtrip(client, auth_headers, store):
    up = await client.post(
        "/v1/upload-image",
        files={"image": ("a.jpg", make_image(50, 50), "image/jpeg")},
        headers=auth_headers,
    )
    key = up.json()["data"]["key"]

    r = await client.request("DELETE", "/v1/remove-image", json={"key": key}, headers=auth_headers)

    assert r.status_code == 200
    assert r.json()["data"]["key"] == key
    assert r.json()["message"] == "Image successfully deleted"
    assert not store.exists(key)


@pytest.mark.asyncio
async def test_remove_image_of_other_user_is_403(client, auth_headers, store):
    r = await client.request(
        "DELETE", "/v1/remove-image", json={"key": f"uploads/{OTHER_ID}/1_a.jpg"}, headers=auth_headers
    )

    assert r.status_code == 403
    assert r.json() == {"error": "Unauthorized to access this resource"}
    assert store.deletes == []


@pytest.mark.asyncio
async def test_remove_images_foreign_key_aborts_batch(client, auth_headers, store):
    keys = [f"uploads/{OWNER_ID}/1_a.jpg", f"uploads/{OTHER_ID}/1_b.jpg"]

    r = await client.request("DELETE", "/v1/remove-images", json={"keys": keys}, headers=auth_headers)

    assert r.status_code == 403
    assert store.deletes == []


@pytest.mark.asyncio
async def test_remove_images_partial_is_207(client, auth_headers):
    up = await client.post(
        "/v1/upload-image",
        files={"image": ("a.jpg", make_image(50, 50), "image/jpeg")},
        headers=auth_headers,
    )
    key = up.json()["data"]["key"]
    missing = f"uploads/{OWNER_ID}/1_missing.jpg"

    r = await client.request("DELETE", "/v1/remove-images", json={"keys": [key, missing]}, headers=auth_headers)

    assert r.status_code == 207
    body = r.json()
    assert body["status"] == "partial"
    assert body["data"]["deleted_count"] == 1
    assert body["data"]["failed_deletes"] == [{"key": missing, "error": "File not found"}]


@pytest.mark.asyncio
async def test_remove_images_requires_array(client, auth_headers):
    r = await client.request("DELETE", "/v1/remove-images", json={"keys": "uploads/x"}, headers=auth_headers)

    assert r.status_code == 400
    assert r.json() == {"error": "Keys must be provided as an array"}


@pytest.mark.asyncio
async def test_create_ad(client, auth_headers, user_repo):
    r = await client.post("/v1/create-ad", json=AD_BODY, headers=auth_headers)

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    ad = body["ad"]
    assert ad["slug"].startswith("house-for-sell-address-5-pitt-st-sydney-price-1200000-")
    assert ad["location"] == {"type": "Point", "coordinates": [151.2093, -33.8688]}
    assert ad["property_type"] == "House"
    assert "Seller" in user_repo.roles[OWNER_ID]


@pytest.mark.asyncio
async def test_create_ad_unknown_address_is_404(client, auth_headers, geocoder, listing_repo):
    geocoder.error = NotFoundError("No results found for address: ???")

    r = await client.post("/v1/create-ad", json={**AD_BODY, "address": "???"}, headers=auth_headers)

    assert r.status_code == 404
    assert r.json() == {"error": "Address not found"}
    assert listing_repo.rows == {}


@pytest.mark.asyncio
async def test_create_ad_missing_description_is_400(client, auth_headers, geocoder):
    r = await client.post("/v1/create-ad", json={**AD_BODY, "description": ""}, headers=auth_headers)

    assert r.status_code == 400
    assert r.json() == {"error": "Description is required"}
    assert geocoder.calls == []


@pytest.mark.asyncio
async def test_read_ad_and_pages(client, auth_headers, listing_repo):
    slugs = []
    for _ in range(3):
        r = await client.post("/v1/create-ad", json=AD_BODY, headers=auth_headers)
        slugs.append(r.json()["ad"]["slug"])

    r = await client.get(f"/v1/ad/{slugs[0]}")
    assert r.status_code == 200
    body = r.json()
    assert body["ad"]["slug"] == slugs[0]
    assert body["ad"]["views"] == 0
    assert listing_repo.view_hits == {body["ad"]["id"]: 1}
    assert "geocode" not in body["ad"]
    assert {a["slug"] for a in body["related"]} == set(slugs[1:])

    r = await client.get("/v1/ads-for-sell/2")
    assert r.status_code == 200
    page = r.json()
    assert (page["current_page"], page["total_pages"], page["total_ads"]) == (2, 2, 3)
    assert len(page["ads"]) == 1

    r = await client.get("/v1/ads-for-rent/1")
    assert r.json()["ads"] == []


@pytest.mark.asyncio
async def test_read_unknown_ad_is_404(client):
    r = await client.get("/v1/ad/nope")
    assert r.status_code == 404
    assert r.json() == {"error": "Ad not found"}


@pytest.mark.asyncio
async def test_bad_page_number_is_400(client):
    r = await client.get("/v1/ads-for-sell/abc")
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid page number"}


@pytest.mark.asyncio
async def test_maps_nearby(client):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"places": [{"displayName": {"text": "Harbour Cafe"}}]})

    places = PlacesClient(http=ProviderHttpClient(transport=httpx.MockTransport(handler)), api_key="k", base_url="https://places.test")
    app.dependency_overrides[get_places_client] = lambda: places

    r = await client.get("/v1/maps/nearby", params={"latitude": -33.86, "longitude": 151.21})
    assert r.status_code == 200
    assert r.json()["places"][0]["displayName"]["text"] == "Harbour Cafe"

    r = await client.get("/v1/maps/nearby", params={"latitude": -33.86})
    assert r.status_code == 400
    assert r.json() == {"error": "Missing latitude/longitude"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides, field",
    [({"landsize": "five hundred"}, "landsize"), ({"bedrooms": "three"}, "bedrooms"), ({"address": 42}, "address")],
)
async def test_malformed_ad_fields_are_400_with_error_message(client, auth_headers, geocoder, overrides, field):
    r = await client.post("/v1/create-ad", json={**AD_BODY, **overrides}, headers=auth_headers)

    assert r.status_code == 400
    body = r.json()
    assert list(body) == ["error"]
    assert body["error"].startswith(f"Invalid {field}:")
    assert geocoder.calls == []
