import logging

import pytest

from realty.core.errors import (
    ConflictError,
    NotFoundError,
    ServiceUnavailableError,
    UpstreamError,
    ValidationError,
)
from realty.models.user import User
from realty.schemas.listing import ListingCreate
from realty.services.listings import (
    ListingIngestionService,
    ListingPage,
    ListingQueryService,
    build_slug,
    normalize_photos,
    slugify,
)

from conftest import OWNER_ID
from fakes import FakeGeocoder, InMemoryListingRepository, InMemoryUserRepository


def listing_body(**overrides) -> ListingCreate:
    body = {
        "photos": ["https://cdn.test/uploads/usr_owner/1_front.jpg"],
        "description": "Sunny two bedroom with harbour glimpses",
        "address": "1 Macquarie St, Sydney",
        "propertyType": "Apartment",
        "price": "950000",
        "action": "Sell",
        "bedrooms": 2,
    }
    body.update(overrides)
    return ListingCreate.model_validate(body)


def test_slugify_strips_punctuation_and_accents():
    assert slugify("12 O'Brien St. (Rear)") == "12-obrien-st-rear"
    assert slugify("Café  Déjà-vu!") == "cafe-deja-vu"
    assert slugify("$450,000") == "450-000"
    assert slugify("") == ""


def test_build_slug_layout():
    slug = build_slug(property_type="House", action="Rent", address="5 Pitt St", price="650 pw", token="ab12cd")
    assert slug == "house-for-rent-address-5-pitt-st-price-650-pw-ab12cd"


def test_normalize_photos_accepts_urls_and_descriptors():
    assert normalize_photos([" https://a/1.jpg ", {"url": "https://a/2.jpg", "key": "k"}]) == [
        "https://a/1.jpg",
        "https://a/2.jpg",
    ]
    with pytest.raises(ValidationError):
        normalize_photos([{"key": "no-url"}])


@pytest.mark.asyncio
async def test_create_listing_geocodes_persists_and_promotes(listing_service, geocoder, listing_repo, user_repo):
    created = await listing_service.create_listing(OWNER_ID, listing_body())

    assert geocoder.calls == ["1 Macquarie St, Sydney"]
    assert created.slug.startswith("apartment-for-sell-address-1-macquarie-st-sydney-price-950000-")
    assert len(created.slug.rsplit("-", 1)[-1]) == 6
    assert (created.location.longitude, created.location.latitude) == (151.2093, -33.8688)
    assert created.photos == ["https://cdn.test/uploads/usr_owner/1_front.jpg"]

    row = listing_repo.rows[created.slug]
    assert row.owner_id == OWNER_ID
    assert row.status == "In market"
    assert row.published is True
    assert row.views == 0
    assert row.geocode == {"place_id": "ChIJ-test"}
    assert user_repo.roles[OWNER_ID] == ["Buyer", "Seller"]


@pytest.mark.asyncio
async def test_identical_input_gets_distinct_slugs(listing_service, listing_repo):
    a = await listing_service.create_listing(OWNER_ID, listing_body())
    b = await listing_service.create_listing(OWNER_ID, listing_body())

    assert a.slug != b.slug
    assert len(listing_repo.rows) == 2


@pytest.mark.asyncio
async def test_seller_role_is_added_once(listing_service, user_repo):
    for _ in range(3):
        await listing_service.create_listing(OWNER_ID, listing_body())

    assert user_repo.roles[OWNER_ID].count("Seller") == 1
    assert user_repo.calls == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"photos": []}, "Photos is required"),
        ({"description": "  "}, "Description is required"),
        ({"address": None}, "Address is required"),
        ({"propertyType": ""}, "Property Type is required"),
        ({"price": None}, "Price is required"),
        ({"action": None}, "Action is required"),
        ({"photos": [], "description": ""}, "Photos is required"),
        ({"propertyType": "Castle"}, "Property Type must be one of"),
        ({"action": "Lease"}, "Action must be one of"),
        ({"price": 0}, "Price is required"),
    ],
)
async def test_missing_fields_rejected_before_geocoding(listing_service, geocoder, listing_repo, overrides, message):
    with pytest.raises(ValidationError, match=message):
        await listing_service.create_listing(OWNER_ID, listing_body(**overrides))

    assert geocoder.calls == []
    assert listing_repo.rows == {}


@pytest.mark.asyncio
async def test_land_requires_landsize_then_type(listing_service, geocoder):
    with pytest.raises(ValidationError, match="Landsize is required"):
        await listing_service.create_listing(OWNER_ID, listing_body(propertyType="Land"))
    with pytest.raises(ValidationError, match="Landsize Type is required"):
        await listing_service.create_listing(OWNER_ID, listing_body(propertyType="Land", landsize=450))
    assert geocoder.calls == []

    created = await listing_service.create_listing(
        OWNER_ID, listing_body(propertyType="Land", landsize=450, landsizeType="m²")
    )
    assert created.property_type == "Land"


@pytest.mark.asyncio
async def test_unknown_address_is_not_found_and_nothing_written(listing_repo, user_repo):
    geocoder = FakeGeocoder(error=NotFoundError("No results found for address: ???"))
    svc = ListingIngestionService(geocoder=geocoder, listings=listing_repo, users=user_repo)

    with pytest.raises(NotFoundError, match="Address not found") as ei:
        await svc.create_listing(OWNER_ID, listing_body(address="???"))

    assert "No results found" in ei.value.context["cause"]
    assert listing_repo.rows == {}
    assert user_repo.calls == 0


@pytest.mark.asyncio
async def test_geocoder_outage_is_service_unavailable(listing_repo, user_repo):
    geocoder = FakeGeocoder(error=UpstreamError("Geocoding provider error: OVER_QUERY_LIMIT"))
    svc = ListingIngestionService(geocoder=geocoder, listings=listing_repo, users=user_repo)

    with pytest.raises(ServiceUnavailableError, match="Geocoding service unavailable"):
        await svc.create_listing(OWNER_ID, listing_body())

    assert listing_repo.rows == {}


@pytest.mark.asyncio
async def test_slug_conflict_surfaces_and_skips_role(geocoder, user_repo):
    svc = ListingIngestionService(
        geocoder=geocoder, listings=InMemoryListingRepository(force_conflict=True), users=user_repo
    )

    with pytest.raises(ConflictError, match="This property already exists"):
        await svc.create_listing(OWNER_ID, listing_body())

    assert user_repo.calls == 0


@pytest.mark.asyncio
async def test_role_failure_does_not_fail_creation(geocoder, listing_repo, caplog):
    svc = ListingIngestionService(geocoder=geocoder, listings=listing_repo, users=InMemoryUserRepository(fail=True))

    with caplog.at_level(logging.ERROR, logger="realty.services.listings"):
        created = await svc.create_listing(OWNER_ID, listing_body())

    assert created.slug in listing_repo.rows
    assert "role promotion failed" in caplog.text


async def _seed(service: ListingIngestionService, n: int, **overrides) -> list[str]:
    return [(await service.create_listing(OWNER_ID, listing_body(**overrides))).slug for _ in range(n)]


@pytest.mark.asyncio
async def test_detail_counts_views_and_lists_related(listing_service, query_service, listing_repo):
    listing_repo.owners[OWNER_ID] = User(id=OWNER_ID, email="o@example.com", name="Olive")
    slug, *others = await _seed(listing_service, 5)
    await _seed(listing_service, 1, action="Rent")

    detail = await query_service.get_detail(slug)

    assert detail.listing.slug == slug
    assert detail.listing.owner.name == "Olive"
    assert len(detail.related) == 3
    assert all(r.slug in others for r in detail.related)

    await query_service.get_detail(slug)
    assert listing_repo.view_hits == {detail.listing.id: 2}


@pytest.mark.asyncio
async def test_detail_survives_view_count_failure(listing_service, query_service, listing_repo):
    (slug,) = await _seed(listing_service, 1)
    listing_repo.fail_views = True

    detail = await query_service.get_detail(slug)

    assert detail.listing.slug == slug
    assert detail.related == []


@pytest.mark.asyncio
async def test_detail_unknown_slug(query_service):
    with pytest.raises(NotFoundError, match="Ad not found"):
        await query_service.get_detail("no-such-ad")


@pytest.mark.asyncio
async def test_browse_pages_by_action(listing_service, query_service):
    await _seed(listing_service, 3)
    await _seed(listing_service, 1, action="Rent")

    first = await query_service.browse("Sell", "1")
    last = await query_service.browse("Sell", 2)

    assert (first.total, first.total_pages, len(first.listings)) == (3, 2, 2)
    assert len(last.listings) == 1
    assert all(r.action == "Sell" for r in first.listings + last.listings)


@pytest.mark.asyncio
@pytest.mark.parametrize("page", ["abc", "0", -1, None])
async def test_browse_rejects_bad_page(query_service, page):
    with pytest.raises(ValidationError, match="Invalid page number"):
        await query_service.browse("Sell", page)


def test_page_count_for_empty_result():
    assert ListingPage(listings=[], page=1, total=0, page_size=2).total_pages == 0
    assert ListingPage(listings=[], page=1, total=5, page_size=2).total_pages == 3


def test_query_service_defaults():
    svc = ListingQueryService(listings=InMemoryListingRepository())
    assert (svc.related_radius_m, svc.related_limit, svc.page_size) == (50_000, 3, 2)


@pytest.mark.asyncio
async def test_zero_landsize_counts_as_missing_but_text_zero_price_does_not(listing_service):
    with pytest.raises(ValidationError, match="Landsize is required"):
        await listing_service.create_listing(OWNER_ID, listing_body(propertyType="Land", landsize=0, landsizeType="m²"))

    created = await listing_service.create_listing(OWNER_ID, listing_body(price="0"))
    assert created.price == "0"
