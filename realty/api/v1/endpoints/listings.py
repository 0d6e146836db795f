from fastapi import APIRouter, Depends

from realty.models.listing import Listing
from realty.schemas.listing import (
    CreatedListingOut,
    CreateListingResponse,
    ListingCreate,
    ListingDetailResponse,
    ListingOut,
    ListingPageResponse,
    OwnerOut,
    PointOut,
)
from realty.services.auth import Actor, get_actor
from realty.services.listings import ListingIngestionService, ListingQueryService
from realty.services.providers import get_listing_service, get_query_service

router = APIRouter()


def _listing_out(r: Listing) -> ListingOut:
    return ListingOut(
        id=r.id,
        slug=r.slug,
        owner=OwnerOut.model_validate(r.owner) if r.owner is not None else None,
        address=r.address,
        formatted_address=r.formatted_address,
        location=PointOut(coordinates=[r.longitude, r.latitude]),
        property_type=r.property_type,
        action=r.action,
        price=r.price,
        bedrooms=r.bedrooms,
        bathrooms=r.bathrooms,
        carpark=r.carpark,
        landsize=r.landsize,
        landsize_type=r.landsize_type,
        title=r.title,
        description=r.description,
        features=r.features,
        nearby=r.nearby,
        inspection_time=r.inspection_time,
        photos=list(r.photos or []),
        published=r.published,
        status=r.status,
        views=r.views,
        created_at=r.created_at,
        updated_at=r.updated_at,
    )


@router.post("/create-ad", response_model=CreateListingResponse)
async def create_ad(
    payload: ListingCreate,
    actor: Actor = Depends(get_actor),
    listings: ListingIngestionService = Depends(get_listing_service),
) -> CreateListingResponse:
    created = await listings.create_listing(actor.user_id, payload)
    return CreateListingResponse(
        ad=CreatedListingOut(
            id=created.id,
            slug=created.slug,
            photos=created.photos,
            address=created.address,
            price=created.price,
            property_type=created.property_type,
            action=created.action,
            location=PointOut(coordinates=[created.location.longitude, created.location.latitude]),
        )
    )


@router.get("/ad/{slug}", response_model=ListingDetailResponse)
async def read_ad(slug: str, query: ListingQueryService = Depends(get_query_service)) -> ListingDetailResponse:
    detail = await query.get_detail(slug)
    return ListingDetailResponse(ad=_listing_out(detail.listing), related=[_listing_out(r) for r in detail.related])


async def _page(action: str, page: str, query: ListingQueryService) -> ListingPageResponse:
    result = await query.browse(action, page)
    return ListingPageResponse(
        ads=[_listing_out(r) for r in result.listings],
        current_page=result.page,
        total_pages=result.total_pages,
        total_ads=result.total,
    )


@router.get("/ads-for-sell/{page}", response_model=ListingPageResponse)
async def ads_for_sell(page: str, query: ListingQueryService = Depends(get_query_service)) -> ListingPageResponse:
    return await _page("Sell", page, query)


@router.get("/ads-for-rent/{page}", response_model=ListingPageResponse)
async def ads_for_rent(page: str, query: ListingQueryService = Depends(get_query_service)) -> ListingPageResponse:
    return await _page("Rent", page, query)
