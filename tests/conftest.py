import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("TELEMETRY_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("STORAGE_BACKEND", "local")

import httpx
import pytest

from realty.core.security import build_access_token
from realty.main import app
from realty.services.listings import ListingIngestionService, ListingQueryService
from realty.services.media import MediaIngestionService
from realty.services.providers import get_listing_service, get_media_service, get_query_service
from realty.services.storage import ObjectStoreGateway

from fakes import FakeGeocoder, InMemoryListingRepository, InMemoryUserRepository, RecordingStore

OWNER_ID = "usr_owner"
OTHER_ID = "usr_other"


@pytest.fixture
def store(tmp_path):
    return RecordingStore(tmp_path / "bucket")


@pytest.fixture
def gateway(store):
    return ObjectStoreGateway(store)


@pytest.fixture
def media(gateway):
    return MediaIngestionService(gateway)


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def listing_repo():
    return InMemoryListingRepository()


@pytest.fixture
def user_repo():
    repo = InMemoryUserRepository()
    repo.roles[OWNER_ID] = ["Buyer"]
    return repo


@pytest.fixture
def listing_service(geocoder, listing_repo, user_repo):
    return ListingIngestionService(geocoder=geocoder, listings=listing_repo, users=user_repo)


@pytest.fixture
def query_service(listing_repo):
    return ListingQueryService(listings=listing_repo, page_size=2)


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {build_access_token(user_id=OWNER_ID)}"}


@pytest.fixture
async def client(media, listing_service, query_service):
    """
    HTTP client against the app with orchestrators wired to in-memory collaborators.
    """
    app.dependency_overrides[get_media_service] = lambda: media
    app.dependency_overrides[get_listing_service] = lambda: listing_service
    app.dependency_overrides[get_query_service] = lambda: query_service

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
