"""Tests for the application container."""

import pytest

from rentcrowd.app import RentCrowdApp
from rentcrowd.services.location import FixedLocationProvider
from rentcrowd.services.storage import MemoryStorage
from rentcrowd.utils.errors import ApiError
from tests.utils.factories import create_user_data, page_of
from tests.utils.helpers import BASE_URL, FakeApi, persisted_session_json


def build_app(fake_api: FakeApi, storage: MemoryStorage) -> RentCrowdApp:
    return RentCrowdApp(
        storage=storage,
        location_provider=FixedLocationProvider(latitude=6.5244, longitude=3.3792),
        base_url=BASE_URL,
        transport=fake_api.transport,
    )


@pytest.mark.unit
@pytest.mark.asyncio
async def test_start_restores_session():
    """Test that entering the app hydrates the session."""
    user = create_user_data()
    storage = MemoryStorage({"auth-storage": persisted_session_json("saved-token", user)})

    async with build_app(FakeApi(), storage) as app:
        assert app.session.state.is_authenticated is True
        assert app.api.default_auth_header == "Bearer saved-token"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unauthorized_response_signs_session_out():
    """Test that a 401 from any store drops the in-memory session too."""
    fake_api = FakeApi()
    user = create_user_data()
    storage = MemoryStorage({"auth-storage": persisted_session_json("expired-token", user)})
    fake_api.add("GET", "/tenant/viewings", {"error": "Token expired"}, status_code=401)

    async with build_app(fake_api, storage) as app:
        with pytest.raises(ApiError):
            await app.bookings.fetch_tenant_viewings()

        assert app.bookings.state.error == "Token expired"
        assert app.session.state.is_authenticated is False
        assert app.session.state.token is None
        assert app.session.state.user.id == user["id"]
        assert app.api.default_auth_header is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stores_share_one_client():
    """Test that a login is visible to requests from the other stores."""
    fake_api = FakeApi()
    fake_api.add("POST", "/auth/login", {"success": True, "token": "shared-token", "user": create_user_data()})
    fake_api.add("GET", "/auth/me", {"success": True, "data": {"user": create_user_data()}})
    fake_api.add("GET", "/properties/nearby", page_of([]))

    async with build_app(fake_api, MemoryStorage()) as app:
        await app.session.login({"email": "ada@example.com", "password": "secret123"})
        await app.properties.fetch_nearby_properties()

    nearby = fake_api.requests_to("GET", "/properties/nearby")[0]
    assert nearby.headers["Authorization"] == "Bearer shared-token"
