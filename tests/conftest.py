"""Shared pytest fixtures and configuration."""

import os
import pytest
from freezegun import freeze_time

# Test environment variables, set before rentcrowd reads its config
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RENTCROWD_API_URL", "http://testserver/api")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from rentcrowd.models.location import Coordinates  # noqa: E402
from rentcrowd.services.api_client import ApiClient  # noqa: E402
from rentcrowd.services.booking_store import BookingStore  # noqa: E402
from rentcrowd.services.location import FixedLocationProvider, LocationService  # noqa: E402
from rentcrowd.services.property_store import PropertyStore  # noqa: E402
from rentcrowd.services.session_store import SessionStore  # noqa: E402
from rentcrowd.services.storage import MemoryStorage  # noqa: E402
from tests.utils.helpers import BASE_URL, FakeApi  # noqa: E402

LAGOS = Coordinates(latitude=6.5244, longitude=3.3792)


@pytest.fixture
def storage():
    """Empty in-memory durable storage."""
    return MemoryStorage()


@pytest.fixture
def fake_api():
    """Route table behind an httpx.MockTransport."""
    return FakeApi()


@pytest.fixture
def api_client(storage, fake_api):
    """ApiClient talking to the fake API."""
    return ApiClient(storage, base_url=BASE_URL, transport=fake_api.transport)


@pytest.fixture
def location_provider():
    """Device location fixed in Lagos with permission granted."""
    return FixedLocationProvider(latitude=LAGOS.latitude, longitude=LAGOS.longitude, granted=True)


@pytest.fixture
def location_service(location_provider, storage):
    return LocationService(location_provider, storage)


@pytest.fixture
def session_store(api_client, storage):
    return SessionStore(api_client, storage)


@pytest.fixture
def property_store(api_client, location_service):
    return PropertyStore(api_client, location_service)


@pytest.fixture
def booking_store(api_client):
    return BookingStore(api_client)


@pytest.fixture
def state_log():
    """Collects every state a store publishes; use with store.subscribe(state_log.append)."""
    return []


@pytest.fixture
def freeze_time_fixture():
    """Fixture for freezing time in tests."""
    with freeze_time("2026-03-10 12:00:00") as frozen_time:
        yield frozen_time
