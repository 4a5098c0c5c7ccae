"""Tests for the location service."""

import httpx
import pytest
from freezegun import freeze_time

from rentcrowd.models.location import Coordinates, LocationAddress
from rentcrowd.models.property import Property
from rentcrowd.services.location import (
    FixedLocationProvider,
    LocationService,
    NominatimGeocoder,
    PERMISSION_DENIED,
    PERMISSION_UNDETERMINED,
)
from rentcrowd.utils.errors import LocationError
from tests.utils.factories import create_property_data


class FailingGeocodeProvider(FixedLocationProvider):
    async def reverse_geocode(self, latitude, longitude):
        raise RuntimeError("geocoder offline")

    async def geocode(self, address):
        return [Coordinates(latitude=6.45, longitude=3.39, accuracy=5.0)]


@pytest.mark.unit
def test_calculate_distance_one_degree_latitude():
    """Test that one degree of latitude is about 111.19 km."""
    distance = LocationService.calculate_distance(0.0, 0.0, 1.0, 0.0)

    assert distance == pytest.approx(111.19, abs=0.01)


@pytest.mark.unit
def test_calculate_distance_same_point():
    """Test zero distance between identical points."""
    assert LocationService.calculate_distance(6.5244, 3.3792, 6.5244, 3.3792) == 0


@pytest.mark.unit
def test_calculate_travel_time():
    """Test travel time at the average city speed."""
    assert LocationService.calculate_travel_time(40) == pytest.approx(60)
    assert LocationService.calculate_travel_time(10) == pytest.approx(15)


@pytest.mark.unit
def test_travel_threshold_boundary():
    """Test the 30-minute threshold: 20 km is inside, 21 km is not."""
    assert LocationService.is_within_travel_threshold(20) is True
    assert LocationService.is_within_travel_threshold(21) is False


@pytest.mark.unit
def test_distance_to_property():
    """Test distance from a point to a listing's GeoJSON location."""
    data = create_property_data()
    data["address"]["location"]["coordinates"] = [3.3792, 7.5244]
    prop = Property.model_validate(data)

    distance = LocationService.distance_to_property(Coordinates(latitude=6.5244, longitude=3.3792), prop)

    assert distance == pytest.approx(111.19, abs=0.01)


@pytest.mark.unit
def test_distance_to_property_without_location():
    """Test that a listing without coordinates has no distance."""
    prop = Property.model_validate(create_property_data(address=None))

    assert LocationService.distance_to_property(Coordinates(latitude=0, longitude=0), prop) is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_current_location_requires_permission(storage):
    """Test that a missing permission raises LocationError."""
    provider = FixedLocationProvider(latitude=6.5, longitude=3.3, granted=False)
    service = LocationService(provider, storage)

    with pytest.raises(LocationError):
        await service.get_current_location()

    assert service.location_permission == PERMISSION_UNDETERMINED


@pytest.mark.unit
@pytest.mark.asyncio
async def test_request_permission_denied(storage):
    """Test that a denied prompt is remembered."""
    service = LocationService(FixedLocationProvider(granted=False), storage)

    assert await service.request_location_permission() is False
    assert service.location_permission == PERMISSION_DENIED
    assert await service.has_location_permission() is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_position_unavailable(storage):
    """Test that a provider with no fix raises LocationError."""
    service = LocationService(FixedLocationProvider(granted=True), storage)

    with pytest.raises(LocationError):
        await service.get_current_location()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cached_location_served_within_expiry(storage):
    """Test that a fix younger than 30 minutes is reused and an older one is not."""
    provider = FixedLocationProvider(latitude=6.5244, longitude=3.3792)
    service = LocationService(provider, storage)

    with freeze_time("2026-03-10 12:00:00") as frozen_time:
        first = await service.get_current_location()
        assert first.timestamp == 1773144000000

        provider.latitude = 6.6
        frozen_time.tick(delta=29 * 60)
        cached = await service.get_current_location()
        assert cached.latitude == 6.5244

        frozen_time.tick(delta=2 * 60)
        fresh = await service.get_current_location()
        assert fresh.latitude == 6.6


@pytest.mark.unit
@pytest.mark.asyncio
async def test_force_refresh_bypasses_cache(storage):
    """Test that force_refresh always asks the provider."""
    provider = FixedLocationProvider(latitude=6.5244, longitude=3.3792)
    service = LocationService(provider, storage)

    await service.get_current_location()
    provider.latitude = 6.6

    refreshed = await service.get_current_location(force_refresh=True)

    assert refreshed.latitude == 6.6
    assert service.last_known_location == refreshed


@pytest.mark.unit
@pytest.mark.asyncio
async def test_corrupt_cache_is_ignored(storage):
    """Test that an unreadable cache entry reads as absent."""
    await storage.set_item("user_location_cache", "{broken")
    service = LocationService(FixedLocationProvider(latitude=1, longitude=2), storage)

    assert await service.get_cached_location() is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_geocoding_without_geocoder(location_service):
    """Test that geocoding without a backend finds nothing."""
    assert await location_service.get_address_from_coordinates(6.5, 3.3) is None
    assert await location_service.get_coordinates_from_address("Lekki Phase 1") is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_reverse_geocoding_failure_raises_location_error(storage):
    """Test that geocoder failures surface as LocationError."""
    service = LocationService(FailingGeocodeProvider(latitude=1, longitude=2), storage)

    with pytest.raises(LocationError):
        await service.get_address_from_coordinates(6.5, 3.3)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_forward_geocoding_drops_accuracy(storage):
    """Test that forward geocoding returns only latitude and longitude."""
    service = LocationService(FailingGeocodeProvider(latitude=1, longitude=2), storage)

    coords = await service.get_coordinates_from_address("Victoria Island")

    assert coords == Coordinates(latitude=6.45, longitude=3.39)


@pytest.mark.unit
def test_location_address_defaults():
    """Test that every address field is optional."""
    assert LocationAddress().city is None


def nominatim(routes):
    """Geocoder over a mock transport; routes maps path to (status, json body)."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        status_code, body = routes[request.url.path]
        return httpx.Response(status_code, json=body)

    geocoder = NominatimGeocoder(base_url="http://geocoder.test", transport=httpx.MockTransport(handler))
    return geocoder, seen


@pytest.mark.unit
@pytest.mark.asyncio
async def test_nominatim_reverse_maps_address():
    """Test mapping a Nominatim reverse result onto LocationAddress."""
    geocoder, seen = nominatim({"/reverse": (200, {
        "name": "Tafawa Balewa Square",
        "address": {
            "road": "Awolowo Road",
            "suburb": "Ikoyi",
            "town": "Lagos Island",
            "county": "Eti-Osa",
            "state": "Lagos State",
            "postcode": "101233",
            "country": "Nigeria",
            "country_code": "ng",
        },
    })})

    addresses = await geocoder.reverse(6.45, 3.39)
    await geocoder.aclose()

    assert addresses == [LocationAddress(
        name="Tafawa Balewa Square",
        street="Awolowo Road",
        district="Ikoyi",
        city="Lagos Island",
        subregion="Eti-Osa",
        region="Lagos State",
        postal_code="101233",
        country="Nigeria",
        iso_country_code="NG",
    )]
    params = seen[0].url.params
    assert params["lat"] == "6.45"
    assert params["lon"] == "3.39"
    assert params["format"] == "jsonv2"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_nominatim_reverse_without_address(storage):
    """Test that a result with no address yields no match."""
    geocoder, _ = nominatim({"/reverse": (200, {"error": "Unable to geocode"})})
    service = LocationService(FixedLocationProvider(latitude=1.0, longitude=2.0, geocoder=geocoder), storage)

    assert await geocoder.reverse(0.0, 0.0) == []
    assert await service.get_address_from_coordinates(0.0, 0.0) is None
    await geocoder.aclose()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_nominatim_search():
    """Test forward geocoding returns the first match as coordinates."""
    geocoder, seen = nominatim({"/search": (200, [{"lat": "6.4281", "lon": "3.4219", "display_name": "Lekki"}])})

    coordinates = await geocoder.search("Lekki Phase 1")
    await geocoder.aclose()

    assert coordinates == [Coordinates(latitude=6.4281, longitude=3.4219)]
    assert seen[0].url.params["q"] == "Lekki Phase 1"
    assert seen[0].url.params["limit"] == "1"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_nominatim_server_error_becomes_location_error(storage):
    """Test that a non-2xx geocoder response surfaces as LocationError."""
    geocoder, _ = nominatim({
        "/reverse": (500, {"error": "internal"}),
        "/search": (503, {"error": "busy"}),
    })
    service = LocationService(FixedLocationProvider(latitude=1.0, longitude=2.0, geocoder=geocoder), storage)

    with pytest.raises(LocationError):
        await service.get_address_from_coordinates(6.45, 3.39)
    with pytest.raises(LocationError):
        await service.get_coordinates_from_address("Lekki Phase 1")
    await geocoder.aclose()
