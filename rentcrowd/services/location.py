"""Geolocation service: device position with a time-boxed cache, geocoding, distances."""

import math
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from rentcrowd.models.constants import (
    AVERAGE_SPEED_KMH,
    DISTANCE_THRESHOLD_MINUTES,
    EARTH_RADIUS_KM,
)
from rentcrowd.models.location import Coordinates, LocationAddress
from rentcrowd.models.property import Property
from rentcrowd.services.storage import KeyValueStorage
from rentcrowd.utils.config import ClientConfig
from rentcrowd.utils.errors import LocationError, StorageError
from rentcrowd.utils.logging import get_structured_logger, timed

logger = get_structured_logger(__name__)

PERMISSION_GRANTED = "granted"
PERMISSION_DENIED = "denied"
PERMISSION_UNDETERMINED = "undetermined"


class LocationProvider(ABC):
    """Platform location API."""

    @abstractmethod
    async def request_permission(self) -> str:
        """Prompt for foreground location access; returns the permission status."""

    @abstractmethod
    async def get_permission_status(self) -> str:
        ...

    @abstractmethod
    async def get_current_position(self) -> Coordinates:
        ...

    @abstractmethod
    async def reverse_geocode(self, latitude: float, longitude: float) -> list[LocationAddress]:
        ...

    @abstractmethod
    async def geocode(self, address: str) -> list[Coordinates]:
        ...


class NominatimGeocoder:
    """Forward/reverse geocoding against an OpenStreetMap Nominatim server."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url or ClientConfig.GEOCODER_URL,
            headers={"User-Agent": user_agent or ClientConfig.GEOCODER_USER_AGENT},
            transport=transport,
            timeout=timeout,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def reverse(self, latitude: float, longitude: float) -> list[LocationAddress]:
        response = await self._client.get(
            "/reverse",
            params={"lat": latitude, "lon": longitude, "format": "jsonv2", "addressdetails": 1},
        )
        response.raise_for_status()
        body = response.json()
        if not body or "address" not in body:
            return []
        return [_address_from_nominatim(body)]

    async def search(self, query: str) -> list[Coordinates]:
        response = await self._client.get("/search", params={"q": query, "format": "jsonv2", "limit": 1})
        response.raise_for_status()
        return [
            Coordinates(latitude=float(item["lat"]), longitude=float(item["lon"]))
            for item in response.json()
        ]


def _address_from_nominatim(body: dict[str, Any]) -> LocationAddress:
    address = body.get("address", {})
    return LocationAddress(
        name=body.get("name") or address.get("house_number"),
        street=address.get("road"),
        district=address.get("suburb") or address.get("neighbourhood"),
        city=address.get("city") or address.get("town") or address.get("village"),
        subregion=address.get("county"),
        region=address.get("state"),
        postal_code=address.get("postcode"),
        country=address.get("country"),
        iso_country_code=(address.get("country_code") or "").upper() or None,
    )


class FixedLocationProvider(LocationProvider):
    """
    Provider that reports a configured position.

    Used where there is no location sensor (desktop, CI). Geocoding is
    delegated to an optional NominatimGeocoder.
    """

    def __init__(
        self,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        granted: bool = True,
        geocoder: Optional[NominatimGeocoder] = None,
    ):
        self.latitude = latitude
        self.longitude = longitude
        self.granted = granted
        self.geocoder = geocoder
        self._prompted = False

    async def request_permission(self) -> str:
        self._prompted = True
        return PERMISSION_GRANTED if self.granted else PERMISSION_DENIED

    async def get_permission_status(self) -> str:
        if self.granted:
            return PERMISSION_GRANTED
        return PERMISSION_DENIED if self._prompted else PERMISSION_UNDETERMINED

    async def get_current_position(self) -> Coordinates:
        if self.latitude is None or self.longitude is None:
            raise LocationError("Current position is unavailable")
        return Coordinates(latitude=self.latitude, longitude=self.longitude)

    async def reverse_geocode(self, latitude: float, longitude: float) -> list[LocationAddress]:
        if self.geocoder is None:
            return []
        return await self.geocoder.reverse(latitude, longitude)

    async def geocode(self, address: str) -> list[Coordinates]:
        if self.geocoder is None:
            return []
        return await self.geocoder.search(address)


class LocationService:
    """Location access for the stores and UI."""

    def __init__(
        self,
        provider: LocationProvider,
        storage: KeyValueStorage,
        cache_key: str = ClientConfig.LOCATION_CACHE_KEY,
        cache_expiry_seconds: int = ClientConfig.LOCATION_CACHE_EXPIRY_SECONDS,
    ):
        self.provider = provider
        self.storage = storage
        self.cache_key = cache_key
        self.cache_expiry_ms = cache_expiry_seconds * 1000
        self.location_permission: Optional[str] = None
        self.last_known_location: Optional[Coordinates] = None

    async def request_location_permission(self) -> bool:
        try:
            status = await self.provider.request_permission()
        except Exception as e:
            logger.error("Error requesting location permission", error=str(e))
            return False
        self.location_permission = status
        return status == PERMISSION_GRANTED

    async def has_location_permission(self) -> bool:
        if self.location_permission:
            return self.location_permission == PERMISSION_GRANTED

        try:
            status = await self.provider.get_permission_status()
        except Exception as e:
            logger.error("Error checking location permission", error=str(e))
            return False
        self.location_permission = status
        return status == PERMISSION_GRANTED

    @timed("get_current_location")
    async def get_current_location(self, force_refresh: bool = False) -> Coordinates:
        """
        Current device position.

        A cached fix younger than the expiry window is returned unless
        force_refresh is set. Raises LocationError without permission.
        """
        if not await self.has_location_permission():
            raise LocationError("Location permission not granted")

        if not force_refresh:
            cached = await self.get_cached_location()
            if cached:
                self.last_known_location = cached
                return cached

        try:
            position = await self.provider.get_current_position()
        except LocationError:
            raise
        except Exception as e:
            logger.error("Error getting current location", error=str(e))
            raise LocationError(f"Failed to get current location: {e}") from e

        self.last_known_location = position.model_copy(update={"timestamp": _now_ms()})
        await self.cache_location(self.last_known_location)
        return self.last_known_location

    async def cache_location(self, location: Coordinates) -> None:
        try:
            await self.storage.set_item(self.cache_key, location.model_dump_json())
        except StorageError as e:
            logger.error("Error caching location", error=str(e))

    async def get_cached_location(self) -> Optional[Coordinates]:
        """Cached fix, or None when absent, unreadable or expired."""
        try:
            raw = await self.storage.get_item(self.cache_key)
            if not raw:
                return None
            cached = Coordinates.model_validate_json(raw)
        except (StorageError, ValidationError) as e:
            logger.error("Error getting cached location", error=str(e))
            return None

        if cached.timestamp and _now_ms() - cached.timestamp < self.cache_expiry_ms:
            return cached
        return None

    async def get_address_from_coordinates(self, latitude: float, longitude: float) -> Optional[LocationAddress]:
        try:
            addresses = await self.provider.reverse_geocode(latitude, longitude)
        except Exception as e:
            logger.error("Error getting address from coordinates", error=str(e))
            raise LocationError(f"Reverse geocoding failed: {e}") from e
        return addresses[0] if addresses else None

    async def get_coordinates_from_address(self, address: str) -> Optional[Coordinates]:
        try:
            locations = await self.provider.geocode(address)
        except Exception as e:
            logger.error("Error getting coordinates from address", error=str(e))
            raise LocationError(f"Geocoding failed: {e}") from e
        if not locations:
            return None
        return Coordinates(latitude=locations[0].latitude, longitude=locations[0].longitude)

    @staticmethod
    def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        """Great-circle distance in kilometres (haversine)."""
        d_lat = math.radians(lat2 - lat1)
        d_lon = math.radians(lon2 - lon1)
        a = (
            math.sin(d_lat / 2) ** 2
            + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
        )
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
        return EARTH_RADIUS_KM * c

    @staticmethod
    def calculate_travel_time(distance_km: float) -> float:
        """Estimated drive time in minutes."""
        return (distance_km / AVERAGE_SPEED_KMH) * 60

    @classmethod
    def is_within_travel_threshold(cls, distance_km: float) -> bool:
        return cls.calculate_travel_time(distance_km) <= DISTANCE_THRESHOLD_MINUTES

    @classmethod
    def distance_to_property(cls, origin: Coordinates, prop: Property) -> Optional[float]:
        point = prop.address.location if prop.address else None
        if point is None or not point.coordinates:
            return None
        return cls.calculate_distance(origin.latitude, origin.longitude, point.latitude, point.longitude)


def _now_ms() -> int:
    return int(time.time() * 1000)
