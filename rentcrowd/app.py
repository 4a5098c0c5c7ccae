"""Application container: builds the client, services and stores once and tears them down together."""

from typing import Optional

import httpx

from rentcrowd.services.api_client import ApiClient
from rentcrowd.services.booking_store import BookingStore
from rentcrowd.services.location import (
    FixedLocationProvider,
    LocationProvider,
    LocationService,
    NominatimGeocoder,
)
from rentcrowd.services.property_store import PropertyStore
from rentcrowd.services.session_store import SessionStore
from rentcrowd.services.storage import JsonFileStorage, KeyValueStorage
from rentcrowd.utils.config import ClientConfig
from rentcrowd.utils.logging import get_structured_logger
from rentcrowd.utils.logging_config import LoggingConfig

logger = get_structured_logger(__name__)


class RentCrowdApp:
    """
    Owns one ApiClient, LocationService and the three stores.

    Construct once at start-up and hand the instance (or its stores) to the
    UI layer. Use as an async context manager, or call start()/aclose().
    """

    def __init__(
        self,
        storage: Optional[KeyValueStorage] = None,
        location_provider: Optional[LocationProvider] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        configure_logging: bool = False,
    ):
        self.configure_logging = configure_logging
        self.storage = storage or JsonFileStorage(ClientConfig.STORAGE_DIR)
        self.api = ApiClient(
            self.storage,
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            on_unauthorized=self._on_unauthorized,
        )

        self._geocoder: Optional[NominatimGeocoder] = None
        if location_provider is None:
            self._geocoder = NominatimGeocoder()
            location_provider = FixedLocationProvider(
                latitude=ClientConfig.DEFAULT_LATITUDE,
                longitude=ClientConfig.DEFAULT_LONGITUDE,
                granted=ClientConfig.DEFAULT_LATITUDE is not None,
                geocoder=self._geocoder,
            )
        self.location = LocationService(location_provider, self.storage)

        self.session = SessionStore(self.api, self.storage)
        self.properties = PropertyStore(self.api, self.location)
        self.bookings = BookingStore(self.api)

    async def _on_unauthorized(self) -> None:
        await self.session.handle_unauthorized()

    async def start(self) -> "RentCrowdApp":
        if self.configure_logging:
            LoggingConfig.setup_logging()
        await self.session.hydrate()
        logger.info("RentCrowd client started", api_url=self.api.base_url)
        return self

    async def aclose(self) -> None:
        """Cancel background work still in flight and close HTTP connections."""
        for store in (self.session, self.properties, self.bookings):
            await store.aclose()
        await self.api.aclose()
        if self._geocoder is not None:
            await self._geocoder.aclose()
        logger.info("RentCrowd client closed")

    async def __aenter__(self) -> "RentCrowdApp":
        return await self.start()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False
