"""Property store: search results, nearby results, saved list and the current listing."""

import asyncio
from pathlib import Path
from typing import Any, Optional, Union
from urllib.parse import unquote, urlparse

from rentcrowd.models.location import Coordinates
from rentcrowd.models.property import (
    Pagination,
    Property,
    PropertyFilters,
    PropertyImage,
    PropertyImageUpload,
    PropertyPage,
)
from rentcrowd.services.api_client import ApiClient
from rentcrowd.services.location import LocationService
from rentcrowd.services.store import Store, StoreState
from rentcrowd.utils.config import ClientConfig
from rentcrowd.utils.errors import LocationError
from rentcrowd.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

LOCATION_ERROR_MESSAGE = "Failed to get your location. Please enable location services."
DEFAULT_IMAGE_TYPE = "image/jpeg"


class PropertyState(StoreState):
    properties: list[Property] = []
    nearby_properties: list[Property] = []
    saved_properties: list[Property] = []
    current_property: Optional[Property] = None
    filters: PropertyFilters = PropertyFilters()
    pagination: Pagination = Pagination(limit=ClientConfig.PAGE_SIZE)


def build_query_params(filters: PropertyFilters, pagination: Pagination) -> dict[str, Any]:
    """
    Query string for GET /properties.

    Unset filters are left out entirely and the feature list is sent as
    one comma-joined value.
    """
    params: dict[str, Any] = {
        "page": pagination.page,
        "limit": pagination.limit,
        **filters.model_dump(by_alias=True, mode="json"),
    }
    params = {key: value for key, value in params.items() if value is not None}

    features = params.pop("features", None)
    if features:
        params["features"] = ",".join(features)
    return params


def _replace(items: list[Property], updated: Property) -> list[Property]:
    return [updated if item.id == updated.id else item for item in items]


def _without(items: list[Property], property_id: str) -> list[Property]:
    return [item for item in items if item.id != property_id]


def _local_path(uri: str) -> Path:
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(uri).expanduser()


class PropertyStore(Store[PropertyState]):
    """Listing CRUD, search, nearby search and a tenant's saved properties."""

    def __init__(self, api: ApiClient, location: LocationService):
        super().__init__(PropertyState(), logger)
        self.api = api
        self.location = location

    # Filters & pagination --------------------------------------------------

    def set_filters(self, filters: Optional[dict[str, Any]] = None, **changes: Any) -> PropertyFilters:
        """Merge filter changes; the page goes back to 1 in the same update."""
        # Keys may be field names or wire names; only the fields given are replaced
        update = PropertyFilters.model_validate({**(filters or {}), **changes})
        new_filters = self.state.filters.model_copy(
            update={name: getattr(update, name) for name in update.model_fields_set}
        )
        self._set(
            filters=new_filters,
            pagination=self.state.pagination.model_copy(update={"page": 1}),
        )
        return new_filters

    def reset_filters(self) -> None:
        self._set(
            filters=PropertyFilters(),
            pagination=self.state.pagination.model_copy(update={"page": 1}),
        )

    def reset_pagination(self) -> None:
        self._set(pagination=Pagination(limit=ClientConfig.PAGE_SIZE))

    # Search ----------------------------------------------------------------

    async def fetch_properties(self) -> PropertyPage:
        """Fetch the current page of properties matching the filters."""
        return await self._fetch_page(self.state.pagination.page, append=False)

    async def load_more_properties(self) -> Optional[PropertyPage]:
        """Append the next page, or return None when on the last page."""
        if not self.state.pagination.has_more:
            return None
        return await self._fetch_page(self.state.pagination.page + 1, append=True)

    async def _fetch_page(self, page: int, append: bool) -> PropertyPage:
        pagination = self.state.pagination.model_copy(update={"page": page})
        params = build_query_params(self.state.filters, pagination)

        async with self._track("fetch_properties", "Failed to fetch properties", page=page):
            body = await self.api.get("/properties", params=params)
            result = PropertyPage.model_validate(body)
            properties = self.state.properties + result.data if append else result.data
            self._set(properties=properties, pagination=result.pagination, is_loading=False)
        return result

    async def fetch_nearby_properties(
        self, coords: Union[Coordinates, dict[str, float], None] = None
    ) -> PropertyPage:
        """
        Properties near the given point, or near the device when coords is None.

        A location failure sets a location-specific error and re-raises.
        """
        return await self._fetch_nearby_page(self.state.pagination.page, coords, append=False)

    async def load_more_nearby_properties(self) -> Optional[PropertyPage]:
        if not self.state.pagination.has_more:
            return None
        return await self._fetch_nearby_page(self.state.pagination.page + 1, None, append=True)

    async def _fetch_nearby_page(
        self,
        page: int,
        coords: Union[Coordinates, dict[str, float], None],
        append: bool,
    ) -> PropertyPage:
        async with self._track(
            "fetch_nearby_properties",
            "Failed to fetch nearby properties",
            error_overrides={LocationError: LOCATION_ERROR_MESSAGE},
            page=page,
        ):
            if coords is None:
                coordinates = await self.location.get_current_location()
            else:
                coordinates = Coordinates.model_validate(coords)

            body = await self.api.get(
                "/properties/nearby",
                params={
                    "latitude": coordinates.latitude,
                    "longitude": coordinates.longitude,
                    "maxDistance": self.state.filters.distance,
                    "page": page,
                    "limit": self.state.pagination.limit,
                },
            )
            result = PropertyPage.model_validate(body)
            nearby = self.state.nearby_properties + result.data if append else result.data
            self._set(nearby_properties=nearby, pagination=result.pagination, is_loading=False)
        return result

    # CRUD ------------------------------------------------------------------

    async def fetch_property_by_id(self, property_id: str) -> Property:
        async with self._track("fetch_property_by_id", "Failed to fetch property details", property_id=property_id):
            body = await self.api.get(f"/properties/{property_id}")
            prop = Property.model_validate(body["data"])
            self._set(current_property=prop, is_loading=False)
        return prop

    async def create_property(self, data: dict[str, Any]) -> Property:
        """Create a listing (landlords); it becomes current and heads the list."""
        async with self._track("create_property", "Failed to create property"):
            body = await self.api.post("/properties", json=data)
            prop = Property.model_validate(body["data"])
            self._set(
                properties=[prop, *self.state.properties],
                current_property=prop,
                is_loading=False,
            )
        logger.info("Property created", property_id=prop.id)
        return prop

    async def update_property(self, property_id: str, data: dict[str, Any]) -> Property:
        """Update a listing and patch it wherever it is held."""
        async with self._track("update_property", "Failed to update property", property_id=property_id):
            body = await self.api.put(f"/properties/{property_id}", json=data)
            prop = Property.model_validate(body["data"])
            self._set(
                properties=_replace(self.state.properties, prop),
                nearby_properties=_replace(self.state.nearby_properties, prop),
                saved_properties=_replace(self.state.saved_properties, prop),
                current_property=prop,
                is_loading=False,
            )
        return prop

    async def delete_property(self, property_id: str) -> dict[str, bool]:
        async with self._track("delete_property", "Failed to delete property", property_id=property_id):
            await self.api.delete(f"/properties/{property_id}")
            current = self.state.current_property
            self._set(
                properties=_without(self.state.properties, property_id),
                nearby_properties=_without(self.state.nearby_properties, property_id),
                saved_properties=_without(self.state.saved_properties, property_id),
                current_property=None if current is None or current.id == property_id else current,
                is_loading=False,
            )
        logger.info("Property deleted", property_id=property_id)
        return {"success": True}

    # Images ----------------------------------------------------------------

    async def upload_property_images(
        self,
        property_id: str,
        image_files: list[Union[PropertyImageUpload, dict[str, Any]]],
    ) -> dict[str, Any]:
        """
        Upload local image files as multipart `images` parts.

        The current property's image list is replaced by the one the server
        returns, never merged locally.
        """
        async with self._track(
            "upload_property_images",
            "Failed to upload images",
            property_id=property_id,
            image_count=len(image_files),
        ):
            uploads = [PropertyImageUpload.model_validate(f) for f in image_files]
            files = []
            for index, upload in enumerate(uploads):
                content = await asyncio.to_thread(_local_path(upload.uri).read_bytes)
                files.append((
                    "images",
                    (upload.file_name or f"image_{index}.jpg", content, upload.type or DEFAULT_IMAGE_TYPE),
                ))

            body = await self.api.post(f"/properties/{property_id}/images", files=files)
            data = body["data"]
            images = [PropertyImage.model_validate(image) for image in data.get("images", [])]

            current = self.state.current_property
            if current is not None and current.id == property_id:
                current = current.model_copy(update={"images": images})
            self._set(current_property=current, is_loading=False)
        return data

    async def delete_property_image(self, property_id: str, image_id: str) -> dict[str, bool]:
        async with self._track("delete_property_image", "Failed to delete image", property_id=property_id):
            await self.api.delete(f"/properties/{property_id}/images/{image_id}")
            current = self.state.current_property
            if current is not None and current.id == property_id:
                current = current.model_copy(
                    update={"images": [image for image in current.images if image.id != image_id]}
                )
            self._set(current_property=current, is_loading=False)
        return {"success": True}

    # Saved properties (tenant) ---------------------------------------------

    async def fetch_saved_properties(self) -> list[Property]:
        async with self._track("fetch_saved_properties", "Failed to fetch saved properties"):
            body = await self.api.get("/tenant/saved-properties")
            saved = [Property.model_validate(item) for item in body.get("data", [])]
            self._set(saved_properties=saved, is_loading=False)
        return saved

    async def save_property(self, property_id: str) -> Property:
        async with self._track("save_property", "Failed to save property", property_id=property_id):
            body = await self.api.post(f"/tenant/saved-properties/{property_id}")
            prop = Property.model_validate(body["data"])
            self._set(saved_properties=[*self.state.saved_properties, prop], is_loading=False)
        return prop

    async def remove_saved_property(self, property_id: str) -> dict[str, bool]:
        async with self._track("remove_saved_property", "Failed to remove saved property", property_id=property_id):
            await self.api.delete(f"/tenant/saved-properties/{property_id}")
            self._set(saved_properties=_without(self.state.saved_properties, property_id), is_loading=False)
        return {"success": True}

    def is_property_saved(self, property_id: str) -> bool:
        return any(prop.id == property_id for prop in self.state.saved_properties)
