"""Property listing models."""

from datetime import datetime
from typing import Optional
from pydantic import ConfigDict, Field

from rentcrowd.models.base import ApiModel
from rentcrowd.models.constants import PropertyStatus


class GeoPoint(ApiModel):
    """GeoJSON point; coordinates are [longitude, latitude]."""
    type: str = "Point"
    coordinates: Optional[list[float]] = Field(None, min_length=2, max_length=2)

    @property
    def latitude(self) -> Optional[float]:
        return self.coordinates[1] if self.coordinates else None

    @property
    def longitude(self) -> Optional[float]:
        return self.coordinates[0] if self.coordinates else None


class PropertyAddress(ApiModel):
    street: Optional[str] = None
    area: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    full_address: Optional[str] = None
    location: Optional[GeoPoint] = None


class PropertyPrice(ApiModel):
    amount: float
    currency: str = "NGN"
    payment_frequency: str = Field("yearly", description="monthly, quarterly, biannually, yearly")


class PropertyImage(ApiModel):
    id: Optional[str] = Field(None, alias="_id")
    url: str
    caption: Optional[str] = None
    is_primary: bool = False


class Property(ApiModel):
    """A rentable property as returned by the API."""
    id: str = Field(..., alias="_id", description="Property ID")
    title: str = Field(..., description="Listing title")
    description: Optional[str] = None
    landlord: Optional[str] = Field(None, description="Landlord ID")
    agent: Optional[str] = Field(None, description="Agent ID")
    property_type: Optional[str] = Field(None, description="apartment, house, duplex, ...")
    bedrooms: int = 0
    bathrooms: int = 0
    size: Optional[float] = None
    features: list[str] = Field(default_factory=list)
    address: Optional[PropertyAddress] = None
    price: Optional[PropertyPrice] = None
    images: list[PropertyImage] = Field(default_factory=list, description="Ordered; one may be primary")
    availability_date: Optional[datetime] = None
    status: PropertyStatus = PropertyStatus.AVAILABLE
    viewings: Optional[list[str]] = None
    verified: bool = False
    last_updated: Optional[datetime] = None
    save_count: int = 0
    view_count: int = 0
    created_at: Optional[datetime] = None

    @property
    def primary_image(self) -> Optional[PropertyImage]:
        for image in self.images:
            if image.is_primary:
                return image
        return self.images[0] if self.images else None


class PropertyFilters(ApiModel):
    """Search criteria held in memory only."""
    model_config = ConfigDict(extra="ignore")

    price_min: Optional[float] = None
    price_max: Optional[float] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    property_type: Optional[str] = None
    features: list[str] = Field(default_factory=list)
    location: Optional[str] = None
    distance: Optional[float] = Field(30, description="Max travel time in minutes")


class Pagination(ApiModel):
    page: int = 1
    limit: int = 10
    total_pages: int = 1
    total_count: int = 0

    @property
    def has_more(self) -> bool:
        return self.page < self.total_pages


class PropertyImageUpload(ApiModel):
    """A local image file to attach to a property."""
    uri: str = Field(..., description="Local path or file:// URI")
    type: Optional[str] = Field(None, description="MIME type, image/jpeg when absent")
    file_name: Optional[str] = None


class PropertyPage(ApiModel):
    """One page of a list endpoint: {data, page, limit, totalPages, totalCount}."""
    data: list[Property] = Field(default_factory=list)
    page: int = 1
    limit: int = 10
    total_pages: int = 1
    total_count: int = 0

    @property
    def pagination(self) -> Pagination:
        return Pagination(
            page=self.page,
            limit=self.limit,
            total_pages=self.total_pages,
            total_count=self.total_count,
        )
