"""Geolocation models."""

from typing import Optional
from pydantic import BaseModel, Field


class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: Optional[float] = Field(None, description="Metres")
    timestamp: Optional[int] = Field(None, description="Epoch milliseconds when the fix was taken")


class LocationAddress(BaseModel):
    """Reverse-geocoded address."""
    name: Optional[str] = None
    street: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    subregion: Optional[str] = None
    region: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    iso_country_code: Optional[str] = None
    timezone: Optional[str] = None
