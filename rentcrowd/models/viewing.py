"""Viewing (booking) models."""

from datetime import datetime
from typing import Any, Optional, Union
from pydantic import Field

from rentcrowd.models.base import ApiModel
from rentcrowd.models.constants import ViewingStatus


class FeedbackEntry(ApiModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    created_at: Optional[datetime] = None


class ViewingFeedback(ApiModel):
    """Feedback left by either side of a viewing."""
    tenant: Optional[FeedbackEntry] = None
    agent: Optional[FeedbackEntry] = None


class Viewing(ApiModel):
    """A scheduled property viewing."""
    id: str = Field(..., alias="_id", description="Viewing ID")
    # Each party is an ID or an expanded document, depending on the endpoint
    property_ref: Union[str, dict[str, Any]] = Field(..., alias="property", description="Property ID or summary")
    tenant: Union[str, dict[str, Any], None] = None
    agent: Union[str, dict[str, Any], None] = None
    landlord: Union[str, dict[str, Any], None] = None
    scheduled_date: datetime = Field(..., description="When the viewing takes place")
    status: ViewingStatus = ViewingStatus.PENDING
    is_far_distance: bool = False
    additional_fee: float = 0
    cancellation_time: Optional[datetime] = None
    feedback: Optional[ViewingFeedback] = None
    notes: Optional[str] = None
    transaction: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def property_id(self) -> Optional[str]:
        if isinstance(self.property_ref, dict):
            return self.property_ref.get("_id")
        return self.property_ref


class BookingData(ApiModel):
    """Request body for booking or rescheduling a viewing."""
    scheduled_date: Optional[datetime] = None
    notes: Optional[str] = None


class FeedbackData(ApiModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""


class StatusUpdate(ApiModel):
    status: ViewingStatus
    notes: Optional[str] = None


class SubscriptionData(ApiModel):
    """Tenant viewing subscription."""
    is_active: bool = False
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    base_viewings: int = 0
    extra_viewings_purchased: int = 0
    viewings_remaining: int = 0
    transaction_id: Optional[str] = None
