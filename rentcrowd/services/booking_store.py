"""Booking store: viewings split into upcoming/past, booking and status changes."""

from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import Field

from rentcrowd.models.constants import UserRole, ViewingStatus
from rentcrowd.models.viewing import (
    BookingData,
    FeedbackData,
    StatusUpdate,
    SubscriptionData,
    Viewing,
)
from rentcrowd.services.api_client import ApiClient
from rentcrowd.services.store import Store, StoreState
from rentcrowd.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

ALWAYS_UPCOMING = frozenset({ViewingStatus.PENDING, ViewingStatus.CONFIRMED})

# Actions a landlord/agent may take from each status
STATUS_ACTIONS: dict[ViewingStatus, tuple[ViewingStatus, ...]] = {
    ViewingStatus.PENDING: (ViewingStatus.CONFIRMED, ViewingStatus.CANCELED),
    ViewingStatus.CONFIRMED: (ViewingStatus.COMPLETED, ViewingStatus.NO_SHOW),
}

STATUS_ENDPOINTS: dict[UserRole, str] = {
    UserRole.LANDLORD: "/landlord/viewings",
    UserRole.TENANT: "/tenant/viewings",
    UserRole.AGENT: "/agent/viewings",
}


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def is_upcoming(viewing: Viewing, now: Optional[datetime] = None) -> bool:
    """
    Upcoming when scheduled in the future, or still pending/confirmed.

    A confirmed viewing whose date has passed stays upcoming until its
    status moves to completed, canceled or no-show.
    """
    now = _aware(now or datetime.now(timezone.utc))
    return _aware(viewing.scheduled_date) > now or viewing.status in ALWAYS_UPCOMING


def partition_viewings(
    viewings: list[Viewing], now: Optional[datetime] = None
) -> tuple[list[Viewing], list[Viewing]]:
    """Split into (upcoming, past), preserving order."""
    now = now or datetime.now(timezone.utc)
    upcoming: list[Viewing] = []
    past: list[Viewing] = []
    for viewing in viewings:
        (upcoming if is_upcoming(viewing, now) else past).append(viewing)
    return upcoming, past


def available_status_actions(status: ViewingStatus) -> tuple[ViewingStatus, ...]:
    return STATUS_ACTIONS.get(ViewingStatus(status), ())


def status_endpoint(role: Union[UserRole, str]) -> str:
    """Base path for a role's status updates; any other role goes through the agent path."""
    return STATUS_ENDPOINTS.get(UserRole(role), STATUS_ENDPOINTS[UserRole.AGENT])


class BookingState(StoreState):
    viewings: list[Viewing] = []
    current_viewing: Optional[Viewing] = None
    upcoming_viewings: list[Viewing] = []
    past_viewings: list[Viewing] = []
    selected_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class BookingStore(Store[BookingState]):
    """Viewings for tenants, landlords and agents, plus tenant subscriptions."""

    def __init__(self, api: ApiClient):
        super().__init__(BookingState(), logger)
        self.api = api

    def set_selected_date(self, value: datetime) -> None:
        self._set(selected_date=value)

    # Lists -----------------------------------------------------------------

    async def fetch_tenant_viewings(self) -> list[Viewing]:
        return await self._fetch_viewings("/tenant/viewings", "fetch_tenant_viewings")

    async def fetch_landlord_viewings(self, property_id: Optional[str] = None) -> list[Viewing]:
        path = f"/properties/{property_id}/viewings" if property_id else "/landlord/viewings"
        return await self._fetch_viewings(path, "fetch_landlord_viewings")

    async def fetch_agent_viewings(self, property_id: Optional[str] = None) -> list[Viewing]:
        path = f"/properties/{property_id}/viewings" if property_id else "/agent/viewings"
        return await self._fetch_viewings(path, "fetch_agent_viewings")

    async def _fetch_viewings(self, path: str, operation: str) -> list[Viewing]:
        async with self._track(operation, "Failed to fetch viewings", path=path):
            body = await self.api.get(path)
            viewings = [Viewing.model_validate(item) for item in body.get("data", [])]
            # Partitioned against the clock at fetch time
            upcoming, past = partition_viewings(viewings)
            self._set(
                viewings=viewings,
                upcoming_viewings=upcoming,
                past_viewings=past,
                is_loading=False,
            )
        logger.debug(
            "Viewings loaded",
            path=path,
            total=len(viewings),
            upcoming=len(upcoming),
            past=len(past),
        )
        return viewings

    async def fetch_viewing_by_id(self, viewing_id: str) -> Viewing:
        async with self._track("fetch_viewing_by_id", "Failed to fetch viewing details", viewing_id=viewing_id):
            body = await self.api.get(f"/tenant/viewings/{viewing_id}")
            viewing = Viewing.model_validate(body["data"])
            self._set(current_viewing=viewing, is_loading=False)
        return viewing

    # Mutations -------------------------------------------------------------

    async def book_viewing(
        self, property_id: str, booking: Union[BookingData, dict[str, Any], None] = None
    ) -> Viewing:
        """Book a viewing (tenant); the date defaults to the selected date."""
        async with self._track("book_viewing", "Failed to book viewing", property_id=property_id):
            booking = BookingData.model_validate(booking or {})
            payload = {
                "propertyId": property_id,
                **booking.to_payload(),
                "scheduledDate": (booking.scheduled_date or self.state.selected_date).isoformat(),
            }
            body = await self.api.post("/tenant/viewings", json=payload)
            viewing = Viewing.model_validate(body["data"])
            self._set(
                viewings=[viewing, *self.state.viewings],
                upcoming_viewings=[viewing, *self.state.upcoming_viewings],
                current_viewing=viewing,
                is_loading=False,
            )
        logger.info("Viewing booked", viewing_id=viewing.id, property_id=property_id)
        return viewing

    async def update_viewing(self, viewing_id: str, updated: Union[BookingData, dict[str, Any]]) -> Viewing:
        """Reschedule or amend notes."""
        async with self._track("update_viewing", "Failed to update viewing", viewing_id=viewing_id):
            updated = BookingData.model_validate(updated)
            body = await self.api.put(f"/tenant/viewings/{viewing_id}", json=updated.to_payload())
            viewing = Viewing.model_validate(body["data"])
            self._replace_everywhere(viewing)
        return viewing

    async def cancel_viewing(self, viewing_id: str) -> dict[str, Any]:
        """
        Cancel through the tenant delete endpoint, then mark the viewing
        canceled in every list and in the current viewing without re-fetching.
        """
        async with self._track("cancel_viewing", "Failed to cancel viewing", viewing_id=viewing_id):
            body = await self.api.delete(f"/tenant/viewings/{viewing_id}")

            def mark(items: list[Viewing]) -> list[Viewing]:
                return [
                    item.model_copy(update={"status": ViewingStatus.CANCELED}) if item.id == viewing_id else item
                    for item in items
                ]

            current = self.state.current_viewing
            if current is not None and current.id == viewing_id:
                current = current.model_copy(update={"status": ViewingStatus.CANCELED})

            self._set(
                viewings=mark(self.state.viewings),
                upcoming_viewings=mark(self.state.upcoming_viewings),
                past_viewings=mark(self.state.past_viewings),
                current_viewing=current,
                is_loading=False,
            )
        logger.info("Viewing canceled", viewing_id=viewing_id)
        return body

    async def submit_viewing_feedback(self, viewing_id: str, feedback: Union[FeedbackData, dict[str, Any]]) -> Viewing:
        async with self._track("submit_viewing_feedback", "Failed to submit feedback", viewing_id=viewing_id):
            feedback = FeedbackData.model_validate(feedback)
            body = await self.api.post(f"/tenant/viewings/{viewing_id}/feedback", json=feedback.to_payload())
            viewing = Viewing.model_validate(body["data"])
            self._replace_everywhere(viewing)
        return viewing

    async def update_viewing_status(
        self,
        viewing_id: str,
        status: Union[ViewingStatus, str],
        role: Union[UserRole, str],
        notes: Optional[str] = None,
    ) -> Viewing:
        """
        Move a viewing to a new status as the given role.

        The role picks the endpoint and must be supplied by the caller.
        """
        async with self._track(
            "update_viewing_status",
            f"Failed to update viewing to {getattr(status, 'value', status)}",
            viewing_id=viewing_id,
            role=getattr(role, "value", role),
        ):
            update = StatusUpdate(status=status, notes=notes)
            endpoint = status_endpoint(role)
            body = await self.api.put(f"{endpoint}/{viewing_id}", json=update.to_payload())
            viewing = Viewing.model_validate(body["data"])
            self._replace_everywhere(viewing)
        return viewing

    def _replace_everywhere(self, viewing: Viewing) -> None:
        def swap(items: list[Viewing]) -> list[Viewing]:
            return [viewing if item.id == viewing.id else item for item in items]

        self._set(
            viewings=swap(self.state.viewings),
            upcoming_viewings=swap(self.state.upcoming_viewings),
            past_viewings=swap(self.state.past_viewings),
            current_viewing=viewing,
            is_loading=False,
        )

    # Subscription (tenant) -------------------------------------------------

    async def check_subscription_status(self) -> SubscriptionData:
        async with self._track("check_subscription_status", "Failed to check subscription status"):
            body = await self.api.get("/tenant/subscription")
            subscription = SubscriptionData.model_validate(body["data"])
            self._set(is_loading=False)
        return subscription

    async def purchase_subscription(self) -> dict[str, Any]:
        async with self._track("purchase_subscription", "Failed to purchase subscription"):
            body = await self.api.post("/tenant/subscription")
            self._set(is_loading=False)
        logger.info("Subscription purchased")
        return body.get("data") or {}
