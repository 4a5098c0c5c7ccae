"""Marketplace enums and business constants."""

from enum import Enum


class UserRole(str, Enum):
    """Account roles."""
    TENANT = "tenant"
    LANDLORD = "landlord"
    AGENT = "agent"
    ADMIN = "admin"


class ViewingStatus(str, Enum):
    """Viewing (booking) lifecycle states."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELED = "canceled"
    NO_SHOW = "no_show"


class PropertyStatus(str, Enum):
    """Listing visibility states."""
    AVAILABLE = "available"
    BOOKED = "booked"
    RENTED = "rented"
    HIDDEN = "hidden"
    PENDING_APPROVAL = "pending_approval"


class PropertyType(str, Enum):
    APARTMENT = "apartment"
    HOUSE = "house"
    DUPLEX = "duplex"
    BUNGALOW = "bungalow"
    SELF_CONTAINED = "self_contained"
    COMMERCIAL = "commercial"


class PropertyFeature(str, Enum):
    AIR_CONDITIONING = "air_conditioning"
    BALCONY = "balcony"
    SWIMMING_POOL = "swimming_pool"
    GYM = "gym"
    SECURITY = "security"
    PARKING = "parking"
    FURNISHED = "furnished"
    BOREHOLE = "borehole"
    GENERATOR = "generator"
    ELEVATOR = "elevator"
    WIFI = "wifi"
    LAUNDRY = "laundry"


class PaymentFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    BIANNUALLY = "biannually"
    YEARLY = "yearly"


SUBSCRIPTION_FEE = 20000  # NGN
VIEWING_QUOTA = 5  # per subscription
EXTRA_VIEWING_FEE = 1000  # NGN

DISTANCE_THRESHOLD_MINUTES = 30
CANCELLATION_THRESHOLD_HOURS = 24
AVERAGE_SPEED_KMH = 40
EARTH_RADIUS_KM = 6371.0
