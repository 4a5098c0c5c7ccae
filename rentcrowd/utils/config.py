"""Client configuration read from environment variables."""

import os
from pathlib import Path
from typing import Optional


def _optional_float(name: str) -> Optional[float]:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return None
    return float(value)


class ClientConfig:
    """Environment-driven settings for the API client and local services."""

    API_URL = os.environ.get("RENTCROWD_API_URL", "http://localhost:5000/api")
    REQUEST_TIMEOUT_SECONDS = float(os.environ.get("RENTCROWD_REQUEST_TIMEOUT_SECONDS", "15"))

    STORAGE_DIR = Path(os.environ.get("RENTCROWD_STORAGE_DIR", "~/.rentcrowd")).expanduser()
    AUTH_STORAGE_KEY = "auth-storage"
    LOCATION_CACHE_KEY = "user_location_cache"
    LOCATION_CACHE_EXPIRY_SECONDS = int(os.environ.get("RENTCROWD_LOCATION_CACHE_EXPIRY_SECONDS", "1800"))  # 30 minutes

    # Fixed device position for environments without a location sensor
    DEFAULT_LATITUDE = _optional_float("RENTCROWD_DEFAULT_LATITUDE")
    DEFAULT_LONGITUDE = _optional_float("RENTCROWD_DEFAULT_LONGITUDE")

    GEOCODER_URL = os.environ.get("RENTCROWD_GEOCODER_URL", "https://nominatim.openstreetmap.org")
    GEOCODER_USER_AGENT = os.environ.get("RENTCROWD_GEOCODER_USER_AGENT", "rentcrowd-client")

    PAGE_SIZE = int(os.environ.get("RENTCROWD_PAGE_SIZE", "10"))
