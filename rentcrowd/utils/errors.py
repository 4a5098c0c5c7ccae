"""Error handling utilities."""

from dataclasses import dataclass
from typing import Any, Awaitable, Generic, Optional, TypeVar

T = TypeVar("T")

NETWORK_ERROR_MESSAGE = "Network error. Please check your internet connection."


class RentCrowdError(Exception):
    """Base exception for the RentCrowd client."""
    pass


class ApiError(RentCrowdError):
    """The API answered with an error status."""

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        payload: Optional[Any] = None,
    ):
        super().__init__(message or f"Request failed with status {status_code}")
        self.message = message
        self.status_code = status_code
        self.payload = payload


class NetworkError(ApiError):
    """No response was received (DNS, connection, timeout)."""

    def __init__(self, cause: Optional[BaseException] = None):
        super().__init__(NETWORK_ERROR_MESSAGE, status_code=None, payload={"error": NETWORK_ERROR_MESSAGE})
        self.cause = cause


class LocationError(RentCrowdError):
    """Device location unavailable or permission not granted."""
    pass


class StorageError(RentCrowdError):
    """Durable storage read/write error."""
    pass


def error_message(exc: BaseException, fallback: str) -> str:
    """Message to show for a failed operation: the server's text, else the fallback."""
    if isinstance(exc, ApiError) and exc.message:
        return exc.message
    return fallback


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Tagged outcome of a store operation."""
    ok: bool
    value: Optional[T] = None
    error: Optional[BaseException] = None

    def unwrap(self) -> T:
        """Return the value or re-raise the original error."""
        if not self.ok:
            raise self.error
        return self.value


async def capture(awaitable: Awaitable[T]) -> OperationResult[T]:
    """
    Await a store operation and return its outcome instead of raising.

    Any failure the store recorded in its error field is returned here too;
    cancellation still propagates.
    """
    try:
        value = await awaitable
    except Exception as e:
        return OperationResult(ok=False, error=e)
    return OperationResult(ok=True, value=value)
