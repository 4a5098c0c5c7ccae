"""HTTP client wrapper for the RentCrowd REST API."""

from typing import Any, Awaitable, Callable, Optional

import httpx
from pydantic import ValidationError

from rentcrowd.models.session import PersistedEnvelope
from rentcrowd.services.storage import KeyValueStorage
from rentcrowd.utils.config import ClientConfig
from rentcrowd.utils.errors import ApiError, NetworkError, StorageError
from rentcrowd.utils.logging import (
    get_structured_logger,
    get_correlation_id,
    log_timing,
    mask_sensitive_data,
    mask_token,
)
from rentcrowd.utils.logging_config import LoggingConfig

logger = get_structured_logger(__name__)

UnauthorizedHandler = Callable[[], Awaitable[None]]


class ApiClient:
    """
    Shared async HTTP client.

    The bearer token is read from the persisted session right before every
    request rather than cached here, since login/logout/401 handling can
    change it between calls. A 401 clears the persisted token once and is
    never retried. Transport failures surface as NetworkError so callers
    see one error shape.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_unauthorized: Optional[UnauthorizedHandler] = None,
        auth_storage_key: str = ClientConfig.AUTH_STORAGE_KEY,
    ):
        self.storage = storage
        self.auth_storage_key = auth_storage_key
        self.on_unauthorized = on_unauthorized
        self._client = httpx.AsyncClient(
            base_url=base_url or ClientConfig.API_URL,
            timeout=timeout if timeout is not None else ClientConfig.REQUEST_TIMEOUT_SECONDS,
            # Content-Type is left to httpx so multipart bodies get their boundary
            headers={"Accept": "application/json"},
            transport=transport,
            event_hooks={"request": [self._attach_auth_token, self._attach_correlation_id]},
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False

    async def aclose(self) -> None:
        await self._client.aclose()
        logger.debug("API client closed")

    @property
    def base_url(self) -> str:
        return str(self._client.base_url)

    # Default bearer header -------------------------------------------------

    def set_auth_token(self, token: str) -> None:
        self._client.headers["Authorization"] = f"Bearer {token}"
        logger.debug("Default bearer token set", token=mask_token(token))

    def clear_auth_token(self) -> None:
        self._client.headers.pop("Authorization", None)

    @property
    def default_auth_header(self) -> Optional[str]:
        return self._client.headers.get("Authorization")

    # Event hooks -----------------------------------------------------------

    async def _read_session(self) -> Optional[PersistedEnvelope]:
        raw = await self.storage.get_item(self.auth_storage_key)
        if not raw:
            return None
        return PersistedEnvelope.from_json(raw)

    async def _attach_auth_token(self, request: httpx.Request) -> None:
        try:
            envelope = await self._read_session()
        except (StorageError, ValidationError) as e:
            logger.error("Error accessing auth storage", error=str(e))
            return
        if envelope and envelope.state.token:
            request.headers["Authorization"] = f"Bearer {envelope.state.token}"

    async def _attach_correlation_id(self, request: httpx.Request) -> None:
        correlation_id = get_correlation_id()
        if correlation_id:
            request.headers[LoggingConfig.LOG_CORRELATION_ID_HEADER] = correlation_id

    # 401 handling ----------------------------------------------------------

    async def _handle_unauthorized(self, request: httpx.Request) -> None:
        # Guard only: the request is flagged but never replayed
        if request.extensions.get("retry"):
            return
        request.extensions["retry"] = True

        logger.warning(
            "Authorization rejected, clearing session",
            method=request.method,
            path=request.url.path,
        )
        self.clear_auth_token()
        try:
            envelope = await self._read_session()
            if envelope is not None:
                await self.storage.set_item(self.auth_storage_key, envelope.cleared().to_json())
        except (StorageError, ValidationError) as e:
            logger.error("Error updating auth storage", error=str(e))

        if self.on_unauthorized is not None:
            await self.on_unauthorized()

    # Requests --------------------------------------------------------------

    async def request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Send a request and return the decoded JSON body."""
        with log_timing("api_request", logger=logger, method=method, path=path):
            try:
                response = await self._client.request(method, path, **kwargs)
            except httpx.TransportError as e:
                logger.error(
                    "Network error",
                    method=method,
                    path=path,
                    error_type=type(e).__name__,
                    error=mask_sensitive_data(str(e)),
                )
                raise NetworkError(e) from e

        body = _decode_body(response)

        if response.status_code == 401:
            await self._handle_unauthorized(response.request)

        if response.is_error:
            message = body.get("error") if isinstance(body, dict) else None
            logger.info(
                "API error response",
                method=method,
                path=path,
                status_code=response.status_code,
                error=message,
            )
            raise ApiError(message, status_code=response.status_code, payload=body)

        logger.debug("API response", method=method, path=path, status_code=response.status_code)
        return body if isinstance(body, dict) else {"data": body}

    async def get(self, path: str, **kwargs: Any) -> dict[str, Any]:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> dict[str, Any]:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> dict[str, Any]:
        return await self.request("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> dict[str, Any]:
        return await self.request("DELETE", path, **kwargs)


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return {}
