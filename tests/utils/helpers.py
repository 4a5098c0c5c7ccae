"""Test helper functions."""

import json
from typing import Any, Callable, Optional, Union

import httpx

from rentcrowd.models.session import PersistedEnvelope, PersistedSession
from rentcrowd.models.user import User

BASE_URL = "http://testserver/api"

Handler = Callable[[httpx.Request], httpx.Response]


class FakeApi:
    """
    Route table served through httpx.MockTransport.

    Routes are keyed by (method, path) with the /api prefix removed. Each
    route answers with a fixed JSON body or a handler; unknown routes 404.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], Union[Handler, httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        json_body: Optional[Any] = None,
        status_code: int = 200,
        handler: Optional[Handler] = None,
    ) -> None:
        if handler is not None:
            self.routes[(method.upper(), path)] = handler
        else:
            self.routes[(method.upper(), path)] = httpx.Response(
                status_code, json=json_body if json_body is not None else {}
            )

    def fail_network(self, method: str, path: str) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        self.add(method, path, handler=handler)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api")
        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(404, json={"error": f"No route for {request.method} {path}"})
        if callable(route) and not isinstance(route, httpx.Response):
            return route(request)
        return httpx.Response(route.status_code, content=route.content, headers=route.headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    def requests_to(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method.upper() and r.url.path.removeprefix("/api") == path
        ]


def request_json(request: httpx.Request) -> Any:
    """Decode a recorded request's JSON body."""
    return json.loads(request.content.decode("utf-8"))


def persisted_session_json(token: Optional[str], user: Optional[dict] = None, authenticated: bool = True) -> str:
    """Serialized auth-storage entry as the session store writes it."""
    state = PersistedSession(
        token=token,
        user=User.model_validate(user) if user else None,
        is_authenticated=authenticated,
    )
    return PersistedEnvelope(state=state).to_json()
