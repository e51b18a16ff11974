import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest

from librivox_catalog.http import CatalogHttpClient

API_BASE = "https://api.example.org/api"

RouteHandler = Callable[[httpx.Request], httpx.Response]


def api(path: str) -> str:
    return f"{API_BASE}/{path}"


class RecordingRouter:
    """Serve canned responses keyed by URL without its query string."""

    def __init__(self) -> None:
        self.routes: Dict[str, Union[RouteHandler, List[Tuple[int, str]]]] = {}
        self.requests: List[httpx.Request] = []

    def add(
        self,
        url: str,
        payload: Any = None,
        *,
        status: int = 200,
        text: Optional[str] = None,
    ) -> None:
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        queued = self.routes.setdefault(url, [])
        if isinstance(queued, list):
            queued.append((status, text))

    def add_handler(self, url: str, handler: RouteHandler) -> None:
        self.routes[url] = handler

    @staticmethod
    def _key(request: httpx.Request) -> str:
        return f"{request.url.scheme}://{request.url.host}{request.url.path}"

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(self._key(request))
        if route is None:
            return httpx.Response(404, text="not found")
        if callable(route):
            return route(request)
        # The last queued response repeats once earlier ones are used up.
        status, text = route.pop(0) if len(route) > 1 else route[0]
        return httpx.Response(status, text=text)

    def paths(self) -> List[str]:
        return [self._key(request) for request in self.requests]

    def params_for(self, url: str) -> List[Dict[str, str]]:
        return [dict(request.url.params) for request in self.requests if self._key(request) == url]


@pytest.fixture
def router() -> RecordingRouter:
    return RecordingRouter()


@pytest.fixture
def transport(router: RecordingRouter) -> httpx.MockTransport:
    return httpx.MockTransport(router)


@pytest.fixture
def http_client(transport: httpx.MockTransport) -> CatalogHttpClient:
    return CatalogHttpClient(API_BASE, transport=transport)
