from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urljoin

import httpx

from .errors import MalformedResponse, TransportFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpResponse:
    success: bool
    status_code: int
    body: str
    url: str = ""


class CatalogHttpClient:
    """Blocking GET transport for the catalog API and site pages."""

    def __init__(
        self,
        api_base_url: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        verify: bool = True,
        user_agent: str = "librivox-catalog/1.0",
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        normalized = (api_base_url or "").strip()
        if not normalized:
            raise ValueError("Catalog API base URL is required")
        self._api_base_url = normalized.rstrip("/") + "/"
        self._api_key = api_key
        self._timeout = timeout
        self._verify = verify
        self._transport = transport
        self._headers = {
            "User-Agent": user_agent,
            "Accept": "application/json,text/html;q=0.9,*/*;q=0.8",
        }

    def api_url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return urljoin(self._api_base_url, path.lstrip("/"))

    def _api_headers(self) -> Dict[str, str]:
        if self._api_key:
            return {"x-api-key": self._api_key}
        return {}

    def _open_client(self) -> httpx.Client:
        kwargs: Dict[str, Any] = {
            "headers": dict(self._headers),
            "timeout": self._timeout,
            "verify": self._verify,
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.Client(**kwargs)

    def get(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> HttpResponse:
        """Fetch ``url``; transport errors are reported as ``status_code=0``."""

        try:
            with self._open_client() as client:
                response = client.get(url, params=params, headers=dict(headers or {}), follow_redirects=True)
        except httpx.HTTPError as exc:
            logger.warning("GET %s failed: %s", url, exc)
            return HttpResponse(success=False, status_code=0, body="", url=url)
        return HttpResponse(
            success=response.is_success,
            status_code=response.status_code,
            body=response.text,
            url=str(response.url),
        )

    def get_api(self, path: str, *, params: Optional[Mapping[str, Any]] = None) -> HttpResponse:
        return self.get(self.api_url(path), params=params, headers=self._api_headers())

    def get_json(self, path: str, *, params: Optional[Mapping[str, Any]] = None) -> Any:
        response = self.get_api(path, params=params)
        if not response.success:
            raise TransportFailure(
                f"Catalog request failed with status {response.status_code}",
                url=response.url,
                status_code=response.status_code,
            )
        try:
            return json.loads(response.body)
        except ValueError as exc:
            raise MalformedResponse(f"Invalid JSON from {response.url}: {exc}") from exc

    def get_page(self, url: str) -> str:
        response = self.get(url, headers={"X-Requested-With": "XMLHttpRequest"})
        if not response.success:
            raise TransportFailure(
                f"Page request failed with status {response.status_code}",
                url=url,
                status_code=response.status_code,
            )
        return response.body
