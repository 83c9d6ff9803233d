"""Karbon API client - OData-style transport for the v3 REST API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable

import httpx

from ..config import KarbonSettings, settings

logger = logging.getLogger(__name__)


class KarbonError(Exception):
    """Base exception for Karbon API errors."""

    def __init__(self, message: str, status_code: int | None = None, response: Any = None):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.message)


class KarbonConfigError(KarbonError):
    """Missing or invalid credentials/settings. Never retried."""

    pass


class KarbonAuthError(KarbonError):
    """401/403 from the API; credentials are wrong or lack scope."""

    pass


class KarbonNotFound(KarbonError):
    """404 - resource missing, or no list capability for this endpoint."""

    pass


class KarbonRateLimitError(KarbonError):
    """Rate limit exceeded."""

    pass


class KarbonTimeoutError(KarbonError):
    """Request exceeded the configured timeout."""

    pass


@dataclass
class ODataQuery:
    """Query options rendered as ``$filter``/``$select``/... parameters."""

    filter: str | None = None
    select: list[str] = field(default_factory=list)
    expand: list[str] = field(default_factory=list)
    orderby: str | None = None
    top: int | None = None
    skip: int | None = None
    count: bool = False

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.filter:
            params["$filter"] = self.filter
        if self.select:
            params["$select"] = ",".join(self.select)
        if self.expand:
            params["$expand"] = ",".join(self.expand)
        if self.orderby:
            params["$orderby"] = self.orderby
        if self.top is not None:
            params["$top"] = str(self.top)
        if self.skip is not None:
            params["$skip"] = str(self.skip)
        if self.count:
            params["$count"] = "true"
        return params

    def with_filter(self, expression: str | None) -> "ODataQuery":
        """Return a copy with ``expression`` and-ed onto the existing filter."""
        if not expression:
            return replace(self)
        combined = f"({self.filter}) and {expression}" if self.filter else expression
        return replace(self, filter=combined)


@dataclass
class Page:
    items: list[dict]
    next_link: str | None = None
    total_count: int | None = None


def _response_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _error_message(body: Any, fallback: str) -> str:
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("message") or error.get("Message")
            if isinstance(message, str) and message:
                return message
        for key in ("Message", "message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    if isinstance(body, str) and body.strip():
        return body.strip()[:300]
    return fallback


class KarbonClient:
    """Karbon API client.

    Credentials are passed in explicitly; both the ``AccessKey`` header and the
    bearer token are required, and their absence fails before any request.

    Usage:
        async with KarbonClient.from_settings() as client:
            page = await client.fetch_page("/Contacts", ODataQuery(top=100))
    """

    def __init__(
        self,
        access_key: str | None,
        bearer_token: str | None,
        *,
        base_url: str = "https://api.karbonhq.com/v3",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        if not access_key or not bearer_token:
            raise KarbonConfigError(
                "Karbon API not configured: KARBON_ACCESS_KEY and KARBON_BEARER_TOKEN are required"
            )
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "AccessKey": access_key,
                "Authorization": f"Bearer {bearer_token}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            timeout=timeout,
        )

    @classmethod
    def from_settings(cls, cfg: KarbonSettings | None = None) -> "KarbonClient":
        cfg = cfg or settings
        return cls(
            cfg.access_key,
            cfg.bearer_token,
            base_url=cfg.api_base_url,
            timeout=cfg.request_timeout_seconds,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json: dict | None = None,
    ) -> Any:
        """Make an API request, mapping failures onto the KarbonError hierarchy."""
        logger.debug("Karbon %s %s params=%s", method, path, params)
        try:
            response = await self._client.request(
                method=method,
                url=path,
                params=params,
                json=json,
            )
        except httpx.TimeoutException as e:
            raise KarbonTimeoutError(f"Request to {path} timed out after {self.timeout}s") from e
        except httpx.TransportError as e:
            raise KarbonError(f"Network error calling {path}: {e}") from e

        status = response.status_code
        if status < 400:
            return _response_body(response)

        body = _response_body(response)
        if status in (401, 403):
            raise KarbonAuthError(
                _error_message(body, "Karbon rejected the credentials"), status, body
            )
        if status == 404:
            raise KarbonNotFound(_error_message(body, f"Not found: {path}"), status, body)
        if status == 429:
            raise KarbonRateLimitError("Rate limit exceeded. Wait and retry.", status, body)
        raise KarbonError(_error_message(body, f"API error: {status}"), status, body)

    async def fetch_page(
        self,
        endpoint: str,
        query: ODataQuery | None = None,
        *,
        next_link: str | None = None,
    ) -> Page:
        """Fetch one page of a collection.

        ``next_link`` is the opaque ``@odata.nextLink`` from a previous page and
        already carries every query option, so ``query`` is ignored with it.
        """
        if next_link:
            body = await self._request("GET", next_link)
        else:
            params = query.to_params() if query else None
            body = await self._request("GET", endpoint, params=params)

        if isinstance(body, list):
            return Page(items=[i for i in body if isinstance(i, dict)])
        if not isinstance(body, dict):
            return Page(items=[])

        raw = body.get("value", [])
        items = [i for i in raw if isinstance(i, dict)] if isinstance(raw, list) else []
        link = body.get("@odata.nextLink")
        total = body.get("@odata.count")
        return Page(
            items=items,
            next_link=link if isinstance(link, str) and link else None,
            total_count=total if isinstance(total, int) else None,
        )

    async def get_entity(self, path: str, expand: list[str] | tuple[str, ...] | None = None) -> dict:
        """Fetch a single resource by path, e.g. ``/Notes/{key}``."""
        params = {"$expand": ",".join(expand)} if expand else None
        body = await self._request("GET", path, params=params)
        if not isinstance(body, dict):
            raise KarbonError(f"Unexpected response shape for {path}")
        return body

    async def post(self, path: str, payload: dict) -> Any:
        return await self._request("POST", path, json=payload)

    async def delete(self, path: str) -> Any:
        return await self._request("DELETE", path)


ClientFactory = Callable[[], KarbonClient]


def get_client_factory() -> ClientFactory:
    """FastAPI dependency returning a lazy client constructor.

    Handlers call the factory only when they need the API, so a missing
    credential surfaces as a handled configuration error, not a 500 at
    dependency resolution.
    """
    return KarbonClient.from_settings
