"""Routing backend driven through an HTTP admin API (``http://``, ``https://``).

The admin API exposes::

    PUT    /routes/{container_id}   body: {"endpoints": [...]}
    DELETE /routes/{container_id}
    DELETE /routes
"""

from __future__ import annotations

import logging
from urllib.parse import ParseResult

import httpx

from cumulus.errors import ProxyError
from cumulus.hub.manifest import Endpoint
from cumulus.proxy.base import Proxy

logger = logging.getLogger(__name__)

SCHEMES = ("http", "https")

NOT_FOUND = 404


class HttpProxy(Proxy):
    """Publishes routes to a remote routing service."""

    def __init__(self, base_url: str, timeout: float = 10.0, auth_token: str | None = None) -> None:
        """
        Initialize the HTTP proxy client.

        Args:
            base_url: Admin API base URL
            timeout: Request timeout in seconds
            auth_token: Optional bearer token
        """
        self.base_url = base_url.rstrip("/")
        headers = {}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"
        self._client = httpx.AsyncClient(timeout=timeout, headers=headers)

    async def _send(self, method: str, path: str, allow_missing: bool = False, **kwargs) -> None:
        try:
            response = await self._client.request(method, f"{self.base_url}{path}", **kwargs)
            if allow_missing and response.status_code == NOT_FOUND:
                return
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ProxyError(f"{method} {path} failed: {e}") from e

    async def add_endpoints(self, container_id: str, endpoints: list[Endpoint]) -> None:
        payload = {"endpoints": [endpoint.model_dump() for endpoint in endpoints]}
        await self._send("PUT", f"/routes/{container_id}", json=payload)
        logger.info("Published %d endpoints for %s", len(endpoints), container_id[:12])

    async def remove_endpoints(self, container_id: str) -> None:
        await self._send("DELETE", f"/routes/{container_id}", allow_missing=True)
        logger.info("Retracted endpoints for %s", container_id[:12])

    async def reset(self) -> None:
        await self._send("DELETE", "/routes")
        logger.info("Cleared all proxy routes")

    async def close(self) -> None:
        await self._client.aclose()


def create(url: ParseResult) -> HttpProxy:
    token = url.password or None
    netloc = url.hostname or ""
    if url.port:
        netloc += f":{url.port}"
    return HttpProxy(f"{url.scheme}://{netloc}{url.path}", auth_token=token)
