"""In-process routing table (``memory://``)."""

from __future__ import annotations

import logging
from urllib.parse import ParseResult

from cumulus.hub.manifest import Endpoint
from cumulus.proxy.base import Proxy

logger = logging.getLogger(__name__)

SCHEMES = ("memory",)


class MemoryProxy(Proxy):
    """Keeps routes in a dict. Useful for single-node setups and tests."""

    def __init__(self) -> None:
        self.routes: dict[str, list[Endpoint]] = {}

    async def add_endpoints(self, container_id: str, endpoints: list[Endpoint]) -> None:
        self.routes[container_id] = list(endpoints)
        logger.debug("Routed %d endpoints to %s", len(endpoints), container_id)

    async def remove_endpoints(self, container_id: str) -> None:
        self.routes.pop(container_id, None)

    async def reset(self) -> None:
        self.routes.clear()

    def backends(self, frontend: str) -> list[Endpoint]:
        """All endpoints currently serving a frontend host name."""
        return [
            endpoint
            for endpoints in self.routes.values()
            for endpoint in endpoints
            if endpoint.frontend == frontend
        ]


def create(url: ParseResult) -> MemoryProxy:
    return MemoryProxy()
