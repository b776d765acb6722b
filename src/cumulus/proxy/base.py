"""Routing backend contract and the scheme-keyed backend registry."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType, ModuleType
from urllib.parse import ParseResult, urlparse

from cumulus.errors import ProxyNotConfiguredError, UnsupportedSchemeError
from cumulus.hub.manifest import Endpoint

logger = logging.getLogger(__name__)


class Proxy(ABC):
    """Publishes container endpoints to the routing layer.

    Updates are eventually consistent with the container runtime; the
    broker reports proxy failures but never undoes container changes
    because of them.
    """

    @abstractmethod
    async def add_endpoints(self, container_id: str, endpoints: list[Endpoint]) -> None:
        """Route the given endpoints to a container."""

    @abstractmethod
    async def remove_endpoints(self, container_id: str) -> None:
        """Drop every route pointing at a container."""

    @abstractmethod
    async def reset(self) -> None:
        """Clear all routes."""

    async def close(self) -> None:
        """Release the connection to the routing layer."""


ProxyFactory = Callable[[ParseResult], Proxy]


class ProxyRegistry:
    """Immutable table of proxy backends keyed by URL scheme.

    Built once at startup and handed to whatever needs :meth:`new`.
    """

    def __init__(self, factories: Mapping[str, ProxyFactory]) -> None:
        self._factories = MappingProxyType(dict(factories))

    @classmethod
    def from_backends(cls, backends: Iterable[ModuleType]) -> ProxyRegistry:
        """Build a registry from backend modules.

        Each module declares the ``SCHEMES`` it serves and a
        ``create(url)`` constructor.
        """
        factories: dict[str, ProxyFactory] = {}
        for module in backends:
            for scheme in module.SCHEMES:
                factories[scheme] = module.create
        return cls(factories)

    @property
    def schemes(self) -> list[str]:
        return sorted(self._factories)

    def new(self, proxy_url: str) -> Proxy:
        """Create a proxy for a URL.

        Raises:
            ProxyNotConfiguredError: If ``proxy_url`` is empty
            UnsupportedSchemeError: If no backend serves the URL scheme
        """
        if not proxy_url:
            raise ProxyNotConfiguredError()

        url = urlparse(proxy_url)
        factory = self._factories.get(url.scheme)
        if factory is None:
            raise UnsupportedSchemeError(url.scheme)

        logger.debug("Using %s proxy backend", url.scheme)
        return factory(url)


def default_registry() -> ProxyRegistry:
    """Registry with every backend shipped with cumulus."""
    from cumulus.proxy import http, memory

    return ProxyRegistry.from_backends([memory, http])
