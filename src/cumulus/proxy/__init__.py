"""Routing backends selected by proxy URL scheme."""

from cumulus.proxy.base import Proxy, ProxyFactory, ProxyRegistry, default_registry

__all__ = ["Proxy", "ProxyFactory", "ProxyRegistry", "default_registry"]
