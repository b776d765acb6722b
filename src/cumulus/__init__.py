"""Cumulus - Control plane for a multi-tenant application platform.

Cumulus resolves plugin references against an installed plugin hub,
materializes applications as containers and keeps the routing layer
informed of where each application's endpoints live.

Key modules:

- :mod:`cumulus.hub` - Tag parsing and the on-disk, versioned plugin repository
- :mod:`cumulus.resolver` - System/namespace catalog merging and tag resolution
- :mod:`cumulus.broker` - Application lifecycle (create, scale, start, stop, remove)
- :mod:`cumulus.runtime` - Container runtime contract and the Docker/Podman backend
- :mod:`cumulus.proxy` - Routing backends selected by URL scheme
- :mod:`cumulus.store` - Durable per-namespace application records
"""

__version__ = "0.1.0"
