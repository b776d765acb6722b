"""Container runtime contract.

The Docker/Podman backend lives in :mod:`cumulus.runtime.docker` and is
imported on demand.
"""

from cumulus.runtime.base import (
    FRAMEWORK_SERVICE,
    ContainerHandle,
    ContainerRuntime,
    ContainerState,
)

__all__ = [
    "FRAMEWORK_SERVICE",
    "ContainerHandle",
    "ContainerRuntime",
    "ContainerState",
]
