"""Container runtime contract consumed by the broker."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum

from cumulus.hub.tag import PluginTag

FRAMEWORK_SERVICE = ""


class ContainerState(StrEnum):
    """Runtime container states."""

    CREATED = "created"
    RUNNING = "running"
    PAUSED = "paused"
    RESTARTING = "restarting"
    EXITED = "exited"
    DEAD = "dead"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, status: str) -> ContainerState:
        try:
            return cls(status.lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class ContainerHandle:
    """Opaque reference to one container backing an application.

    ``service`` is empty for framework containers. ``sequence`` orders
    containers by creation; higher is newer.
    """

    id: str
    name: str
    app: str
    namespace: str
    service: str
    tag: PluginTag
    sequence: int
    state: ContainerState = ContainerState.UNKNOWN
    ip_address: str = ""

    @property
    def is_framework(self) -> bool:
        return self.service == FRAMEWORK_SERVICE

    @property
    def short_id(self) -> str:
        return self.id[:12]


class ContainerRuntime(ABC):
    """Issues container intents on behalf of the broker.

    The runtime is the source of truth for which containers exist; the
    broker never caches handles across operations.
    """

    @abstractmethod
    async def create_containers(
        self, app: str, namespace: str, tags: list[PluginTag], count: int = 1
    ) -> list[ContainerHandle]:
        """Create ``count`` containers for each tag, without starting them.

        A tag's ``service`` names the slot it fills; empty means the
        framework slot.
        """

    @abstractmethod
    async def find_containers(
        self, app: str, namespace: str, service: str | None = None
    ) -> list[ContainerHandle]:
        """Find an application's containers, oldest first.

        ``service=None`` returns all containers, ``""`` the framework
        containers and any other value that service's containers.
        """

    @abstractmethod
    async def inspect(self, handle: ContainerHandle) -> ContainerHandle:
        """Return a refreshed handle (state and address)."""

    @abstractmethod
    async def start(self, handle: ContainerHandle) -> None:
        """Start a container. Starting a running container is not an error."""

    @abstractmethod
    async def stop(self, handle: ContainerHandle) -> None:
        """Stop a container. Stopping a stopped container is not an error."""

    @abstractmethod
    async def restart(self, handle: ContainerHandle) -> None:
        """Restart a container."""

    @abstractmethod
    async def destroy(self, handle: ContainerHandle) -> None:
        """Remove a container, stopping it first if needed."""

    @abstractmethod
    async def exec(self, handle: ContainerHandle, user: str, *args: str) -> str:
        """Run a command inside a running container and return its output."""

    async def close(self) -> None:
        """Release connections to the container engine."""
