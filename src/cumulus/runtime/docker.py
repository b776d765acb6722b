"""Docker/Podman implementation of the container runtime.

Containers are found again through labels, so the runtime keeps no
state of its own beyond the client connection.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any

from docker.errors import APIError, DockerException, NotFound

from cumulus.errors import ContainerRuntimeError
from cumulus.hub.tag import PluginTag, parse_tag
from cumulus.runtime.base import ContainerHandle, ContainerRuntime, ContainerState
from cumulus.runtime.engine import get_container_client

logger = logging.getLogger(__name__)

LABEL_APP = "cumulus.app"
LABEL_NAMESPACE = "cumulus.namespace"
LABEL_SERVICE = "cumulus.service"
LABEL_TAG = "cumulus.tag"
LABEL_SEQUENCE = "cumulus.sequence"

NOT_MODIFIED = 304


def _not_modified(error: APIError) -> bool:
    response = getattr(error, "response", None)
    return response is not None and response.status_code == NOT_MODIFIED


def _failure(operation: str, handle: ContainerHandle, error: Exception) -> ContainerRuntimeError:
    return ContainerRuntimeError(operation, str(error), app=handle.app, container=handle.name)


class DockerRuntime(ContainerRuntime):
    """Runs application containers on a Docker-compatible engine."""

    def __init__(
        self,
        client: Any = None,
        engine: str | None = None,
        network: str = "cumulus",
        image_registry: str = "cumulus",
        stop_timeout: int = 10,
        domain: str = "cumulus.local",
    ) -> None:
        self._client = client
        self._engine = engine
        self.network = network
        self.image_registry = image_registry
        self.stop_timeout = stop_timeout
        self.domain = domain
        self._last_sequence = 0

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_container_client(self._engine)
        return self._client

    def _next_sequence(self) -> int:
        self._last_sequence = max(time.time_ns(), self._last_sequence + 1)
        return self._last_sequence

    def image_for(self, tag: PluginTag) -> str:
        """Image name a plugin tag runs from."""
        if tag.namespace:
            return f"{self.image_registry}/{tag.namespace}/{tag.name}:{tag.version}"
        return f"{self.image_registry}/{tag.name}:{tag.version}"

    def _to_handle(self, container: Any) -> ContainerHandle:
        labels = container.labels
        settings = container.attrs.get("NetworkSettings") or {}
        network = (settings.get("Networks") or {}).get(self.network) or {}
        return ContainerHandle(
            id=container.id,
            name=container.name,
            app=labels[LABEL_APP],
            namespace=labels[LABEL_NAMESPACE],
            service=labels.get(LABEL_SERVICE, ""),
            tag=parse_tag(labels[LABEL_TAG]),
            sequence=int(labels.get(LABEL_SEQUENCE, "0")),
            state=ContainerState.parse(container.status),
            ip_address=network.get("IPAddress") or settings.get("IPAddress", ""),
        )

    def _create_one(self, app: str, namespace: str, tag: PluginTag) -> ContainerHandle:
        slot = tag.service or "app"
        name = f"{app}-{namespace}-{slot}-{uuid.uuid4().hex[:8]}"
        labels = {
            LABEL_APP: app,
            LABEL_NAMESPACE: namespace,
            LABEL_SERVICE: tag.service,
            LABEL_TAG: str(tag),
            LABEL_SEQUENCE: str(self._next_sequence()),
        }
        environment = {
            "CUMULUS_APP_NAME": app,
            "CUMULUS_APP_NAMESPACE": namespace,
            "CUMULUS_APP_DNS": f"{app}-{namespace}.{self.domain}",
            "CUMULUS_SERVICE": slot,
        }
        container = self.client.containers.create(
            image=self.image_for(tag),
            name=name,
            hostname=slot,
            labels=labels,
            environment=environment,
            network=self.network,
            detach=True,
        )
        logger.info("Created container %s for %s (%s)", name, app, tag)
        return self._to_handle(container)

    async def create_containers(
        self, app: str, namespace: str, tags: list[PluginTag], count: int = 1
    ) -> list[ContainerHandle]:
        handles = []
        for _ in range(count):
            for tag in tags:
                try:
                    handle = await asyncio.to_thread(self._create_one, app, namespace, tag)
                except (DockerException, ConnectionError) as e:
                    raise ContainerRuntimeError("create", str(e), app=app) from e
                handles.append(handle)
        return handles

    async def find_containers(
        self, app: str, namespace: str, service: str | None = None
    ) -> list[ContainerHandle]:
        filters = [f"{LABEL_APP}={app}", f"{LABEL_NAMESPACE}={namespace}"]
        if service is not None:
            filters.append(f"{LABEL_SERVICE}={service}")

        try:
            containers = await asyncio.to_thread(
                self.client.containers.list, all=True, filters={"label": filters}
            )
        except (DockerException, ConnectionError) as e:
            raise ContainerRuntimeError("find", str(e), app=app) from e

        handles = [self._to_handle(c) for c in containers]
        if service is not None:
            # Engines differ on matching empty label values
            handles = [h for h in handles if h.service == service]
        return sorted(handles, key=lambda h: h.sequence)

    async def _call(
        self, operation: str, handle: ContainerHandle, verb: str, **kwargs: Any
    ) -> None:
        def run() -> None:
            container = self.client.containers.get(handle.id)
            getattr(container, verb)(**kwargs)

        try:
            await asyncio.to_thread(run)
        except APIError as e:
            if _not_modified(e):
                logger.debug("Container %s already in target state for %s", handle.name, operation)
                return
            raise _failure(operation, handle, e) from e
        except (DockerException, ConnectionError) as e:
            raise _failure(operation, handle, e) from e
        logger.info("%s container %s", operation.capitalize(), handle.name)

    async def inspect(self, handle: ContainerHandle) -> ContainerHandle:
        try:
            container = await asyncio.to_thread(self.client.containers.get, handle.id)
        except (DockerException, ConnectionError) as e:
            raise _failure("inspect", handle, e) from e
        return self._to_handle(container)

    async def start(self, handle: ContainerHandle) -> None:
        await self._call("start", handle, "start")

    async def stop(self, handle: ContainerHandle) -> None:
        await self._call("stop", handle, "stop", timeout=self.stop_timeout)

    async def restart(self, handle: ContainerHandle) -> None:
        await self._call("restart", handle, "restart", timeout=self.stop_timeout)

    async def destroy(self, handle: ContainerHandle) -> None:
        try:
            await self._call("destroy", handle, "remove", force=True, v=True)
        except ContainerRuntimeError as e:
            if isinstance(e.__cause__, NotFound):
                logger.debug("Container %s already removed", handle.name)
                return
            raise

    async def exec(self, handle: ContainerHandle, user: str, *args: str) -> str:
        def run() -> Any:
            container = self.client.containers.get(handle.id)
            return container.exec_run(list(args), user=user or "")

        try:
            result = await asyncio.to_thread(run)
        except (DockerException, ConnectionError) as e:
            raise _failure("exec", handle, e) from e

        output = result.output.decode("utf-8", errors="replace") if result.output else ""
        if result.exit_code:
            msg = f"command exited with status {result.exit_code}: {output.strip()}"
            raise ContainerRuntimeError("exec", msg, app=handle.app, container=handle.name)
        return output

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("Closed container engine client")
