"""Application lifecycle broker.

The broker turns lifecycle requests into plugin resolution, container
intents and proxy updates. Lifecycle operations on one application are
serialized by a lock keyed on ``(namespace, name)``; different
applications never contend.

Failure policy:

- Validation happens before any resolution or runtime call.
- Resolution failures abort with no side effects.
- Create, scale-up, start and restart stop at the first runtime failure.
- Stop, scale-down and remove carry on across all containers and raise
  the first failure afterwards.
- Proxy failures are logged and never undo a container change.

Store and hub reads and writes are blocking file I/O and run in worker
threads.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from cumulus.broker.locks import KeyedLock
from cumulus.errors import (
    ApplicationExistsError,
    ApplicationNotFoundError,
    CumulusError,
    NoNamespaceError,
    NotFoundError,
    ProxyError,
    ValidationError,
)
from cumulus.hub.manifest import Category, Plugin
from cumulus.hub.repository import PluginHub
from cumulus.hub.tag import PluginTag, parse_tag
from cumulus.proxy.base import Proxy
from cumulus.resolver import PluginResolver
from cumulus.runtime.base import (
    FRAMEWORK_SERVICE,
    ContainerHandle,
    ContainerRuntime,
    ContainerState,
)
from cumulus.scm import SCM, Branch
from cumulus.store import ApplicationRecord, UserStore

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[a-z][a-z_0-9]*$")


def validate_name(name: str) -> None:
    """Check an application name.

    Raises:
        ValidationError: Unless the name is lower case letters, digits
            or underscores starting with a letter
    """
    if not NAME_PATTERN.match(name or ""):
        raise ValidationError(
            "The application name can only contain lower case letters, digits or "
            f"underscores, and must start with a letter: '{name}'"
        )


def parse_scale(expr: str, current: int) -> int:
    """Turn ``N``, ``+N`` or ``-N`` into an absolute scaling target.

    Raises:
        ValidationError: If the expression is not a number
    """
    text = expr.strip()
    sign = ""
    if text[:1] in ("+", "-"):
        sign, text = text[0], text[1:]
    if not text.isdigit():
        raise ValidationError(f"invalid scale: '{expr}'")

    num = int(text)
    if sign == "+":
        return current + num
    if sign == "-":
        return current - num
    return num


@dataclass(frozen=True)
class User:
    """An authenticated caller."""

    name: str
    namespace: str = ""


class ApplicationInfo(BaseModel):
    """Application summary for API clients."""

    name: str
    namespace: str
    created_at: datetime
    url: str
    ssh_url: str
    framework: Plugin | None = None
    services: list[Plugin] = Field(default_factory=list)
    scaling: int = 0


class Broker:
    """Shared collaborators and the per-application lock table."""

    def __init__(
        self,
        hub: PluginHub,
        runtime: ContainerRuntime,
        proxy: Proxy,
        store: UserStore,
        scm: SCM | None = None,
        domain: str = "cumulus.local",
        scheme: str = "http",
        ssh_port: int = 2200,
    ) -> None:
        self.hub = hub
        self.resolver = PluginResolver(hub)
        self.runtime = runtime
        self.proxy = proxy
        self.store = store
        self.scm = scm
        self.domain = domain
        self.scheme = scheme
        self.ssh_port = ssh_port
        self._locks = KeyedLock()

    def for_user(self, user: User) -> UserBroker:
        return UserBroker(self, user)

    def lock(self, namespace: str, name: str):
        """Serialize lifecycle operations on one application."""
        return self._locks.hold((namespace, name))

    def app_host(self, name: str, namespace: str) -> str:
        return f"{name}-{namespace}.{self.domain}"

    def _frontend(self, handle: ContainerHandle) -> str:
        host = self.app_host(handle.app, handle.namespace)
        if handle.is_framework:
            return host
        return f"{handle.service}.{host}"

    async def publish(self, handle: ContainerHandle) -> None:
        """Route a running container's endpoints. Failures are only logged."""
        try:
            tag = handle.tag.without_service()
            plugin = await asyncio.to_thread(self.hub.get_plugin_info, tag)
        except NotFoundError as e:
            logger.warning("Cannot publish %s: %s", handle.name, e)
            return
        if not plugin.endpoints:
            return

        try:
            current = await self.runtime.inspect(handle)
            frontend = self._frontend(current)
            endpoints = [ep.bind(current.ip_address, frontend) for ep in plugin.endpoints]
            await self.proxy.add_endpoints(current.id, endpoints)
        except CumulusError as e:
            logger.warning("Failed to publish endpoints of %s: %s", handle.name, e)

    async def retract(self, handle: ContainerHandle) -> None:
        """Drop a container's routes. Failures are only logged."""
        try:
            await self.proxy.remove_endpoints(handle.id)
        except ProxyError as e:
            logger.warning("Failed to retract endpoints of %s: %s", handle.name, e)

    async def resync_proxy(self) -> int:
        """Clear every route and republish all running containers.

        Returns:
            Number of containers republished
        """
        await self.proxy.reset()
        count = 0
        for namespace in await asyncio.to_thread(self.store.list_namespaces):
            for record in await asyncio.to_thread(self.store.list_applications, namespace):
                for handle in await self.runtime.find_containers(record.name, namespace):
                    if handle.state == ContainerState.RUNNING:
                        await self.publish(handle)
                        count += 1
        logger.info("Resynchronized proxy with %d running containers", count)
        return count

    async def close(self) -> None:
        await self.proxy.close()
        await self.runtime.close()


class UserBroker:
    """Lifecycle and plugin operations on behalf of one caller."""

    def __init__(self, broker: Broker, user: User) -> None:
        self.broker = broker
        self.user = user

    @property
    def namespace(self) -> str:
        return self.user.namespace

    def _require_namespace(self) -> str:
        if not self.namespace:
            raise NoNamespaceError(self.user.name)
        return self.namespace

    def _lock(self, name: str):
        return self.broker.lock(self.namespace, name)

    async def _record(self, name: str) -> ApplicationRecord:
        namespace = self._require_namespace()
        record = await asyncio.to_thread(self.broker.store.get_application, namespace, name)
        if record is None:
            raise ApplicationNotFoundError(name, self.namespace)
        return record

    # Plugins

    def get_installed_plugins(self, category: Category | None = None) -> list[Plugin]:
        return self.broker.resolver.get_installed_plugins(self.namespace, category)

    def get_user_plugins(self, category: Category | None = None) -> list[Plugin]:
        return self.broker.resolver.get_user_plugins(self.namespace, category)

    def get_plugin_info(self, tag: PluginTag | str) -> Plugin:
        return self.broker.resolver.resolve_tag(self.namespace, tag)

    def install_plugin(self, source: Path | str) -> Plugin:
        """Install a plugin into the caller's namespace."""
        return self.broker.hub.install_plugin(self._require_namespace(), source)

    def remove_plugin(self, tag: str) -> None:
        """Remove a plugin from the caller's namespace.

        ``tag`` is ``name`` or ``name:version``.
        """
        namespace = self._require_namespace()
        self.broker.hub.remove_plugin(parse_tag(tag).with_namespace(namespace))

    # Lifecycle

    def _resolve_composition(
        self, framework: str, services: Sequence[str]
    ) -> list[tuple[PluginTag, Plugin]]:
        framework_tag = parse_tag(framework).without_service()
        service_tags = [parse_tag(s) for s in services]

        resolved = self.broker.resolver.resolve_tags(self.namespace, [framework_tag, *service_tags])
        fw_tag, fw_plugin = resolved[0]
        if fw_plugin.category != Category.FRAMEWORK:
            raise ValidationError(f"{framework}: not a framework plugin")

        composition = [(fw_tag, fw_plugin)]
        slots = set()
        for tag, plugin in resolved[1:]:
            if plugin.category != Category.SERVICE:
                raise ValidationError(f"{tag}: not a service plugin")
            slot = tag.service or plugin.name
            if slot in slots:
                raise ValidationError(f"duplicate service '{slot}'")
            slots.add(slot)
            composition.append(
                (PluginTag(tag.name, tag.namespace, tag.version, service=slot), plugin)
            )
        return composition

    async def create_application(
        self,
        name: str,
        framework: str,
        services: Sequence[str] = (),
        scaling: int = 1,
        start: bool = False,
    ) -> list[ContainerHandle]:
        """Create an application's containers.

        With ``start`` the new containers are also started and published
        before the application lock is released. A start failure leaves
        the application created.

        Raises:
            ValidationError: If the name, framework or scaling is invalid
            NoNamespaceError: If the caller has no namespace
            ApplicationExistsError: If the application already exists
            ParseError, PluginNotFoundError, VersionNotFoundError: If a
                plugin reference does not resolve
            ContainerRuntimeError: If the runtime fails; containers
                created so far are removed again
        """
        validate_name(name)
        if not framework:
            raise ValidationError("The application framework cannot be empty.")
        if scaling < 1:
            raise ValidationError(f"scaling must be at least 1, got {scaling}")
        namespace = self._require_namespace()
        store = self.broker.store

        async with self._lock(name):
            if await asyncio.to_thread(store.get_application, namespace, name) is not None:
                raise ApplicationExistsError(name, namespace)

            composition = await asyncio.to_thread(self._resolve_composition, framework, services)
            tags = [tag for tag, _ in composition]
            record = ApplicationRecord(name=name, plugins=[str(t) for t in tags], scaling=scaling)
            await asyncio.to_thread(store.add_application, namespace, record)

            runtime = self.broker.runtime
            try:
                handles = await runtime.create_containers(name, namespace, tags[:1], count=scaling)
                if len(tags) > 1:
                    handles += await runtime.create_containers(name, namespace, tags[1:])
            except CumulusError:
                logger.error("Creating %s failed, removing partial containers", name)
                await self._rollback_create(name, namespace)
                raise

            if start:
                await self._start_all(handles)

        logger.info(
            "Created application %s in %s with %d containers", name, namespace, len(handles)
        )
        return handles

    async def _rollback_create(self, name: str, namespace: str) -> None:
        """Undo a failed create. Cleanup errors are logged, not raised."""
        try:
            await self._destroy_all(await self.broker.runtime.find_containers(name, namespace))
        except CumulusError as e:
            logger.error("Cleanup of %s left containers behind: %s", name, e)
        await asyncio.to_thread(self.broker.store.remove_application, namespace, name)

    async def _start_all(self, handles: Iterable[ContainerHandle]) -> None:
        for handle in handles:
            await self.broker.runtime.start(handle)
            await self.broker.publish(handle)

    async def start_containers(self, handles: Iterable[ContainerHandle]) -> None:
        """Start containers returned by create or scale and publish them."""
        handles = list(handles)
        for name in dict.fromkeys(h.app for h in handles):
            async with self._lock(name):
                await self._start_all(h for h in handles if h.app == name)

    async def start_application(self, name: str) -> None:
        async with self._lock(name):
            await self._record(name)
            await self._start_all(await self.broker.runtime.find_containers(name, self.namespace))
        logger.info("Started application %s in %s", name, self.namespace)

    async def stop_application(self, name: str) -> None:
        async with self._lock(name):
            await self._record(name)
            handles = await self.broker.runtime.find_containers(name, self.namespace)
            await self._each(handles, self._stop_one)
        logger.info("Stopped application %s in %s", name, self.namespace)

    async def restart_application(self, name: str) -> None:
        async with self._lock(name):
            await self._record(name)
            for handle in await self.broker.runtime.find_containers(name, self.namespace):
                await self.broker.runtime.restart(handle)
                await self.broker.publish(handle)
        logger.info("Restarted application %s in %s", name, self.namespace)

    async def scale_application(self, name: str, target: int) -> list[ContainerHandle]:
        """Set the number of framework containers.

        New containers replicate the plugin of the oldest framework
        container. They are started only if the application is running,
        so scaling never changes the run state. Shrinking removes the
        newest containers first. Repeating a call with the same target
        is a no-op.

        Returns:
            The framework containers after scaling, oldest first
        """
        if target < 1:
            raise ValidationError(f"scaling must be at least 1, got {target}")

        runtime = self.broker.runtime
        async with self._lock(name):
            record = await self._record(name)
            current = await runtime.find_containers(name, self.namespace, FRAMEWORK_SERVICE)

            if target > len(current):
                running = any(h.state == ContainerState.RUNNING for h in current)
                tag = current[0].tag if current else parse_tag(record.framework)
                added = await runtime.create_containers(
                    name, self.namespace, [tag], count=target - len(current)
                )
                if running:
                    await self._start_all(added)
            elif target < len(current):
                await self._destroy_all(current[target:])

            if record.scaling != target:
                await asyncio.to_thread(
                    self.broker.store.update_application,
                    self.namespace,
                    record.model_copy(update={"scaling": target}),
                )
            result = await runtime.find_containers(name, self.namespace, FRAMEWORK_SERVICE)

        logger.info(
            "Scaled application %s in %s from %d to %d", name, self.namespace, len(current), target
        )
        return result

    async def remove_application(self, name: str) -> None:
        """Destroy every container of an application and forget it.

        All containers are attempted even if some fail; the first
        failure is raised once the record has been deleted.
        """
        namespace = self._require_namespace()
        async with self._lock(name):
            record = await asyncio.to_thread(self.broker.store.get_application, namespace, name)
            handles = await self.broker.runtime.find_containers(name, namespace)
            if record is None and not handles:
                raise ApplicationNotFoundError(name, namespace)

            error = await self._each(handles, self._destroy_one, raise_first=False)
            if record is not None:
                await asyncio.to_thread(self.broker.store.remove_application, namespace, name)

        logger.info("Removed application %s from %s", name, namespace)
        if error is not None:
            raise error

    async def _stop_one(self, handle: ContainerHandle) -> None:
        await self.broker.retract(handle)
        await self.broker.runtime.stop(handle)

    async def _destroy_one(self, handle: ContainerHandle) -> None:
        await self.broker.retract(handle)
        await self.broker.runtime.destroy(handle)

    async def _destroy_all(self, handles: list[ContainerHandle]) -> None:
        await self._each(handles, self._destroy_one)

    async def _each(self, handles, action, raise_first: bool = True) -> CumulusError | None:
        """Apply an action to every handle, remembering the first failure."""
        first: CumulusError | None = None
        for handle in handles:
            try:
                await action(handle)
            except CumulusError as e:
                logger.warning("%s", e)
                if first is None:
                    first = e
        if first is not None and raise_first:
            raise first
        return first

    # Queries and pass-throughs

    def list_applications(self) -> list[ApplicationRecord]:
        if not self.namespace:
            return []
        return self.broker.store.list_applications(self.namespace)

    async def count_containers(self, name: str) -> int:
        """Live number of framework containers."""
        handles = await self.broker.runtime.find_containers(name, self.namespace, FRAMEWORK_SERVICE)
        return len(handles)

    async def get_application_info(self, name: str) -> ApplicationInfo:
        record = await self._record(name)
        host = self.broker.app_host(name, self.namespace)
        info = ApplicationInfo(
            name=name,
            namespace=self.namespace,
            created_at=record.created_at,
            url=f"{self.broker.scheme}://{host}",
            ssh_url=f"ssh://{name}-{self.namespace}@{self.broker.domain}:{self.broker.ssh_port}",
        )

        for tag in record.plugins:
            try:
                plugin = await asyncio.to_thread(
                    self.broker.hub.get_plugin_info, parse_tag(tag).without_service()
                )
            except NotFoundError as e:
                logger.warning("Application %s references a missing plugin: %s", name, e)
                continue
            if plugin.category == Category.FRAMEWORK:
                info.framework = plugin.public()
            else:
                info.services.append(plugin.public())

        info.scaling = await self.count_containers(name)
        return info

    async def exec_in_application(
        self, name: str, service: str, user: str, *args: str
    ) -> str:
        """Run a command in the first container of a service.

        An empty service means the framework containers.
        """
        await self._record(name)
        handles = await self.broker.runtime.find_containers(name, self.namespace, service)
        if not handles:
            raise NotFoundError(f"no containers for service '{service or 'framework'}' of {name}")
        return await self.broker.runtime.exec(handles[0], user, *args)

    def _scm(self) -> SCM:
        if self.broker.scm is None:
            raise CumulusError("source control is not configured")
        return self.broker.scm

    async def deploy(self, name: str, branch: str) -> None:
        await self._record(name)
        await self._scm().deploy(self.namespace, name, branch)
        logger.info("Deployed %s of %s in %s", branch, name, self.namespace)

    async def get_deployments(self, name: str) -> tuple[Branch, list[Branch]]:
        """Return the deployed branch and all deployable branches."""
        await self._record(name)
        scm = self._scm()
        current = await scm.get_deployment_branch(self.namespace, name)
        branches = await scm.get_deployment_branches(self.namespace, name)
        return current, branches

