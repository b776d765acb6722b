"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import dataclasses
import itertools
from collections import Counter
from contextlib import asynccontextmanager
from pathlib import Path

import pytest
import yaml

from cumulus.broker import Broker, User
from cumulus.errors import ContainerRuntimeError
from cumulus.hub.manifest import MANIFEST_FILE
from cumulus.hub.repository import PluginHub
from cumulus.hub.tag import PluginTag
from cumulus.proxy.memory import MemoryProxy
from cumulus.runtime.base import ContainerHandle, ContainerRuntime, ContainerState
from cumulus.store import YamlUserStore


class FakeRuntime(ContainerRuntime):
    """In-memory container runtime.

    ``failing`` maps an operation name to container ids (or ``"*"``)
    whose calls raise. ``create_limit`` caps the number of containers
    that can be created before create calls fail. ``delay`` makes every
    call yield to the event loop so that concurrent callers interleave.
    """

    def __init__(self) -> None:
        self.containers: dict[str, ContainerHandle] = {}
        self.failing: dict[str, set[str]] = {}
        self.create_limit: int | None = None
        self.delay = 0.0
        self.calls: list[tuple[str, str]] = []
        self.max_active_per_app = 0
        self.max_active = 0
        self._active: Counter = Counter()
        self._seq = itertools.count(1)

    @asynccontextmanager
    async def _op(self, operation: str, app: str, container_id: str = ""):
        self._active[app] += 1
        self.max_active_per_app = max(self.max_active_per_app, self._active[app])
        self.max_active = max(self.max_active, sum(self._active.values()))
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            failing = self.failing.get(operation, set())
            if "*" in failing or container_id in failing:
                raise ContainerRuntimeError(operation, "injected failure", app=app)
            self.calls.append((operation, container_id or app))
            yield
        finally:
            self._active[app] -= 1

    def _replace(self, handle: ContainerHandle, **changes) -> ContainerHandle:
        updated = dataclasses.replace(self.containers[handle.id], **changes)
        self.containers[handle.id] = updated
        return updated

    async def create_containers(
        self, app: str, namespace: str, tags: list[PluginTag], count: int = 1
    ) -> list[ContainerHandle]:
        handles = []
        for _ in range(count):
            for tag in tags:
                if self.create_limit is not None and len(self.containers) >= self.create_limit:
                    raise ContainerRuntimeError("create", "quota exceeded", app=app)
                async with self._op("create", app):
                    n = next(self._seq)
                    handle = ContainerHandle(
                        id=f"c{n:04d}",
                        name=f"{app}-{namespace}-{tag.service or 'app'}-{n}",
                        app=app,
                        namespace=namespace,
                        service=tag.service,
                        tag=tag,
                        sequence=n,
                        state=ContainerState.CREATED,
                    )
                    self.containers[handle.id] = handle
                    handles.append(handle)
        return handles

    async def find_containers(
        self, app: str, namespace: str, service: str | None = None
    ) -> list[ContainerHandle]:
        found = [
            h
            for h in self.containers.values()
            if h.app == app
            and h.namespace == namespace
            and (service is None or h.service == service)
        ]
        return sorted(found, key=lambda h: h.sequence)

    async def inspect(self, handle: ContainerHandle) -> ContainerHandle:
        if handle.id not in self.containers:
            raise ContainerRuntimeError("inspect", "no such container", app=handle.app)
        return self.containers[handle.id]

    async def start(self, handle: ContainerHandle) -> None:
        async with self._op("start", handle.app, handle.id):
            self._replace(
                handle, state=ContainerState.RUNNING, ip_address=f"10.0.0.{handle.sequence}"
            )

    async def stop(self, handle: ContainerHandle) -> None:
        async with self._op("stop", handle.app, handle.id):
            self._replace(handle, state=ContainerState.EXITED, ip_address="")

    async def restart(self, handle: ContainerHandle) -> None:
        async with self._op("restart", handle.app, handle.id):
            self._replace(
                handle, state=ContainerState.RUNNING, ip_address=f"10.0.0.{handle.sequence}"
            )

    async def destroy(self, handle: ContainerHandle) -> None:
        async with self._op("destroy", handle.app, handle.id):
            self.containers.pop(handle.id, None)

    async def exec(self, handle: ContainerHandle, user: str, *args: str) -> str:
        async with self._op("exec", handle.app, handle.id):
            return f"{user}@{handle.name}: {' '.join(args)}"


@pytest.fixture
def write_plugin(tmp_path: Path):
    """Return a function that writes a plugin source directory."""
    counter = itertools.count()

    def write(
        name: str,
        version: str = "1.0",
        category: str = "framework",
        shared: bool = False,
        endpoints: list[dict] | None = None,
        display_name: str | None = None,
        files: dict[str, str] | None = None,
    ) -> Path:
        source = tmp_path / "sources" / f"{name}-{version}-{next(counter)}"
        source.mkdir(parents=True)
        manifest = {
            "name": name,
            "version": version,
            "category": category,
            "shared": shared,
            "endpoints": endpoints or [],
        }
        if display_name:
            manifest["display-name"] = display_name
        (source / MANIFEST_FILE).write_text(yaml.safe_dump(manifest))
        for filename, content in (files or {}).items():
            (source / filename).write_text(content)
        return source

    return write


@pytest.fixture
def hub(tmp_path: Path) -> PluginHub:
    return PluginHub(tmp_path / "plugins")


@pytest.fixture
def install(hub: PluginHub, write_plugin):
    """Return a function that writes and installs a plugin."""

    def do_install(namespace: str, name: str, version: str = "1.0", **kwargs):
        return hub.install_plugin(namespace, write_plugin(name, version, **kwargs))

    return do_install


@pytest.fixture
def platform_plugins(install):
    """System plugins most broker tests build applications from."""
    web = [{"port": 8080, "protocol": "http", "path": "/"}]
    install("", "python", "2.7", endpoints=web, display_name="Python")
    install("", "python", "3.9", endpoints=web, display_name="Python")
    install("", "mysql", "5.7", category="service", display_name="MySQL")
    install("", "redis", "6", category="service", display_name="Redis")


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def proxy() -> MemoryProxy:
    return MemoryProxy()


@pytest.fixture
def store(tmp_path: Path) -> YamlUserStore:
    return YamlUserStore(tmp_path / "users")


@pytest.fixture
def broker(hub, runtime, proxy, store) -> Broker:
    return Broker(hub=hub, runtime=runtime, proxy=proxy, store=store)


@pytest.fixture
def alice(broker: Broker, platform_plugins):
    """Broker view of a user owning the ``alice`` namespace."""
    return broker.for_user(User(name="alice", namespace="alice"))
