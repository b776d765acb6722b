"""Factory function for wiring a broker from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cumulus.broker.broker import Broker
from cumulus.hub.repository import PluginHub
from cumulus.proxy.base import ProxyRegistry, default_registry
from cumulus.store import YamlUserStore

if TYPE_CHECKING:
    from cumulus.config.schema import CumulusConfig
    from cumulus.runtime.base import ContainerRuntime
    from cumulus.scm import SCM


def create_broker(
    config: CumulusConfig,
    runtime: ContainerRuntime | None = None,
    registry: ProxyRegistry | None = None,
    scm: SCM | None = None,
) -> Broker:
    """Create a broker from configuration.

    Args:
        config: Cumulus configuration.
        runtime: Container runtime to use. Defaults to a Docker/Podman
            runtime configured from ``config.runtime``.
        registry: Proxy backend table. Defaults to every bundled backend.
        scm: Optional source control collaborator.

    Returns:
        A broker ready to serve requests.

    Raises:
        ProxyNotConfiguredError: If ``proxy.url`` is empty.
        UnsupportedSchemeError: If no backend serves ``proxy.url``.
    """
    if runtime is None:
        from cumulus.runtime.docker import DockerRuntime

        engine = config.runtime.engine
        runtime = DockerRuntime(
            engine=None if engine == "auto" else engine,
            network=config.runtime.network,
            image_registry=config.runtime.image_registry,
            stop_timeout=config.runtime.stop_timeout,
            domain=config.platform.domain,
        )

    registry = registry or default_registry()

    return Broker(
        hub=PluginHub(config.hub.dir),
        runtime=runtime,
        proxy=registry.new(config.proxy.url),
        store=YamlUserStore(config.store.dir),
        scm=scm,
        domain=config.platform.domain,
        scheme=config.platform.scheme,
        ssh_port=config.platform.ssh_port,
    )
