"""Container engine detection and client factory.

Docker and Podman are both driven through the ``docker`` Python SDK;
Podman exposes a Docker-compatible API socket.

Detection order:
1. Explicit ``engine`` argument (``runtime.engine`` in cumulus.yaml)
2. CONTAINER_HOST / DOCKER_HOST environment variable
3. Docker default socket
4. Podman rootless or rootful socket
"""

import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _podman_socket() -> str | None:
    """Find a Podman API socket.

    Returns:
        Socket URI (unix://<path>) or None if not found.
    """
    candidates = []
    if hasattr(os, "getuid"):
        candidates.append(Path(f"/run/user/{os.getuid()}/podman/podman.sock"))
    candidates.append(Path("/run/podman/podman.sock"))

    for sock in candidates:
        if sock.exists():
            logger.debug("Found Podman socket: %s", sock)
            return f"unix://{sock}"
    return None


def detect_engine(client: Any) -> str:
    """Tell Docker and Podman apart from the engine's version report.

    Returns:
        "docker" or "podman"
    """
    try:
        report = client.version()
    except Exception:
        return "docker"

    for component in report.get("Components", []):
        if "podman" in component.get("Name", "").lower():
            return "podman"
    if "podman" in report.get("Platform", {}).get("Name", "").lower():
        return "podman"
    return "docker"


def get_container_client(engine: str | None = None) -> Any:
    """Connect to a container engine.

    Args:
        engine: "docker", "podman", or "auto"/None to auto-detect

    Returns:
        A connected DockerClient

    Raises:
        ConnectionError: If no container engine is reachable
    """
    import docker

    if engine == "docker":
        return _connect(docker, None, "Docker daemon")
    if engine == "podman":
        return _connect(docker, _require_podman_socket(), "Podman")

    host = os.environ.get("CONTAINER_HOST") or os.environ.get("DOCKER_HOST")
    if host:
        return _connect(docker, host, host)

    try:
        return _connect(docker, None, "Docker daemon")
    except ConnectionError:
        logger.debug("Docker default socket not available, trying Podman")

    return _connect(docker, _require_podman_socket(), "Podman")


def _require_podman_socket() -> str:
    socket_uri = _podman_socket()
    if socket_uri is None:
        msg = (
            "No container engine found. Install Docker or Podman, "
            "or set CONTAINER_HOST / DOCKER_HOST environment variable."
        )
        raise ConnectionError(msg)
    return socket_uri


def _connect(docker_module: Any, base_url: str | None, label: str) -> Any:
    try:
        if base_url is None:
            client = docker_module.from_env()
        else:
            client = docker_module.DockerClient(base_url=base_url)
        client.ping()
    except Exception as e:
        msg = f"Failed to connect to {label}: {e}"
        raise ConnectionError(msg) from e

    logger.info("Connected to %s (%s)", detect_engine(client), label)
    return client
