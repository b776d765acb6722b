"""On-disk, versioned, namespace-partitioned plugin repository.

Layout::

    <install_dir>/<scope>/<name>/<version>/manifest.yml
                                          /<payload files>

``scope`` is a tenant namespace or the reserved system marker
``.system``. Tenant namespaces may not start with a dot, so the system
scope cannot be shadowed by choosing a matching namespace string.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from cumulus.errors import (
    ManifestError,
    PluginNotFoundError,
    ValidationError,
    VersionNotFoundError,
)
from cumulus.hub.manifest import Category, Plugin, find_manifest, read_manifest
from cumulus.hub.tag import PluginTag, parse_tag
from cumulus.hub.versions import match_version, version_key

logger = logging.getLogger(__name__)

SYSTEM_SCOPE = ".system"
STAGING_DIR = ".staging"


def _check_component(value: str, what: str) -> str:
    if not value or "/" in value or "\\" in value or value.startswith("."):
        raise ValidationError(f"invalid {what}: '{value}'")
    return value


class PluginHub:
    """Durable store of installed plugins.

    Lookups are plain filesystem reads and never block each other.
    Installs and removals are serialized per ``(namespace, name, version)``
    target.
    """

    def __init__(self, install_dir: Path | str) -> None:
        self.install_dir = Path(install_dir).expanduser()
        self.install_dir.mkdir(parents=True, exist_ok=True)
        self._locks: dict[tuple[str, str, str], threading.Lock] = {}
        self._users: dict[tuple[str, str, str], int] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _target_lock(self, namespace: str, name: str, version: str) -> Iterator[None]:
        """Hold the lock of one install target.

        Entries nobody holds or waits for are dropped.
        """
        key = (namespace, name, version)
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            self._users[key] = self._users.get(key, 0) + 1

        try:
            with lock:
                yield
        finally:
            with self._locks_guard:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]

    def _scope_dir(self, namespace: str) -> Path:
        if not namespace:
            return self.install_dir / SYSTEM_SCOPE
        return self.install_dir / _check_component(namespace, "namespace")

    def _base_dir(self, namespace: str, name: str) -> Path:
        return self._scope_dir(namespace) / _check_component(name, "plugin name")

    @staticmethod
    def _versions(base: Path) -> list[str]:
        return [
            p.name for p in base.iterdir() if p.is_dir() and not p.name.startswith(".")
        ]

    def get_plugin_path(self, tag: PluginTag | str) -> Path:
        """Resolve a tag to an installed version directory.

        An empty version selects the latest installed version.

        Raises:
            PluginNotFoundError: If no version of the plugin is installed
            VersionNotFoundError: If versions exist but none matches
        """
        if isinstance(tag, str):
            tag = parse_tag(tag)

        base = self._base_dir(tag.namespace, tag.name)
        if not base.is_dir():
            raise PluginNotFoundError(tag.qualified_name)

        versions = self._versions(base)
        if not versions:
            raise PluginNotFoundError(tag.qualified_name)

        actual = match_version(versions, tag.version)
        if actual is None:
            raise VersionNotFoundError(tag.qualified_name, tag.version)
        return base / actual

    def get_plugin_info(self, tag: PluginTag | str) -> Plugin:
        """Read the manifest of the installed plugin a tag resolves to."""
        if isinstance(tag, str):
            tag = parse_tag(tag)
        path = self.get_plugin_path(tag)
        return read_manifest(path).model_copy(update={"namespace": tag.namespace})

    def list_plugins(self, namespace: str = "", category: Category | None = None) -> list[Plugin]:
        """List the plugins installed in one scope.

        Each plugin name appears once, at its latest version. Results
        are not sorted. Unreadable installations are skipped.
        """
        scope = self._scope_dir(namespace)
        if not scope.is_dir():
            return []

        plugins = []
        for base in scope.iterdir():
            if not base.is_dir() or base.name.startswith("."):
                continue
            versions = sorted(self._versions(base), key=version_key, reverse=True)
            for version in versions:
                try:
                    plugin = read_manifest(base / version)
                except ManifestError as e:
                    logger.warning("Skipping plugin %s/%s: %s", base.name, version, e)
                    continue
                if category is None or plugin.category == category:
                    plugins.append(plugin.model_copy(update={"namespace": namespace}))
                break
        return plugins

    def install_plugin(self, namespace: str, source: Path | str) -> Plugin:
        """Install a plugin from a directory or an archive.

        The manifest found in ``source`` names the install target. Any
        existing installation of the same ``(namespace, name, version)``
        is replaced as a whole, never merged.

        Raises:
            ManifestError: If ``source`` has no valid manifest
            ValidationError: If the namespace, name or version is not a
                valid path component
        """
        source = Path(source)
        if not source.exists():
            raise ManifestError(f"{source}: no such file or directory")

        self._scope_dir(namespace)  # validates the namespace up front
        staging_root = self.install_dir / STAGING_DIR
        staging_root.mkdir(exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix="install-", dir=staging_root))

        try:
            payload = staging / "payload"
            if source.is_dir():
                root = find_manifest(source).parent
                shutil.copytree(root, payload, symlinks=True)
            else:
                extracted = staging / "extract"
                try:
                    shutil.unpack_archive(str(source), str(extracted))
                except (shutil.ReadError, ValueError) as e:
                    raise ManifestError(f"{source}: unsupported plugin archive: {e}") from e
                find_manifest(extracted).parent.rename(payload)

            meta = read_manifest(payload)
            _check_component(meta.name, "plugin name")
            _check_component(meta.version, "version")

            target = self._base_dir(namespace, meta.name) / meta.version
            with self._target_lock(namespace, meta.name, meta.version):
                target.parent.mkdir(parents=True, exist_ok=True)
                if target.exists():
                    target.rename(staging / "previous")
                payload.rename(target)

            logger.info(
                "Installed plugin %s:%s into %s scope",
                meta.name,
                meta.version,
                namespace or "system",
            )
            return read_manifest(target).model_copy(update={"namespace": namespace})
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def remove_plugin(self, tag: PluginTag | str) -> None:
        """Remove an installed plugin.

        ``namespace/name:version`` removes one version; without a version
        every installed version of the plugin is removed.

        Raises:
            PluginNotFoundError: If the plugin is not installed
            VersionNotFoundError: If the requested version is not installed
        """
        if isinstance(tag, str):
            tag = parse_tag(tag)

        base = self._base_dir(tag.namespace, tag.name)
        if not base.is_dir():
            raise PluginNotFoundError(tag.qualified_name)

        installed = self._versions(base)
        if tag.version:
            versions = [tag.version]
            if tag.version not in installed:
                raise VersionNotFoundError(tag.qualified_name, tag.version)
        else:
            versions = sorted(installed, key=version_key)
            if not versions:
                raise PluginNotFoundError(tag.qualified_name)

        for version in versions:
            with self._target_lock(tag.namespace, tag.name, version):
                if not (base / version).is_dir():
                    raise VersionNotFoundError(tag.qualified_name, version)
                shutil.rmtree(base / version)
            logger.info("Removed plugin %s:%s", tag.qualified_name, version)

        try:
            base.rmdir()
        except OSError:
            pass  # other versions remain
