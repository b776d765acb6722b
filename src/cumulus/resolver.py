"""Plugin resolution across the system scope and a caller's namespace.

Resolution order for a single tag:

1. A tag with an explicit namespace is looked up exactly there. A
   plugin owned by another namespace is only visible when it is shared.
2. Otherwise the caller's own namespace is tried first.
3. Then the system scope.

This is the only place that applies the ownership and sharing rule.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from cumulus.errors import NotFoundError, PluginNotFoundError, VersionNotFoundError
from cumulus.hub.manifest import Category, Plugin
from cumulus.hub.repository import PluginHub
from cumulus.hub.tag import PluginTag, parse_tag

logger = logging.getLogger(__name__)


def _by_display_name(plugins: Iterable[Plugin]) -> list[Plugin]:
    return sorted(plugins, key=lambda p: p.display_name)


class PluginResolver:
    """Scope-merging policy layered on a :class:`PluginHub`."""

    def __init__(self, hub: PluginHub) -> None:
        self.hub = hub

    def get_installed_plugins(
        self, namespace: str = "", category: Category | None = None
    ) -> list[Plugin]:
        """List system plugins overridden and extended by the caller's own.

        A namespace plugin replaces the system plugin of the same name
        whatever its version. The result is sorted by display name.
        """
        merged: dict[str, Plugin] = {p.name: p for p in self.hub.list_plugins("", category)}

        if namespace:
            for plugin in self.hub.list_plugins(namespace, category):
                if plugin.name in merged:
                    logger.debug("Namespace %s overrides system plugin %s", namespace, plugin.name)
                merged[plugin.name] = plugin

        return _by_display_name(merged.values())

    def get_user_plugins(self, namespace: str, category: Category | None = None) -> list[Plugin]:
        """List only the plugins installed in the caller's namespace."""
        if not namespace:
            return []
        return _by_display_name(self.hub.list_plugins(namespace, category))

    def resolve_tag(self, namespace: str, tag: PluginTag | str) -> Plugin:
        """Resolve one plugin reference on behalf of a caller.

        Args:
            namespace: The caller's namespace, empty for none
            tag: Plugin reference

        Returns:
            The installed plugin the reference denotes

        Raises:
            ParseError: If ``tag`` is a malformed string
            PluginNotFoundError: If nothing visible to the caller matches
            VersionNotFoundError: If the plugin exists but not the version
        """
        if isinstance(tag, str):
            tag = parse_tag(tag)
        tag = tag.without_service()

        if tag.namespace:
            foreign = tag.namespace != namespace
            try:
                plugin = self.hub.get_plugin_info(tag)
            except VersionNotFoundError:
                if foreign:
                    raise PluginNotFoundError(str(tag)) from None
                raise
            if foreign and not plugin.shared:
                logger.debug("Plugin %s is not shared with namespace '%s'", tag, namespace)
                raise PluginNotFoundError(str(tag))
            return plugin

        if namespace:
            try:
                return self.hub.get_plugin_info(tag.with_namespace(namespace))
            except NotFoundError:
                logger.debug("No plugin %s in namespace %s, trying system scope", tag, namespace)
        else:
            logger.debug("Caller has no namespace, resolving %s in system scope", tag)

        return self.hub.get_plugin_info(tag)

    def resolve_tags(
        self, namespace: str, tags: Iterable[PluginTag | str]
    ) -> list[tuple[PluginTag, Plugin]]:
        """Resolve several references, failing on the first miss.

        Each result pairs the concrete tag (owning namespace and exact
        version, original service slot kept) with its plugin.
        """
        resolved = []
        for tag in tags:
            if isinstance(tag, str):
                tag = parse_tag(tag)
            plugin = self.resolve_tag(namespace, tag)
            concrete = PluginTag(
                name=plugin.name,
                namespace=plugin.namespace,
                version=plugin.version,
                service=tag.service,
            )
            resolved.append((concrete, plugin))
        return resolved
