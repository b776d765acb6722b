"""Plugin hub: tag parsing and the installed plugin repository."""

from cumulus.hub.manifest import MANIFEST_FILE, Category, Endpoint, Plugin, read_manifest
from cumulus.hub.repository import SYSTEM_SCOPE, PluginHub
from cumulus.hub.tag import PluginTag, format_tag, parse_tag
from cumulus.hub.versions import latest_version, match_version, version_key

__all__ = [
    "MANIFEST_FILE",
    "SYSTEM_SCOPE",
    "Category",
    "Endpoint",
    "Plugin",
    "PluginHub",
    "PluginTag",
    "format_tag",
    "latest_version",
    "match_version",
    "parse_tag",
    "read_manifest",
    "version_key",
]
