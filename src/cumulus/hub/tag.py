"""Plugin tag parsing.

A tag references an installed plugin::

    [service:][namespace/]name[:version]

The string is split once on ``/``. With a ``/`` the left side is the
namespace, optionally prefixed by ``service:``, and the right side is
``name`` or ``name:version``. Without a ``/`` one ``:`` separates name
and version, and two ``:`` give ``service:name:version`` where the
version may be left empty (``db:mysql:``). No case or whitespace
normalization is done.
"""

from __future__ import annotations

from dataclasses import dataclass

from cumulus.errors import ParseError


@dataclass(frozen=True)
class PluginTag:
    """Structured plugin reference."""

    name: str
    namespace: str = ""
    version: str = ""
    service: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ParseError(str(self), "empty plugin name")

    @property
    def qualified_name(self) -> str:
        """``namespace/name`` or just ``name`` for system scope."""
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name

    def with_namespace(self, namespace: str) -> PluginTag:
        return PluginTag(self.name, namespace, self.version, self.service)

    def with_version(self, version: str) -> PluginTag:
        return PluginTag(self.name, self.namespace, version, self.service)

    def without_service(self) -> PluginTag:
        return PluginTag(self.name, self.namespace, self.version)

    def __str__(self) -> str:
        return format_tag(self)


def _require(tag: str, part: str, what: str) -> str:
    if not part:
        raise ParseError(tag, f"empty {what}")
    return part


def _split_name(tag: str, rest: str) -> tuple[str, str]:
    parts = rest.split(":")
    if len(parts) > 2:
        raise ParseError(tag, "too many ':' separators")
    name = _require(tag, parts[0], "plugin name")
    version = _require(tag, parts[1], "version") if len(parts) == 2 else ""
    return name, version


def parse_tag(tag: str) -> PluginTag:
    """Parse a plugin reference string.

    Raises:
        ParseError: If the string does not follow the tag grammar
    """
    if not tag:
        raise ParseError(tag, "empty tag")

    if tag.count("/") > 1:
        raise ParseError(tag, "too many '/' separators")

    service = namespace = ""

    if "/" in tag:
        head, rest = tag.split("/", 1)
        if ":" in head:
            service, namespace = head.split(":", 1)
            _require(tag, service, "service name")
            if ":" in namespace:
                raise ParseError(tag, "too many ':' separators")
        else:
            namespace = head
        _require(tag, namespace, "namespace")
        name, version = _split_name(tag, rest)
        return PluginTag(name=name, namespace=namespace, version=version, service=service)

    parts = tag.split(":")
    if len(parts) == 3:
        service = _require(tag, parts[0], "service name")
        name = _require(tag, parts[1], "plugin name")
        return PluginTag(name=name, version=parts[2], service=service)

    name, version = _split_name(tag, tag)
    return PluginTag(name=name, version=version)


def format_tag(tag: PluginTag) -> str:
    """Serialize a tag so that ``parse_tag(format_tag(t)) == t``."""
    text = tag.name
    if tag.version:
        text += f":{tag.version}"

    if tag.namespace:
        text = f"{tag.namespace}/{text}"
        if tag.service:
            text = f"{tag.service}:{text}"
    elif tag.service:
        text = f"{tag.service}:{tag.name}:{tag.version}"

    return text
