"""Error taxonomy shared by the hub, resolver, broker and proxy layers."""

from __future__ import annotations


class CumulusError(Exception):
    """Base class for all cumulus errors."""


class ParseError(CumulusError):
    """A plugin tag string is malformed."""

    def __init__(self, tag: str, reason: str) -> None:
        self.tag = tag
        self.reason = reason
        super().__init__(f"invalid plugin tag '{tag}': {reason}")


class ValidationError(CumulusError):
    """An application name, namespace or scale target violates format rules."""


class NotFoundError(CumulusError):
    """Something the caller referenced does not exist."""


class PluginNotFoundError(NotFoundError):
    """No installed plugin matches the given namespace and name."""

    def __init__(self, tag: str) -> None:
        self.tag = tag
        super().__init__(f"{tag}: plugin not found")


class VersionNotFoundError(NotFoundError):
    """The plugin exists but none of its versions match."""

    def __init__(self, tag: str, version: str) -> None:
        self.tag = tag
        self.version = version
        super().__init__(f"{tag}: version not found: {version}")


class ApplicationNotFoundError(NotFoundError):
    """The namespace has no application with the given name."""

    def __init__(self, name: str, namespace: str) -> None:
        self.name = name
        self.namespace = namespace
        super().__init__(f"application '{name}' not found in namespace '{namespace}'")


class ApplicationExistsError(CumulusError):
    """An application with the same name already exists in the namespace."""

    def __init__(self, name: str, namespace: str) -> None:
        self.name = name
        self.namespace = namespace
        super().__init__(f"application '{name}' already exists in namespace '{namespace}'")


class NoNamespaceError(CumulusError):
    """The operation needs a tenant namespace but the caller has none."""

    def __init__(self, user: str = "") -> None:
        self.user = user
        if user:
            super().__init__(f"user '{user}' has no namespace")
        else:
            super().__init__("no namespace")


class ManifestError(CumulusError):
    """A plugin manifest is missing or invalid."""


class ContainerRuntimeError(CumulusError):
    """A container runtime call failed.

    Carries the application, container and operation so that callers
    can decide on a retry without guessing what was attempted.
    """

    def __init__(
        self,
        operation: str,
        message: str,
        app: str | None = None,
        container: str | None = None,
    ) -> None:
        self.operation = operation
        self.app = app
        self.container = container
        context = []
        if app:
            context.append(f"app={app}")
        if container:
            context.append(f"container={container}")
        prefix = f"{operation} failed"
        if context:
            prefix += f" ({', '.join(context)})"
        super().__init__(f"{prefix}: {message}")


class ProxyError(CumulusError):
    """A routing backend rejected or failed an update."""


class ProxyNotConfiguredError(ProxyError):
    """No proxy URL was configured."""

    def __init__(self) -> None:
        super().__init__("proxy URL not configured")


class UnsupportedSchemeError(ProxyError):
    """No proxy backend is registered for the URL scheme."""

    def __init__(self, scheme: str) -> None:
        self.scheme = scheme
        super().__init__(f"unsupported proxy scheme: {scheme}")
