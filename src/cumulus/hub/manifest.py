"""Plugin manifest models and manifest file reading."""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from cumulus.errors import ManifestError

MANIFEST_FILE = "manifest.yml"

_NUMBER_TAGS = {"tag:yaml.org,2002:int", "tag:yaml.org,2002:float"}


class ManifestLoader(yaml.SafeLoader):
    """Safe loader that keeps numeric scalars as text.

    An unquoted ``version: 1.10`` must not turn into ``1.1``.
    """


ManifestLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag not in _NUMBER_TAGS]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


class Category(StrEnum):
    """Plugin category."""

    FRAMEWORK = "framework"
    SERVICE = "service"

    @property
    def is_framework(self) -> bool:
        return self is Category.FRAMEWORK


class Endpoint(BaseModel):
    """A network endpoint declared by a plugin.

    ``host`` and ``frontend`` are empty in the manifest and filled in
    when the endpoint is bound to a running container.
    """

    model_config = ConfigDict(frozen=True)

    port: int = Field(description="Private port the plugin listens on", ge=1, le=65535)
    protocol: str = Field(default="http", description="Endpoint protocol")
    path: str = Field(default="/", description="Path prefix routed to this endpoint")
    host: str = Field(default="", description="Container address, set when bound")
    frontend: str = Field(default="", description="Public host name, set when bound")

    def bind(self, host: str, frontend: str) -> Endpoint:
        return self.model_copy(update={"host": host, "frontend": frontend})


class Plugin(BaseModel):
    """Installed plugin metadata (a cartridge manifest)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(min_length=1)
    display_name: str = Field(default="", alias="display-name")
    version: str = Field(min_length=1)
    category: Category
    shared: bool = False
    endpoints: tuple[Endpoint, ...] = ()
    description: str = ""
    vendor: str = ""

    # Filled in by the hub, never read from the manifest file
    namespace: str = Field(default="", exclude=True)
    path: str = Field(default="", exclude=True)

    @model_validator(mode="before")
    @classmethod
    def _default_display_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not (data.get("display_name") or data.get("display-name")):
            data = {**data, "display_name": data.get("name", "")}
        return data

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_text(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    def public(self) -> Plugin:
        """Copy with the on-disk location removed, for API clients."""
        return self.model_copy(update={"path": ""})


def find_manifest(directory: Path) -> Path:
    """Locate the manifest inside a plugin directory.

    The manifest sits either at the top of the directory or inside a
    single top-level subdirectory (as produced by most archive tools).

    Raises:
        ManifestError: If no manifest can be found
    """
    candidate = directory / MANIFEST_FILE
    if candidate.is_file():
        return candidate

    entries = [p for p in directory.iterdir() if not p.name.startswith(".")]
    if len(entries) == 1 and entries[0].is_dir():
        nested = entries[0] / MANIFEST_FILE
        if nested.is_file():
            return nested

    raise ManifestError(f"{directory}: {MANIFEST_FILE} not found")


def read_manifest(directory: Path | str) -> Plugin:
    """Read and validate the manifest of a plugin directory.

    Raises:
        ManifestError: If the manifest is missing, not valid YAML, or
            fails validation
    """
    directory = Path(directory)
    path = find_manifest(directory)

    try:
        with open(path, "r") as f:
            data = yaml.load(f, Loader=ManifestLoader)
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(f"{path}: manifest must be a mapping")

    data.pop("namespace", None)
    data.pop("path", None)

    try:
        plugin = Plugin(**data)
    except PydanticValidationError as e:
        raise ManifestError(f"{path}: manifest validation failed: {e}") from e

    return plugin.model_copy(update={"path": str(path.parent)})
