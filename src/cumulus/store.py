"""Durable application records, one YAML file per namespace.

The store is the source of truth for which applications exist, which
plugins they were created from and their scaling factor. Live
containers are the runtime's business.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from cumulus.errors import ApplicationExistsError, ApplicationNotFoundError

logger = logging.getLogger(__name__)


class ApplicationRecord(BaseModel):
    """Persisted application metadata."""

    name: str
    plugins: list[str] = Field(description="Framework tag first, then service tags")
    scaling: int = Field(default=1, ge=1)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def framework(self) -> str:
        return self.plugins[0]

    @property
    def services(self) -> list[str]:
        return self.plugins[1:]


class UserStore(ABC):
    """Per-namespace application records."""

    @abstractmethod
    def list_namespaces(self) -> list[str]:
        """Return every namespace that has records."""

    @abstractmethod
    def get_application(self, namespace: str, name: str) -> ApplicationRecord | None:
        """Return a record, or None if the application does not exist."""

    @abstractmethod
    def list_applications(self, namespace: str) -> list[ApplicationRecord]:
        """Return all records of a namespace, sorted by name."""

    @abstractmethod
    def add_application(self, namespace: str, record: ApplicationRecord) -> None:
        """Insert a new record.

        Raises:
            ApplicationExistsError: If the name is taken
        """

    @abstractmethod
    def update_application(self, namespace: str, record: ApplicationRecord) -> None:
        """Replace an existing record.

        Raises:
            ApplicationNotFoundError: If there is no such record
        """

    @abstractmethod
    def remove_application(self, namespace: str, name: str) -> None:
        """Delete a record.

        Raises:
            ApplicationNotFoundError: If there is no such record
        """


class YamlUserStore(UserStore):
    """Stores each namespace's records in ``<dir>/<namespace>.yaml``."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory).expanduser()
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, namespace: str) -> Path:
        return self.directory / f"{namespace}.yaml"

    def _load(self, namespace: str) -> dict[str, ApplicationRecord]:
        path = self._path(namespace)
        if not path.exists():
            return {}
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return {
            name: ApplicationRecord(name=name, **fields)
            for name, fields in (data.get("applications") or {}).items()
        }

    def _save(self, namespace: str, records: dict[str, ApplicationRecord]) -> None:
        data = {
            "applications": {
                name: record.model_dump(mode="json", exclude={"name"})
                for name, record in sorted(records.items())
            }
        }
        fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=f".{namespace}-", suffix=".yaml")
        try:
            with os.fdopen(fd, "w") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
            os.replace(tmp, self._path(namespace))
        except BaseException:
            os.unlink(tmp)
            raise

    def list_namespaces(self) -> list[str]:
        return sorted(
            p.stem for p in self.directory.glob("*.yaml") if not p.name.startswith(".")
        )

    def get_application(self, namespace: str, name: str) -> ApplicationRecord | None:
        return self._load(namespace).get(name)

    def list_applications(self, namespace: str) -> list[ApplicationRecord]:
        records = self._load(namespace)
        return [records[name] for name in sorted(records)]

    def add_application(self, namespace: str, record: ApplicationRecord) -> None:
        with self._lock:
            records = self._load(namespace)
            if record.name in records:
                raise ApplicationExistsError(record.name, namespace)
            records[record.name] = record
            self._save(namespace, records)
        logger.debug("Recorded application %s in namespace %s", record.name, namespace)

    def update_application(self, namespace: str, record: ApplicationRecord) -> None:
        with self._lock:
            records = self._load(namespace)
            if record.name not in records:
                raise ApplicationNotFoundError(record.name, namespace)
            records[record.name] = record
            self._save(namespace, records)

    def remove_application(self, namespace: str, name: str) -> None:
        with self._lock:
            records = self._load(namespace)
            if records.pop(name, None) is None:
                raise ApplicationNotFoundError(name, namespace)
            self._save(namespace, records)
        logger.debug("Removed application record %s from namespace %s", name, namespace)
