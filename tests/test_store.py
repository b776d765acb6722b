"""Tests for the YAML application record store."""

from datetime import UTC, datetime

import pytest

from cumulus.errors import ApplicationExistsError, ApplicationNotFoundError
from cumulus.store import ApplicationRecord, YamlUserStore


def _record(name="shop", scaling=1):
    return ApplicationRecord(name=name, plugins=["python:3.9", "db:mysql:5.7"], scaling=scaling)


def test_record_properties():
    record = _record()
    assert record.framework == "python:3.9"
    assert record.services == ["db:mysql:5.7"]
    assert record.created_at.tzinfo is not None


def test_add_and_get(store):
    store.add_application("alice", _record())

    record = store.get_application("alice", "shop")
    assert record.plugins == ["python:3.9", "db:mysql:5.7"]
    assert store.get_application("alice", "blog") is None
    assert store.get_application("bob", "shop") is None


def test_add_duplicate(store):
    store.add_application("alice", _record())

    with pytest.raises(ApplicationExistsError):
        store.add_application("alice", _record())


def test_list_sorted(store):
    store.add_application("alice", _record("shop"))
    store.add_application("alice", _record("blog"))

    assert [r.name for r in store.list_applications("alice")] == ["blog", "shop"]
    assert store.list_applications("bob") == []


def test_update(store):
    store.add_application("alice", _record())

    store.update_application("alice", _record(scaling=4))

    assert store.get_application("alice", "shop").scaling == 4
    with pytest.raises(ApplicationNotFoundError):
        store.update_application("alice", _record("blog"))


def test_remove(store):
    store.add_application("alice", _record())

    store.remove_application("alice", "shop")

    assert store.get_application("alice", "shop") is None
    with pytest.raises(ApplicationNotFoundError):
        store.remove_application("alice", "shop")


def test_persists_across_instances(store):
    created = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    store.add_application(
        "alice", ApplicationRecord(name="shop", plugins=["python:3.9"], created_at=created)
    )

    reopened = YamlUserStore(store.directory)

    assert reopened.get_application("alice", "shop").created_at == created


def test_list_namespaces(store):
    store.add_application("bob", _record())
    store.add_application("alice", _record())

    assert store.list_namespaces() == ["alice", "bob"]
    assert not list(store.directory.glob(".*"))
