"""Tests for plugin resolution across system and namespace scopes."""

import pytest

from cumulus.errors import ParseError, PluginNotFoundError, VersionNotFoundError
from cumulus.hub.manifest import Category
from cumulus.hub.tag import PluginTag
from cumulus.resolver import PluginResolver


@pytest.fixture
def resolver(hub) -> PluginResolver:
    return PluginResolver(hub)


@pytest.fixture
def scopes(install):
    install("", "python", "3.9", display_name="Python")
    install("", "mysql", "5.7", category="service", display_name="MySQL")
    install("alice", "python", "2.7", display_name="Python (custom)")
    install("alice", "flask", "1.0", display_name="Flask")
    install("bob", "django", "4.2", display_name="Django", shared=True)
    install("bob", "rails", "7.0", display_name="Rails")


class TestInstalledPlugins:
    def test_system_only(self, resolver, scopes):
        names = [p.name for p in resolver.get_installed_plugins()]
        assert names == ["mysql", "python"]

    def test_namespace_overrides_system(self, resolver, scopes):
        plugins = {p.name: p for p in resolver.get_installed_plugins("alice")}

        assert set(plugins) == {"python", "mysql", "flask"}
        # Override wins regardless of version
        assert plugins["python"].version == "2.7"
        assert plugins["python"].namespace == "alice"
        assert plugins["mysql"].namespace == ""

    def test_sorted_by_display_name(self, resolver, scopes):
        names = [p.display_name for p in resolver.get_installed_plugins("alice")]
        assert names == sorted(names)

    def test_other_namespaces_not_listed(self, resolver, scopes):
        names = {p.name for p in resolver.get_installed_plugins("alice")}
        assert "django" not in names
        assert "rails" not in names

    def test_category_filter(self, resolver, scopes):
        plugins = resolver.get_installed_plugins("alice", Category.SERVICE)
        assert [p.name for p in plugins] == ["mysql"]

    def test_user_plugins(self, resolver, scopes):
        assert [p.name for p in resolver.get_user_plugins("alice")] == ["flask", "python"]
        assert resolver.get_user_plugins("") == []


class TestResolveTag:
    def test_own_namespace_first(self, resolver, scopes):
        plugin = resolver.resolve_tag("alice", "python")
        assert plugin.namespace == "alice"
        assert plugin.version == "2.7"

    def test_falls_back_to_system(self, resolver, scopes):
        plugin = resolver.resolve_tag("alice", "mysql")
        assert plugin.namespace == ""

    def test_falls_back_when_version_missing_in_namespace(self, resolver, scopes):
        plugin = resolver.resolve_tag("alice", "python:3.9")
        assert plugin.namespace == ""
        assert plugin.version == "3.9"

    def test_no_namespace_uses_system(self, resolver, scopes):
        assert resolver.resolve_tag("", "python").namespace == ""

    def test_explicit_own_namespace(self, resolver, scopes):
        assert resolver.resolve_tag("alice", "alice/flask").name == "flask"
        with pytest.raises(VersionNotFoundError):
            resolver.resolve_tag("alice", "alice/flask:9.9")

    def test_explicit_namespace_does_not_fall_back(self, resolver, scopes):
        with pytest.raises(PluginNotFoundError):
            resolver.resolve_tag("alice", "alice/mysql")

    def test_foreign_shared_plugin_visible(self, resolver, scopes):
        plugin = resolver.resolve_tag("alice", "bob/django")
        assert plugin.namespace == "bob"

    def test_foreign_private_plugin_hidden(self, resolver, scopes):
        with pytest.raises(PluginNotFoundError):
            resolver.resolve_tag("alice", "bob/rails")

    def test_foreign_missing_version_reported_as_missing_plugin(self, resolver, scopes):
        with pytest.raises(PluginNotFoundError):
            resolver.resolve_tag("alice", "bob/django:1.0")

    def test_owner_sees_private_plugin(self, resolver, scopes):
        assert resolver.resolve_tag("bob", "bob/rails").name == "rails"

    def test_unknown_plugin(self, resolver, scopes):
        with pytest.raises(PluginNotFoundError):
            resolver.resolve_tag("alice", "ruby")

    def test_malformed_tag(self, resolver, scopes):
        with pytest.raises(ParseError):
            resolver.resolve_tag("alice", "a/b/c")

    def test_service_prefix_ignored_for_lookup(self, resolver, scopes):
        assert resolver.resolve_tag("alice", "db:mysql:").name == "mysql"


class TestResolveTags:
    def test_concrete_tags(self, resolver, scopes):
        resolved = resolver.resolve_tags("alice", ["python", "db:mysql:", "bob/django"])

        assert [tag for tag, _ in resolved] == [
            PluginTag("python", "alice", "2.7"),
            PluginTag("mysql", "", "5.7", "db"),
            PluginTag("django", "bob", "4.2"),
        ]

    def test_fails_on_first_miss(self, resolver, scopes):
        with pytest.raises(PluginNotFoundError):
            resolver.resolve_tags("alice", ["python", "ruby"])
