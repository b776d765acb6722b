"""Tests for plugin version ordering."""

import pytest

from cumulus.hub.versions import latest_version, match_version, version_key


def test_numeric_components_compare_numerically():
    assert sorted(["1.10", "1.2", "1.9"], key=version_key) == ["1.2", "1.9", "1.10"]


def test_numeric_ranks_above_alphanumeric():
    assert version_key("1.0.1") > version_key("1.0.rc1")


def test_prefix_ranks_lower():
    assert version_key("1.0") < version_key("1.0.1")


def test_separators():
    assert sorted(["2.0-beta", "2.0+build.1", "1.9"], key=version_key)[0] == "1.9"


@pytest.mark.parametrize("versions", [["1.0", "1.00"], ["1.00", "1.0"]])
def test_ties_broken_independent_of_input_order(versions):
    assert latest_version(versions) == "1.00"


def test_latest_version():
    assert latest_version(["2.7", "3.9", "3.10"]) == "3.10"
    assert latest_version([]) is None


def test_match_version():
    versions = ["5.5", "5.7"]
    assert match_version(versions, "") == "5.7"
    assert match_version(versions, "5.5") == "5.5"
    assert match_version(versions, "8.0") is None
    assert match_version([], "") is None
