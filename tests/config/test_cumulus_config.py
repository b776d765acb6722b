"""Tests for configuration loading."""

import pytest

from cumulus.config.loader import ConfigError, load_config, save_config
from cumulus.config.schema import CumulusConfig


def test_defaults():
    config = CumulusConfig()

    assert config.hub.dir == "~/.cumulus/plugins"
    assert config.proxy.url == "memory://"
    assert config.runtime.engine == "auto"
    assert config.platform.domain == "cumulus.local"
    assert config.platform.ssh_port == 2200
    assert config.logging.level == "INFO"


def test_missing_file_gives_defaults(tmp_path):
    assert load_config(tmp_path / "nope.yaml") == CumulusConfig()


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "cumulus.yaml"
    path.write_text("")

    assert load_config(path) == CumulusConfig()


def test_load_partial(tmp_path):
    path = tmp_path / "cumulus.yaml"
    path.write_text(
        "proxy:\n"
        "  url: https://router.internal\n"
        "runtime:\n"
        "  engine: podman\n"
        "  stop_timeout: 30\n"
    )

    config = load_config(path)

    assert config.proxy.url == "https://router.internal"
    assert config.runtime.engine == "podman"
    assert config.runtime.stop_timeout == 30
    assert config.runtime.network == "cumulus"


def test_invalid_yaml(tmp_path):
    path = tmp_path / "cumulus.yaml"
    path.write_text("proxy: [\n")

    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(path)


def test_not_a_mapping(tmp_path):
    path = tmp_path / "cumulus.yaml"
    path.write_text("- a\n- b\n")

    with pytest.raises(ConfigError):
        load_config(path)


def test_invalid_values(tmp_path):
    path = tmp_path / "cumulus.yaml"
    path.write_text("runtime:\n  engine: containerd\n")

    with pytest.raises(ConfigError, match="validation failed"):
        load_config(path)


def test_save_and_load(tmp_path):
    config = CumulusConfig()
    config.platform.domain = "apps.example.com"
    path = tmp_path / "nested" / "cumulus.yaml"

    save_config(config, str(path))

    assert load_config(path).platform.domain == "apps.example.com"
