"""Configuration loading and validation."""

from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError

from cumulus.config.schema import CumulusConfig
from cumulus.errors import CumulusError

DEFAULT_CONFIG_PATH = Path.home() / ".cumulus" / "cumulus.yaml"


class ConfigError(CumulusError):
    """Configuration loading or validation error."""


def load_config(path: Optional[Path] = None) -> CumulusConfig:
    """Load and validate cumulus configuration from a YAML file.

    Args:
        path: Path to config file. If None, the default location is used.
              A missing file yields the default configuration.

    Returns:
        Validated configuration object

    Raises:
        ConfigError: If the config file exists but is invalid
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH

    if not path.exists():
        return CumulusConfig()

    try:
        with open(path, "r") as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config from {path}: {e}") from e

    if config_data is None:
        return CumulusConfig()
    if not isinstance(config_data, dict):
        raise ConfigError(f"Configuration in {path} must be a mapping")

    try:
        return CumulusConfig(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e


def save_config(config: CumulusConfig, path: Optional[Union[str, Path]] = None) -> None:
    """Save configuration to a YAML file.

    Args:
        config: Configuration object to save
        path: Destination path. If None, uses the default location.
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH
    elif isinstance(path, str):
        path = Path(path)

    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        yaml.safe_dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)
