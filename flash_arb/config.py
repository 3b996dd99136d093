"""
Configuration loading for the flash-loan arbitrage engine.

YAML files are parsed with PyYAML and validated against the pydantic schema in
config_schema. Any problem surfaces as ConfigurationError.
"""

import os
from typing import Any, Dict

import yaml
from pydantic import ValidationError

from .config_schema import BotConfig
from .exceptions import ConfigurationError


def parse_config(config_dict: Dict[str, Any]) -> BotConfig:
    """
    Validate a config dictionary.

    Args:
        config_dict: Loaded YAML config

    Returns:
        Validated BotConfig instance

    Raises:
        ConfigurationError: If required fields are missing or invalid
    """
    if not isinstance(config_dict, dict):
        raise ConfigurationError("Config must be a dictionary")
    try:
        return BotConfig.model_validate(config_dict)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise ConfigurationError(
            f"Invalid configuration: {'; '.join(errors)}", details={"errors": errors}
        ) from e


def load_config(config_path: str) -> BotConfig:
    """
    Load and validate config from YAML file.

    Args:
        config_path: Path to config YAML file

    Returns:
        Validated BotConfig instance

    Raises:
        ConfigurationError: If config invalid, unparsable or file not found
    """
    if not os.path.exists(config_path):
        raise ConfigurationError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigurationError("Config file must contain a YAML dictionary")

    return parse_config(config_dict)
