"""
Configuration loading for Manifestor.

Settings come from three layers, later ones winning: built-in defaults, an
optional YAML file, and environment variables. Keys are upper-case, matching
the YAML file.
"""

import os
from typing import Any, Dict, Optional

import platformdirs
import yaml

from manifestor.constants import (
    APP_NAME,
    CONFIG_FILE_NAME,
    DEFAULT_DIST_DIR,
    DEFAULT_RESOURCE_REPO,
    DEFAULT_RULES_BRANCH,
    DEFAULT_RULES_REPO,
    DEFAULT_STATIC_DIR,
    DEFAULT_UPSTREAM_REPO,
    DIST_DIR_ENV_VAR,
    LOG_LEVEL_ENV_VAR,
    STATIC_DIR_ENV_VAR,
)
from manifestor.exceptions import ConfigFileError
from manifestor.log_utils import logger

DEFAULT_CONFIG: Dict[str, Any] = {
    "UPSTREAM_REPO": DEFAULT_UPSTREAM_REPO,
    "RESOURCE_REPO": DEFAULT_RESOURCE_REPO,
    "RULES_REPO": DEFAULT_RULES_REPO,
    "RULES_BRANCH": DEFAULT_RULES_BRANCH,
    "STATIC_DIR": DEFAULT_STATIC_DIR,
    "DIST_DIR": DEFAULT_DIST_DIR,
    "GITHUB_TOKEN": None,
    "LOG_LEVEL": "INFO",
    "LOG_DIR": None,
}

# Environment variable -> config key
ENV_OVERRIDES = {
    "RESOURCE_REPO": "RESOURCE_REPO",
    "GITHUB_TOKEN": "GITHUB_TOKEN",
    STATIC_DIR_ENV_VAR: "STATIC_DIR",
    DIST_DIR_ENV_VAR: "DIST_DIR",
    LOG_LEVEL_ENV_VAR: "LOG_LEVEL",
}


def get_default_config_path() -> str:
    """Return the config file path inside the platformdirs user config directory."""
    return os.path.join(platformdirs.user_config_dir(APP_NAME), CONFIG_FILE_NAME)


def _read_config_file(config_path: str) -> Dict[str, Any]:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigFileError(
            f"Could not parse configuration file {config_path}", details=str(e)
        ) from e
    except OSError as e:
        raise ConfigFileError(
            f"Could not read configuration file {config_path}", details=str(e)
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigFileError(
            f"Configuration file {config_path} must contain a mapping",
            details=f"got {type(data).__name__}",
        )
    return {str(key).upper(): value for key, value in data.items()}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Build the effective configuration.

    If `config_path` is given the file must exist. Otherwise the platformdirs
    location is used when a file is present there, and defaults apply when not.

    Parameters:
        config_path (Optional[str]): Explicit path to a YAML configuration file.

    Returns:
        Dict[str, Any]: The merged configuration.

    Raises:
        ConfigFileError: If the file cannot be read, parsed, or is not a mapping.
    """
    config = dict(DEFAULT_CONFIG)

    if config_path:
        if not os.path.exists(config_path):
            raise ConfigFileError(f"Configuration file not found: {config_path}")
        path_to_read: Optional[str] = config_path
    else:
        default_path = get_default_config_path()
        path_to_read = default_path if os.path.exists(default_path) else None

    if path_to_read:
        logger.debug(f"Loading configuration from {path_to_read}")
        config.update(_read_config_file(path_to_read))

    for env_var, key in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            config[key] = value

    return config
