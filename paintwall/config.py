"""
Configuration for the Paintwall server.

Values come from config.yaml in the project root, merged over DEFAULTS.
The admin password may also be supplied via PAINTWALL_PASSWORD.
"""

import logging
import os
from copy import deepcopy
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

# Project root is one level up from paintwall/
PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_FILE = PROJECT_ROOT / "config.yaml"
PASSWORD_ENV = "PAINTWALL_PASSWORD"

DEFAULTS = {
    "paths": {
        "uploads": "uploads",
        "public": "public",
        "data": "data",
        "slots": "slot.json",
    },
    "upload": {
        "max_body_bytes": 10 * 1024 * 1024,
        "utc_offset_hours": 9,
        "prefix": "paint",
    },
    "batches": {
        "folder_size": 24,
    },
    "layout": {
        "mode": "slots",
        "stage_width": 4728,
        "stage_height": 5760,
        "overlay_left": 1152,
        "overlay_width": 3576,
        "overlay_height": 5760,
        "padding_top": 100,
        "padding_left": 100,
        "padding_right": 100,
        "gap": 50,
        "columns": 6,
        "slot_count": 24,
        "default_image_width": 600,
        "default_image_height": 400,
    },
    "display": {
        "follow_selection": True,
    },
    "auth": {
        "password": "",
        "session_hours": 12,
        "cookie_name": "paintwall_session",
    },
    "polling": {
        "display_ms": 4000,
    },
}


def deep_merge(defaults: dict, overrides: dict) -> dict:
    """Merge overrides into defaults; nested dicts merge, other values replace."""
    result = deepcopy(defaults)
    for key, value in overrides.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(path: Optional[Path] = None, overrides: Optional[dict] = None) -> dict:
    """
    Load application configuration.

    Args:
        path: YAML file to read (defaults to config.yaml in the project root)
        overrides: Extra values merged last, used by tests and embedding code

    Returns:
        Complete configuration dict
    """
    config_file = Path(path) if path else CONFIG_FILE
    file_config = {}

    if config_file.exists():
        try:
            with open(config_file) as f:
                file_config = yaml.safe_load(f) or {}
            if not isinstance(file_config, dict):
                logger.error(f"Ignoring {config_file}: top level must be a mapping")
                file_config = {}
            else:
                logger.info(f"Loaded config from {config_file}")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error loading config: {e}")
            file_config = {}
    else:
        logger.info(f"No {config_file.name} found, using defaults")

    config = deep_merge(DEFAULTS, file_config)
    if overrides:
        config = deep_merge(config, overrides)

    env_password = os.environ.get(PASSWORD_ENV)
    if env_password:
        config["auth"]["password"] = env_password

    return config


def resolve_path(config: dict, key: str) -> Path:
    """Absolute location for paths.<key>; relative values resolve against the project root."""
    path = Path(config["paths"][key])
    return path if path.is_absolute() else PROJECT_ROOT / path
