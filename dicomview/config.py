"""
config.py - Configuration loader for the DICOM viewer.

Loads settings from config.yaml with sensible defaults so that slider
bounds, parser flags and logging are not hard-coded inside a module.
"""

import copy
import os
import yaml
from typing import Any, Optional

# Resolve the config file relative to the repo root, not the CWD,
# so imports work regardless of where the viewer is launched from.
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_CONFIG_PATH = os.path.join(_REPO_ROOT, "config.yaml")

_DEFAULTS: dict[str, Any] = {
    "viewer": {
        # Slider clamp bounds only; the windowing engine accepts any value.
        "center_range": [-1024.0, 3071.0],
        "width_range": [1.0, 4096.0],
        "bounds_from_bit_depth": False,
        "figure_size": [7.0, 8.0],
    },
    "parser": {
        "force": False,
    },
    "logging": {
        "level": "INFO",
        "format": "%(levelname)-8s %(name)s: %(message)s",
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base*, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: Optional[str] = _CONFIG_PATH) -> dict[str, Any]:
    """
    Load the YAML configuration file and merge it with built-in defaults.

    Parameters
    ----------
    config_path : str, optional
        Path to config.yaml. Defaults to the repo-root config.yaml.
        ``None`` returns the built-in defaults.

    Returns
    -------
    dict
        Merged configuration dictionary.
    """
    if config_path and os.path.exists(config_path):
        with open(config_path, "r") as f:
            user_config = yaml.safe_load(f) or {}
    else:
        user_config = {}

    return _deep_merge(copy.deepcopy(_DEFAULTS), user_config)


# Module-level singleton so callers can just do `from dicomview.config import CONFIG`
CONFIG = load_config()
