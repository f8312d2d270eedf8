"""Configuration management utilities."""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from bninfer.bayes_ball import DEFAULT_MAX_STEPS

logger = logging.getLogger(__name__)


def get_default_config() -> Dict[str, Any]:
    """Get default configuration.

    Returns:
        Default configuration dictionary
    """
    return {
        "logging": {
            "level": "INFO",
            "file": None,
        },
        "output": {
            "decimals": 5,
        },
        "bayes_ball": {
            "max_steps": DEFAULT_MAX_STEPS,
        },
        "network": {
            "cpt_tolerance": 1e-6,
        },
    }


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from a YAML file layered over the defaults.

    Args:
        config_path: Path to YAML config file; defaults only when None

    Returns:
        Configuration dictionary
    """
    defaults = get_default_config()
    if config_path is None:
        return defaults

    with open(config_path, "r") as f:
        user_config = yaml.safe_load(f) or {}

    if not isinstance(user_config, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")

    unknown = sorted(set(user_config) - set(defaults))
    if unknown:
        logger.debug(f"Keeping unknown configuration sections: {unknown}")

    config = merge_config(defaults, user_config)
    logger.info(f"Loaded configuration from {config_path}")
    return config


def save_config(config: Dict[str, Any], config_path: str) -> None:
    """Save configuration to YAML file.

    Args:
        config: Configuration dictionary
        config_path: Path to save config
    """
    Path(config_path).parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)

    logger.info(f"Saved configuration to {config_path}")
