"""Utility functions for Geo Index."""

import logging
import os
import re
import sys
from typing import Any, Dict

import yaml


def load_config(config_path: str = "config/default_config.yml") -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file

    Returns:
        Configuration dictionary
    """
    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)
    return config or {}


def load_config_with_env_vars(config: Dict) -> Dict:
    """Replace ${VAR} placeholders in config values with environment variables."""
    def replace_env_vars(value):
        if isinstance(value, str):
            pattern = r'\$\{([^}]+)\}'
            matches = re.findall(pattern, value)
            for match in matches:
                env_value = os.getenv(match, '')
                value = value.replace(f'${{{match}}}', env_value)
        elif isinstance(value, dict):
            return {k: replace_env_vars(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [replace_env_vars(v) for v in value]
        return value

    return replace_env_vars(config)


def init_logger(debug: bool = False) -> logging.Logger:
    """Configure the package logger."""
    logger = logging.getLogger("geo_index")
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    # Avoid duplicate handlers on re-run
    if logger.hasHandlers():
        logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    formatter = logging.Formatter('[%(levelname)s] [%(asctime)s] %(message)s', "%H:%M:%S")
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    return logger
