"""
Configuration Management
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from vrf_raffle.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_FILE = Path("config") / "raffle.conf"

# Environment prefix -> config section
ENV_SECTIONS = {
    "RAFFLE_": "raffle",
    "VRF_": "vrf",
    "OPERATOR_": "operator",
    "SERVER_": "server",
}


def load_config(config_file: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """Load configuration from a JSON file and environment variables"""
    config: Dict[str, Any] = {}

    config_path = Path(config_file) if config_file else DEFAULT_CONFIG_FILE
    if config_path.exists():
        with open(config_path, 'r', encoding='utf-8') as f:
            file_config = json.load(f)
        config.update(file_config)
        logger.info(f"Loaded configuration from {config_path}")
    else:
        logger.warning(f"Config file {config_path} not found. Will only use environment variables.")

    config = _apply_env_overrides(config)
    logger.debug(f"Configuration after applying environment overrides: {json.dumps(config, indent=2)}")

    return config


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration"""
    for key, value in os.environ.items():
        for prefix, section in ENV_SECTIONS.items():
            if key.startswith(prefix):
                option = key[len(prefix):].lower()
                config.setdefault(section, {})[option] = value
                break

    return config


def save_config(config: Dict[str, Any], config_file: Optional[Union[str, Path]] = None) -> None:
    """Save configuration to file"""
    config_path = Path(config_file) if config_file else DEFAULT_CONFIG_FILE
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config, f, indent=2)

    logger.info(f"Configuration saved to {config_path}")


def get_config_value(config: Dict[str, Any], key_path: str, default=None):
    """Get configuration value by dot-separated key path"""
    keys = key_path.split('.')
    value = config

    try:
        for key in keys:
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default
