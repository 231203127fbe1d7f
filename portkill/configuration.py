# portkill/configuration.py

"""
Configuration loader for PortKill.

Handles loading settings from config.yaml. If the file doesn't exist,
it creates one with default values.
"""

import logging
import sys
import yaml
from typing import Dict, Any, Optional

from .parsing import DEFAULT_PORTS_STRING, DEFAULT_PORT_RANGE

CONFIG_HEADER = (
    "# PortKill Configuration File\n"
    "# You can edit these settings. They are re-read before every scan.\n\n"
)

# This dictionary holds the default structure and values for our config.
# It will be used to generate the initial config.yaml.
DEFAULT_CONFIG = {
    'monitored_ports': DEFAULT_PORTS_STRING,
    # When enabled, every port in port_range is scanned instead of monitored_ports.
    'use_port_range': False,
    'port_range': list(DEFAULT_PORT_RANGE),
    'max_scan_workers': 16,
    'command_timeout_seconds': 5,
    'auto_refresh': False,
    # Optional path to a port-kill backend executable. Empty means auto-detect.
    'backend_path': '',
}


def get_config_path() -> str:
    """Returns the path to the config file."""
    return "config.yaml"


def _write_config(config: Dict[str, Any], config_path: str) -> None:
    with open(config_path, 'w') as f:
        f.write(CONFIG_HEADER)
        yaml.dump(config, f, sort_keys=False, default_flow_style=False, indent=2)


def save_config(config: Dict[str, Any], config_path: Optional[str] = None):
    """Saves the provided configuration dictionary to config.yaml."""
    config_path = config_path or get_config_path()
    try:
        _write_config(config, config_path)
    except IOError as e:
        logging.error(f"Could not write config file to '{config_path}': {e}")


def load_or_create_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Loads configuration from config.yaml.

    If the file doesn't exist, it creates it with default values.
    If the file is invalid, it reports the error and exits.
    """
    config_path = config_path or get_config_path()
    try:
        with open(config_path, 'r') as f:
            user_config = yaml.safe_load(f)

        # Merge user config with defaults to ensure all keys are present
        config = dict(DEFAULT_CONFIG)
        if isinstance(user_config, dict):
            config.update(user_config)
        return config

    except FileNotFoundError:
        logging.info(f"Configuration file not found. Creating '{config_path}' with default settings.")
        try:
            _write_config(DEFAULT_CONFIG, config_path)
        except IOError as e:
            logging.error(f"Could not write default config file to '{config_path}': {e}")
        return dict(DEFAULT_CONFIG)

    except yaml.YAMLError as e:
        print(f"FATAL: Error parsing '{config_path}': {e}", file=sys.stderr)
        sys.exit(1)
