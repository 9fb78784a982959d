"""
Configuration loader for romfetch.

Loads runtime settings and the emulator/platform metadata table from YAML.
"""

import os
import yaml
from typing import Dict, Optional, Any
from dataclasses import dataclass, field


DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), 'data', 'config.yaml')

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


@dataclass
class EmulatorInfo:
    """
    Static metadata for one emulator.

    Attributes:
        name: Emulator identifier (e.g. 'fbneo')
        roms_folder: ROM folder relative to the destination root
        platforms: Platform id -> ROM folder, for multi-platform emulators
        prefix: Filename prefix used by this emulator's ROM ids
        dont_add_prefix_to_json_file: Strip `prefix` from ROM ids before lookup
    """
    name: str
    roms_folder: str
    platforms: Dict[str, str] = field(default_factory=dict)
    prefix: Optional[str] = None
    dont_add_prefix_to_json_file: bool = False


@dataclass
class Settings:
    """
    Runtime settings.

    Attributes:
        destination_root: Base folder the emulator ROM folders live under
        catalog_dir: Folder holding the `*_roms.json` catalog files
        timeout: HTTP timeout in seconds
        max_retries: Attempts per download for transient failures
        log_file: Rotating log file path (None disables file logging)
        log_level: Console log level
        emulators: Emulator name -> EmulatorInfo
    """
    destination_root: str = '.'
    catalog_dir: str = '.'
    timeout: float = 30
    max_retries: int = 3
    log_file: Optional[str] = 'logs/romfetch.log'
    log_level: str = 'INFO'
    emulators: Dict[str, EmulatorInfo] = field(default_factory=dict)


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load settings and emulator metadata from a YAML file.

    Args:
        config_path: Path to YAML file (default: the bundled data/config.yaml)

    Returns:
        Settings object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If YAML is invalid or malformed

    Example:
        >>> settings = load_config()
        >>> settings.emulators['fbneo'].roms_folder
        'fbneo/ROMs'
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML format: {e}")

    if not isinstance(config, dict):
        raise ValueError("Config must be a mapping")

    if 'emulators' not in config:
        raise ValueError("Config must contain 'emulators' key")

    if not isinstance(config['emulators'], dict):
        raise ValueError("'emulators' must be a mapping")

    emulators = {}
    for name, emulator_dict in config['emulators'].items():
        validated = validate_emulator_config(name, emulator_dict)
        emulators[name] = EmulatorInfo(name=name, **validated)

    settings_dict = validate_settings(config.get('settings') or {})
    return Settings(emulators=emulators, **settings_dict)


def validate_emulator_config(name: str, emulator_dict: Any) -> Dict[str, Any]:
    """
    Validate a single emulator entry.

    Args:
        name: Emulator identifier
        emulator_dict: Mapping from the 'emulators' table

    Returns:
        Validated dictionary with only known keys

    Raises:
        ValueError: If validation fails with descriptive error message
    """
    if not isinstance(emulator_dict, dict):
        raise ValueError(f"Emulator '{name}' must be a mapping")

    roms_folder = emulator_dict.get('roms_folder')
    if not isinstance(roms_folder, str) or not roms_folder.strip():
        raise ValueError(f"Emulator '{name}' roms_folder must be a non-empty string")

    platforms = emulator_dict.get('platforms') or {}
    if not isinstance(platforms, dict):
        raise ValueError(f"Emulator '{name}' platforms must be a mapping")

    for platform_id, folder in platforms.items():
        if not isinstance(folder, str) or not folder.strip():
            raise ValueError(
                f"Emulator '{name}' platform '{platform_id}' folder must be a non-empty string"
            )

    prefix = emulator_dict.get('prefix')
    if prefix is not None and not isinstance(prefix, str):
        raise ValueError(f"Emulator '{name}' prefix must be a string")

    strip_prefix = emulator_dict.get('dont_add_prefix_to_json_file', False)
    if not isinstance(strip_prefix, bool):
        raise ValueError(f"Emulator '{name}' dont_add_prefix_to_json_file must be a boolean")

    return {
        'roms_folder': roms_folder,
        'platforms': {str(k): v for k, v in platforms.items()},
        'prefix': prefix,
        'dont_add_prefix_to_json_file': strip_prefix,
    }


def validate_settings(settings_dict: Any) -> Dict[str, Any]:
    """
    Validate the optional 'settings' block, filling in defaults.

    Raises:
        ValueError: If a value has the wrong type or range
    """
    if not isinstance(settings_dict, dict):
        raise ValueError("'settings' must be a mapping")

    unknown = set(settings_dict) - {
        'destination_root', 'catalog_dir', 'timeout',
        'max_retries', 'log_file', 'log_level'
    }
    if unknown:
        raise ValueError(f"Unknown settings: {sorted(unknown)}")

    result = {}

    for key in ('destination_root', 'catalog_dir'):
        value = settings_dict.get(key)
        if value is None:
            result[key] = '.'
        elif isinstance(value, str):
            result[key] = value
        else:
            raise ValueError(f"Setting '{key}' must be a string")

    timeout = settings_dict.get('timeout', 30)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ValueError("Setting 'timeout' must be a positive number")
    result['timeout'] = timeout

    max_retries = settings_dict.get('max_retries', 3)
    if isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries <= 0:
        raise ValueError("Setting 'max_retries' must be a positive integer")
    result['max_retries'] = max_retries

    log_file = settings_dict.get('log_file', 'logs/romfetch.log')
    if log_file is not None and not isinstance(log_file, str):
        raise ValueError("Setting 'log_file' must be a string")
    result['log_file'] = log_file

    log_level = str(settings_dict.get('log_level', 'INFO')).upper()
    if log_level not in VALID_LOG_LEVELS:
        raise ValueError(f"Setting 'log_level' must be one of {VALID_LOG_LEVELS}")
    result['log_level'] = log_level

    return result
