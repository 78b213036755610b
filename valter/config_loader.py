"""
Configuration loading utilities for the Valter console.

This module loads the local console settings (backend endpoint, sync timing,
editing capabilities, logging) from config.yaml with fallback to defaults,
and checks the environment-sourced values the console needs at runtime.
"""

import os
import yaml
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional, List, Mapping
from urllib.parse import urljoin
import logging
from copy import deepcopy

logger = logging.getLogger(__name__)

CONFIG_FILE = Path("config.yaml")

DEV_MODE = "dev"
PROD_MODE = "prod"

ENV_API_URL = "VALTER_API_URL"
ENV_MODE = "VALTER_MODE"
ENV_IGNORE_MISSING = "VALTER_IGNORE_MISSING_ENV"

_TRUTHY = {'1', 'true', 'yes', 'on'}

# Global configuration cache
_config_cache: Optional[Dict[str, Any]] = None


def deep_merge(base_dict: Dict[str, Any], update_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries, with update_dict taking precedence.

    Args:
        base_dict: Base dictionary (defaults)
        update_dict: Dictionary to merge in (user config)

    Returns:
        Merged dictionary
    """
    result = deepcopy(base_dict)

    for key, value in update_dict.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = deepcopy(value)

    return result


def get_default_config() -> Dict[str, Any]:
    """
    Get default configuration with the compiled-in values.

    Returns:
        Dictionary with default configuration
    """
    return {
        'app': {
            'name': 'Valter Console',
            'version': '1.0.0'
        },
        'backend': {
            'mode': DEV_MODE,
            'dev_url': 'http://localhost:8000/graphql',
            'prod_url': '/graphql',
            'public_origin': 'http://localhost:8000',
            'timeout_seconds': 15
        },
        'sync': {
            'poll_interval_ms': 5000,
            'rescan_settle_ms': 1000,
            'success_display_seconds': 2,
            'include_rows_in_poll': True
        },
        'capabilities': {
            'editable_kinds': ['island']
        },
        'environment': {
            'required_keys': [],
            'ignore_missing': False
        },
        'logging': {
            'level': 'INFO',
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        },
        'ui': {
            'page_title': 'Valter Console'
        }
    }


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load console configuration merged over the defaults.

    Args:
        config_path: Optional path to config file (defaults to config.yaml)

    Returns:
        Complete configuration dictionary
    """
    global _config_cache

    if config_path is None:
        if _config_cache is not None:
            return _config_cache
        config_path = CONFIG_FILE

    default_config = get_default_config()

    if not config_path.exists():
        logger.warning(f"Configuration file not found: {config_path}")
        logger.info("Using default configuration")
        config = default_config
    else:
        config = _read_config_file(config_path, default_config)

    if config_path == CONFIG_FILE:
        _config_cache = config
    return config


def _read_config_file(config_path: Path, default_config: Dict[str, Any]) -> Dict[str, Any]:
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            user_config = yaml.safe_load(f)

        if user_config is None:
            logger.warning(f"Configuration file is empty: {config_path}")
            return default_config

        if not isinstance(user_config, dict):
            logger.error(f"Configuration file is not a valid dictionary: {config_path}")
            logger.info("Using default configuration")
            return default_config

        config = deep_merge(default_config, user_config)
        logger.info(f"Successfully loaded configuration from {config_path}")
        return config

    except yaml.YAMLError as e:
        logger.error(f"YAML parsing error in {config_path}: {e}")
        logger.info("Using default configuration")
        return default_config

    except (IOError, OSError) as e:
        logger.error(f"Failed to read configuration file {config_path}: {e}")
        logger.info("Using default configuration")
        return default_config


def reload_config() -> Dict[str, Any]:
    """
    Force reload of configuration from file.
    Useful for testing or when configuration changes.
    """
    global _config_cache
    _config_cache = None
    return load_config()


def get_config_value(section: str, key: str, default: Any = None,
                     config: Optional[Dict[str, Any]] = None) -> Any:
    """
    Get a specific configuration value.

    Args:
        section: Configuration section (e.g., 'backend', 'sync')
        key: Configuration key within section
        default: Default value if not found
        config: Configuration to read from (defaults to the cached config)

    Returns:
        Configuration value or default
    """
    if config is None:
        config = load_config()
    return config.get(section, {}).get(key, default)


def validate_config(config: Dict[str, Any]) -> bool:
    """
    Validate configuration structure and required fields.

    Args:
        config: Configuration dictionary to validate

    Returns:
        True if configuration is valid, False otherwise
    """
    required_sections = ['app', 'backend', 'sync', 'capabilities', 'environment', 'logging']

    for section in required_sections:
        if not isinstance(config.get(section), dict):
            logger.warning(f"Missing required configuration section: {section}")
            return False

    backend = config['backend']
    if backend.get('mode') not in (DEV_MODE, PROD_MODE):
        logger.warning(f"backend.mode must be '{DEV_MODE}' or '{PROD_MODE}'")
        return False

    for key in ('dev_url', 'prod_url'):
        if not isinstance(backend.get(key), str) or not backend.get(key):
            logger.warning(f"backend.{key} must be a non-empty string")
            return False

    numeric_settings = [
        ('backend', 'timeout_seconds'),
        ('sync', 'poll_interval_ms'),
        ('sync', 'rescan_settle_ms'),
        ('sync', 'success_display_seconds'),
    ]
    for section, key in numeric_settings:
        try:
            value = float(config[section].get(key))
        except (ValueError, TypeError):
            logger.warning(f"{section}.{key} must be a valid number")
            return False
        if value < 0 or (key == 'poll_interval_ms' and value == 0):
            logger.warning(f"{section}.{key} must be positive")
            return False

    editable_kinds = config['capabilities'].get('editable_kinds')
    if not isinstance(editable_kinds, list):
        logger.warning("capabilities.editable_kinds must be a list")
        return False
    unknown = [k for k in editable_kinds if k not in ('cloud', 'island')]
    if unknown:
        logger.warning(f"Unknown entity kinds in capabilities.editable_kinds: {unknown}")
        return False

    if not isinstance(config['environment'].get('required_keys', []), list):
        logger.warning("environment.required_keys must be a list")
        return False

    return True


def resolve_backend_url(config: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> str:
    """
    Pick the backend endpoint for the current mode.

    VALTER_API_URL wins over everything; otherwise dev mode uses the local
    development endpoint and prod mode the same-origin endpoint.
    """
    if environ is None:
        environ = os.environ

    override = environ.get(ENV_API_URL)
    if override:
        return override

    backend = config.get('backend', {})
    mode = environ.get(ENV_MODE) or backend.get('mode', DEV_MODE)

    if mode == PROD_MODE:
        return urljoin(backend.get('public_origin', ''), backend.get('prod_url', '/graphql'))
    return backend.get('dev_url', get_default_config()['backend']['dev_url'])


class ConfigStatusKind(str, Enum):
    """Where the console's environment-sourced settings came from."""
    COMPILE_TIME = "compile_time"
    COMPILE_TIME_IGNORED = "compile_time_ignored"
    RUNTIME = "runtime"
    RUNTIME_ERROR = "runtime_error"


@dataclass(frozen=True)
class ConfigStatus:
    kind: ConfigStatusKind
    missing_keys: List[str] = field(default_factory=list)

    @property
    def is_error(self) -> bool:
        return self.kind == ConfigStatusKind.RUNTIME_ERROR


def check_environment(config: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> ConfigStatus:
    """
    Check the environment-sourced values listed in environment.required_keys.

    Args:
        config: Console configuration
        environ: Environment mapping (defaults to os.environ)

    Returns:
        ConfigStatus; RUNTIME_ERROR lists the missing keys unless missing
        values are ignored in favour of compiled-in defaults
    """
    if environ is None:
        environ = os.environ

    env_section = config.get('environment', {})
    required_keys = list(env_section.get('required_keys') or [])

    if not required_keys:
        return ConfigStatus(ConfigStatusKind.COMPILE_TIME)

    missing = [key for key in required_keys if not environ.get(key)]
    if not missing:
        return ConfigStatus(ConfigStatusKind.RUNTIME)

    ignore_flag = environ.get(ENV_IGNORE_MISSING)
    if ignore_flag is not None:
        ignore_missing = ignore_flag.strip().lower() in _TRUTHY
    else:
        ignore_missing = bool(env_section.get('ignore_missing', False))

    if ignore_missing:
        logger.warning(f"Missing environment values ignored, using defaults: {missing}")
        return ConfigStatus(ConfigStatusKind.COMPILE_TIME_IGNORED, missing)

    logger.error(f"Missing required environment values: {missing}")
    return ConfigStatus(ConfigStatusKind.RUNTIME_ERROR, missing)


def get_config_summary(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Get a summary of the current configuration.

    Args:
        config: Configuration dictionary

    Returns:
        Dictionary with configuration summary
    """
    return {
        'app_name': config.get('app', {}).get('name', 'Unknown'),
        'app_version': config.get('app', {}).get('version', 'Unknown'),
        'backend_mode': config.get('backend', {}).get('mode', DEV_MODE),
        'backend_url': resolve_backend_url(config),
        'poll_interval_ms': config.get('sync', {}).get('poll_interval_ms', 5000),
        'editable_kinds': list(config.get('capabilities', {}).get('editable_kinds', []))
    }
