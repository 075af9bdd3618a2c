"""
Thermoswitch Configuration Loader
YAML configuration with environment variable substitution and device instantiation.
"""

import logging
import os
import re
import yaml
from typing import Any, Dict

import thermoswitch.sensor as sensor_module
import thermoswitch.control as control_module
from thermoswitch.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class Config:
    """Configuration object with attribute access to nested values."""

    def __init__(self, data: Dict[str, Any]):
        self._data = data

    def __getattr__(self, name: str) -> Any:
        if name.startswith('_'):
            return super().__getattribute__(name)

        value = self._data.get(name)
        if value is None:
            raise AttributeError(f"Config has no attribute '{name}'")

        if isinstance(value, dict):
            return Config(value)
        return value

    def get(self, key: str, default: Any = None) -> Any:
        value = self._data.get(key, default)
        if isinstance(value, dict):
            return Config(value)
        return value

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to plain dict."""
        return self._data


def substitute_env_vars(value: str) -> str:
    """Replace ${VAR_NAME} with environment variable values."""
    if not isinstance(value, str):
        return value

    pattern = r'\$\{([^}]+)\}'

    def replacer(match):
        var_name = match.group(1)
        env_value = os.environ.get(var_name, '')
        if not env_value:
            logger.warning(f"[CONFIG] Environment variable {var_name} not set")
        return env_value

    return re.sub(pattern, replacer, value)


def process_config(data: Any) -> Any:
    """Recursively process config values, substituting env vars."""
    if isinstance(data, dict):
        return {k: process_config(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [process_config(item) for item in data]
    elif isinstance(data, str):
        return substitute_env_vars(data)
    return data


def _instantiate(module, base_class, kind: str, config: Dict[str, Any]):
    device_type = config.get('type')
    if not device_type:
        raise ConfigurationError(f"{kind.capitalize()} missing 'type' field")

    device_class = getattr(module, device_type, None)
    if not (isinstance(device_class, type) and issubclass(device_class, base_class)):
        raise ConfigurationError(f"Unknown {kind} type: {device_type}")

    # Constructor args are everything except 'type'
    kwargs = {k: v for k, v in config.items() if k != 'type'}
    try:
        return device_class(**kwargs)
    except TypeError as e:
        raise ConfigurationError(f"Invalid {kind} options for {device_type}: {e}") from e


def instantiate_sensor(sensor_config: Dict[str, Any]) -> sensor_module.Sensor:
    """
    Create the sensor from config.

    Config format:
        sensor:
            type: ClassName
            pin: 17
    """
    return _instantiate(sensor_module, sensor_module.Sensor, 'sensor', sensor_config)


def instantiate_control(control_config: Dict[str, Any]) -> control_module.Control:
    """
    Create the relay from config.

    Config format:
        control:
            type: ClassName
            pin: 7
    """
    return _instantiate(control_module, control_module.Control, 'control', control_config)


def load_config(config_path: str) -> Config:
    """
    Load configuration from YAML file.

    - Substitutes ${ENV_VAR} patterns with environment variables
    - Returns a Config object with attribute access

    Note: Devices are NOT instantiated here.
    Use instantiate_sensor / instantiate_control once settings are known.
    """
    try:
        with open(config_path, 'r') as f:
            raw_config = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")

    # Process environment variables
    processed = process_config(raw_config)

    return Config(processed)


def save_config(config_path: str, config: Dict[str, Any]) -> None:
    """Save configuration to YAML file."""
    with open(config_path, 'w') as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)
