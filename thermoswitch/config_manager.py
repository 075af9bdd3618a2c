"""
Settings Manager for thermoswitch.
Handles validating user-facing thermostat settings, converting them to a
ThermostatConfig and persisting named presets in a YAML file.
"""

import logging
import os
import yaml
from typing import Any, Dict, List, Tuple

from thermoswitch.config_loader import save_config
from thermoswitch.exceptions import ConfigurationError
from thermoswitch.models import ThermostatConfig
from thermoswitch.units import UNITS, to_celsius, to_celsius_delta

logger = logging.getLogger(__name__)

MODES = ("heat", "cool")

MAX_TEMP = 1000
MIN_TOLERANCE, MAX_TOLERANCE = 1, 50
MIN_FREQUENCY, MAX_FREQUENCY = 500, 60000
MIN_BUFFER, MAX_BUFFER = 500, 15000


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class SettingsManager:
    """
    Manages thermostat settings presets.

    Settings are expressed the way a user types them: temperatures in the
    chosen units and durations in milliseconds.
    """

    def __init__(self, settings_path: str):
        """
        Initialize SettingsManager with the presets file path.

        Args:
            settings_path: Path to the presets YAML file. It does not need to exist yet.
        """
        self._settings_path = settings_path

    @property
    def settings_path(self) -> str:
        return self._settings_path

    def validate_settings(self, settings: Dict[str, Any]) -> Tuple[bool, str]:
        """
        Validate a settings dict.

        Args:
            settings: Dict with mode, units, temp, tolerance, frequency, buffer and optional time

        Returns:
            Tuple of (is_valid, error_message)
        """
        if settings.get("mode") not in MODES:
            return False, 'Unrecognized mode. Please use "heat" or "cool".'

        if settings.get("units") not in UNITS:
            return False, 'Unrecognized units. Please use "c", "k", or "f".'

        temp = settings.get("temp")
        if not _is_number(temp) or temp > MAX_TEMP:
            return False, f"Target temp must be a number no greater than {MAX_TEMP}."

        tolerance = settings.get("tolerance")
        if not _is_number(tolerance) or not MIN_TOLERANCE <= tolerance <= MAX_TOLERANCE:
            return False, f"Tolerance must be a number between {MIN_TOLERANCE} and {MAX_TOLERANCE}."

        frequency = settings.get("frequency")
        if not _is_int(frequency) or not MIN_FREQUENCY <= frequency <= MAX_FREQUENCY:
            return False, f"Frequency must be an integer between {MIN_FREQUENCY} and {MAX_FREQUENCY}."

        buffer = settings.get("buffer")
        if not _is_int(buffer) or not MIN_BUFFER <= buffer <= MAX_BUFFER:
            return False, f"Buffer must be an integer between {MIN_BUFFER} and {MAX_BUFFER}."

        hold_time = settings.get("time", -1)
        if not _is_int(hold_time):
            return False, "Time must be an integer number of milliseconds (-1 to run forever)."

        return True, ""

    def to_thermostat_config(self, settings: Dict[str, Any]) -> ThermostatConfig:
        """
        Convert user settings to the Celsius/seconds configuration used by the control loop.

        Raises:
            ConfigurationError: If the settings are invalid
        """
        is_valid, error = self.validate_settings(settings)
        if not is_valid:
            raise ConfigurationError(error)

        units = settings["units"]
        hold_time = settings.get("time", -1)
        return ThermostatConfig(
            is_heater=settings["mode"] == "heat",
            target_temp=to_celsius(units, float(settings["temp"])),
            tolerance=to_celsius_delta(units, float(settings["tolerance"])),
            hold_duration=hold_time / 1000 if hold_time >= 0 else None,
            sample_interval=settings["frequency"] / 1000,
            min_off_dwell=settings["buffer"] / 1000,
        )

    def _load_presets(self) -> Dict[str, Dict[str, Any]]:
        if not os.path.exists(self._settings_path):
            return {}
        try:
            with open(self._settings_path, 'r') as f:
                presets = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self._settings_path}: {e}") from e
        if presets is None:
            return {}
        if not isinstance(presets, dict):
            raise ConfigurationError(f"Presets file {self._settings_path} must contain a mapping")
        return presets

    def list_presets(self) -> List[str]:
        return list(self._load_presets().keys())

    def get_preset(self, name: str) -> Dict[str, Any]:
        """
        Get a saved preset.

        Raises:
            ConfigurationError: If the preset does not exist or is invalid
        """
        presets = self._load_presets()
        if name not in presets:
            raise ConfigurationError(f"Unknown settings preset: {name}")

        settings = dict(presets[name])
        is_valid, error = self.validate_settings(settings)
        if not is_valid:
            raise ConfigurationError(f"Preset '{name}' is invalid: {error}")
        return settings

    def save_preset(self, name: str, settings: Dict[str, Any]) -> Tuple[bool, str]:
        """
        Save settings under a preset name, replacing any preset with the same name.

        Returns:
            Tuple of (success, message)
        """
        if not isinstance(name, str) or not name.strip():
            return False, f"Invalid preset name: {name}"

        is_valid, error = self.validate_settings(settings)
        if not is_valid:
            return False, error

        try:
            presets = self._load_presets()
            presets[name] = dict(settings)
            save_config(self._settings_path, presets)
        except (OSError, ConfigurationError) as e:
            return False, f"Failed to save preset: {e}"

        logger.info(f"[CONFIG] Saved preset '{name}' to {self._settings_path}")
        return True, f"Preset '{name}' saved successfully"
