"""
Thermoswitch exceptions.

Transient sensor failures are recovered by the control loop; actuator
failures are fatal and stop it.
"""


class ThermoswitchError(Exception):
    """Base exception for thermoswitch."""

    pass


class ConfigurationError(ThermoswitchError):
    """Configuration or settings are invalid."""

    pass


class SensorError(ThermoswitchError):
    """Temperature reading is unavailable or invalid."""

    pass


class ActuatorError(ThermoswitchError):
    """Relay command failed; the physical state can no longer be trusted."""

    pass


class UsageError(ThermoswitchError):
    """Operation not allowed in the current phase of the control loop."""

    pass
