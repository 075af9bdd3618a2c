"""Bang-bang relay thermostat with hysteresis and anti-chatter protection."""

__version__ = "0.1.0"

__all__ = [
    "ControlLoop",
    "Phase",
    "Snapshot",
    "ThermostatConfig",
]

from .models import Phase, Snapshot, ThermostatConfig

from .control_loop import ControlLoop
