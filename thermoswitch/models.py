"""
Data model shared by the control loop and its collaborators.
All temperatures are Celsius, all durations are seconds.
"""

import enum
from dataclasses import dataclass
from typing import Optional, Tuple

# Sampling cadence bounds (seconds)
MIN_SAMPLE_INTERVAL = 0.5
MAX_SAMPLE_INTERVAL = 60.0

# Minimum OFF dwell bounds (seconds)
MIN_OFF_DWELL = 0.5
MAX_OFF_DWELL = 15.0


class Phase(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    HOLDING = "holding"
    STOPPED = "stopped"


class Command(enum.Enum):
    ON = "on"
    OFF = "off"
    NO_CHANGE = "no_change"


@dataclass(frozen=True)
class ThermostatConfig:
    """
    Immutable thermostat configuration.

    Attributes:
        is_heater: True for heating, False for cooling
        target_temp: Target temperature (°C)
        tolerance: Deadband half-width (±°C)
        hold_duration: Seconds the target must be held before stopping,
            None or negative to run forever
        sample_interval: Seconds between two sensor reads
        min_off_dwell: Seconds the relay must stay OFF before switching ON again
        read_timeout: Maximum seconds for one sensor read, defaults to sample_interval
    """

    is_heater: bool
    target_temp: float
    tolerance: float = 1.0
    hold_duration: Optional[float] = None
    sample_interval: float = 1.0
    min_off_dwell: float = 2.0
    read_timeout: Optional[float] = None

    @property
    def effective_read_timeout(self) -> float:
        if self.read_timeout is None:
            return self.sample_interval
        return self.read_timeout

    def validate(self) -> Tuple[bool, str]:
        """
        Validate the configuration.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not isinstance(self.is_heater, bool):
            return False, "is_heater must be true/false"

        for name in ("target_temp", "tolerance", "sample_interval", "min_off_dwell"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return False, f"{name} must be a number"

        if self.tolerance < 0:
            return False, f"tolerance must be >= 0, got {self.tolerance}"

        if not MIN_SAMPLE_INTERVAL <= self.sample_interval <= MAX_SAMPLE_INTERVAL:
            return False, (f"sample_interval out of range ({MIN_SAMPLE_INTERVAL} to "
                           f"{MAX_SAMPLE_INTERVAL} seconds): {self.sample_interval}")

        if not MIN_OFF_DWELL <= self.min_off_dwell <= MAX_OFF_DWELL:
            return False, (f"min_off_dwell out of range ({MIN_OFF_DWELL} to "
                           f"{MAX_OFF_DWELL} seconds): {self.min_off_dwell}")

        if self.read_timeout is not None and self.read_timeout <= 0:
            return False, f"read_timeout must be > 0, got {self.read_timeout}"

        return True, ""


@dataclass
class ThermostatState:
    """
    Mutable state of one control session, owned by the ControlLoop.
    The hold progress and the last OFF time live in the loop's HoldTimer and ChatterGuard.
    """

    actuator_on: bool = False
    phase: Phase = Phase.IDLE
    current_temp: Optional[float] = None
    tick_count: int = 0


@dataclass(frozen=True)
class Snapshot:
    """Read-only view of the loop handed to observers after every tick."""

    current_temp: Optional[float]
    target_temp: float
    tolerance: float
    is_heater: bool
    actuator_on: bool
    phase: Phase
    hold_elapsed: float
    time_remaining: Optional[float]
    last_off_at: Optional[float]
    tick: int
    error: Optional[Exception] = None

    def to_dict(self) -> dict:
        return {
            "current_temp": self.current_temp,
            "target_temp": self.target_temp,
            "tolerance": self.tolerance,
            "is_heater": self.is_heater,
            "actuator_on": self.actuator_on,
            "phase": self.phase.value,
            "hold_elapsed": self.hold_elapsed,
            "time_remaining": self.time_remaining,
            "tick": self.tick,
            "error": str(self.error) if self.error is not None else None,
        }
