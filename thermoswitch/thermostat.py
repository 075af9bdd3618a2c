"""
Thermostat decision logic for thermoswitch.
Hysteresis policy, anti-chatter guard and hold countdown used by the control loop.
"""

import logging
from typing import Optional

from thermoswitch.models import Command, ThermostatConfig

logger = logging.getLogger(__name__)


class Thermostat:
    """
    Bang-bang hysteresis policy that decides the relay command from a temperature.

    Supports both heating and cooling modes. Inside the deadband no command
    is issued, which prevents oscillation at the boundary.

    Attributes:
        target_temp: Desired temperature setpoint
        tolerance: Dead-band half-width (±)
        is_heater: True for heating, False for cooling
    """

    def __init__(self, target_temp: float, tolerance: float = 1.0,
                 is_heater: bool = True):
        """
        Initialize thermostat policy.

        Args:
            target_temp: Target temperature in degrees Celsius
            tolerance: Temperature tolerance band (default ±1.0°C)
            is_heater: True to heat (ON when cold), False to cool (ON when hot)
        """
        self.target_temp = target_temp
        self.tolerance = tolerance
        self.is_heater = is_heater

    @classmethod
    def from_config(cls, config: ThermostatConfig) -> "Thermostat":
        return cls(config.target_temp, config.tolerance, config.is_heater)

    @property
    def low(self) -> float:
        return self.target_temp - self.tolerance

    @property
    def high(self) -> float:
        return self.target_temp + self.tolerance

    def decide(self, current_temp: float) -> Command:
        """
        Compute the desired relay command.

        - For heating: ON when temp < target - tolerance, OFF when temp > target + tolerance
        - For cooling: ON when temp > target + tolerance, OFF when temp < target - tolerance
        - Exactly on a bound, or anywhere inside the band, nothing changes

        Args:
            current_temp: Current temperature reading from sensor

        Returns:
            Command.ON, Command.OFF or Command.NO_CHANGE
        """
        if self.is_heater:
            if current_temp < self.low:
                return Command.ON
            if current_temp > self.high:
                return Command.OFF
        else:
            if current_temp > self.high:
                return Command.ON
            if current_temp < self.low:
                return Command.OFF
        return Command.NO_CHANGE

    def in_band(self, current_temp: float) -> bool:
        """True if the temperature is within target ± tolerance (bounds included)."""
        return self.low <= current_temp <= self.high

    def __repr__(self) -> str:
        return (f"Thermostat(target={self.target_temp}°C, tolerance=±{self.tolerance}°C, "
                f"mode={'heating' if self.is_heater else 'cooling'})")


class ChatterGuard:
    """
    Minimum OFF dwell enforcement.

    Turning OFF is always allowed. Turning ON is deferred until the relay has
    been OFF for at least min_off_dwell seconds; a denied request is simply
    re-evaluated on the next tick.
    """

    def __init__(self, min_off_dwell: float):
        self.min_off_dwell = min_off_dwell
        self.last_off_at: Optional[float] = None

    def record_off(self, now: float):
        self.last_off_at = now

    def wait_remaining(self, now: float) -> float:
        """Seconds left before an ON command would be honoured."""
        if self.last_off_at is None:
            return 0.0
        return max(0.0, self.min_off_dwell - (now - self.last_off_at))

    def permit(self, desired: Command, now: float) -> Command:
        if desired is not Command.ON:
            return desired

        # Never switched off this session: first ON is free
        if self.last_off_at is None:
            return desired

        wait = self.wait_remaining(now)
        if wait > 0:
            logger.debug(f"[GUARD] ON deferred for another {wait:.2f}s of the {self.min_off_dwell:.2f}s dwell")
            return Command.NO_CHANGE
        return desired


class HoldTimer:
    """
    Countdown of the time the temperature has continuously stayed in band.

    Time is kept in whole milliseconds so that repeated fractional intervals
    (0.7 s three times) add up exactly to the configured duration.
    """

    def __init__(self, duration: Optional[float]):
        self.duration = duration
        self._duration_ms = None if duration is None else round(duration * 1000)
        self._elapsed_ms = 0

    @property
    def enabled(self) -> bool:
        return self._duration_ms is not None and self._duration_ms >= 0

    @property
    def elapsed(self) -> float:
        return self._elapsed_ms / 1000

    @property
    def expired(self) -> bool:
        return self.enabled and self._elapsed_ms >= self._duration_ms

    def remaining(self) -> Optional[float]:
        if not self.enabled:
            return None
        return max(0, self._duration_ms - self._elapsed_ms) / 1000

    def update(self, in_band: bool, interval: float) -> bool:
        """
        Account for one tick.

        Args:
            in_band: Whether the tick's temperature was inside the tolerance band
            interval: Sampling interval the tick represents

        Returns:
            True if the hold duration has been reached
        """
        if not self.enabled:
            return False

        if not in_band:
            if self._elapsed_ms:
                logger.info(f"[HOLD] Left tolerance band after {self.elapsed:.1f}s, restarting hold")
            self._elapsed_ms = 0
            return False

        self._elapsed_ms += round(interval * 1000)
        return self.expired

    def reset(self):
        self._elapsed_ms = 0
