"""
Terminal status line, refreshed after every tick of the control loop.
"""

import logging
import math
from typing import Optional

import click

from thermoswitch.models import Snapshot
from thermoswitch.units import from_celsius

logger = logging.getLogger(__name__)


def format_remaining(seconds: Optional[float]) -> str:
    """Format a hold countdown as HH:MM:SS, empty when unbounded."""
    if seconds is None or seconds < 0:
        return ""
    total = int(math.floor(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class StatusLine:
    """Observer printing the thermostat state in the user's units."""

    def __init__(self, units: str = "c", clear: bool = True):
        self.units = units
        self.clear = clear

    def _relay_text(self, snapshot: Snapshot) -> str:
        if snapshot.is_heater:
            label = "Heater"
            state = click.style("ON", fg="bright_red") if snapshot.actuator_on else click.style("OFF", fg="green")
        else:
            label = "Chiller"
            state = click.style("● ON", fg="blue") if snapshot.actuator_on else click.style("○ OFF", fg="green")
        return f"{label}: {click.style(state, bold=True)}"

    def _temp_text(self, snapshot: Snapshot) -> str:
        if snapshot.current_temp is None:
            return click.style("--.-", bold=True)
        text = f"{from_celsius(self.units, snapshot.current_temp):.1f}"
        if snapshot.current_temp > snapshot.target_temp + snapshot.tolerance:
            return click.style(text, fg="red", bold=True)
        if snapshot.current_temp < snapshot.target_temp - snapshot.tolerance:
            return click.style(text, fg="blue", bold=True)
        return click.style(text, bold=True)

    def render(self, snapshot: Snapshot) -> str:
        parts = []
        remaining = format_remaining(snapshot.time_remaining)
        if remaining:
            parts.append(f"Remaining: {remaining}")
        parts.append(f"Set: {from_celsius(self.units, snapshot.target_temp):.1f}°{self.units}")
        parts.append(f"Temp(°{self.units}): {self._temp_text(snapshot)}")
        parts.append(self._relay_text(snapshot))
        line = "\t\t".join(parts)

        if snapshot.error is not None:
            line += "\n" + click.style(f"Sensor read failed: {snapshot.error}", fg="yellow")
        return line

    def __call__(self, snapshot: Snapshot):
        if self.clear:
            click.clear()
        click.echo(self.render(snapshot) + "\n")


def log_snapshot(snapshot: Snapshot):
    """Observer logging one line per tick."""
    if snapshot.error is not None:
        logger.info(f"[LOOP] tick {snapshot.tick}: read failed ({snapshot.error}), "
                    f"relay {'ON' if snapshot.actuator_on else 'OFF'}")
        return
    logger.info(f"[LOOP] tick {snapshot.tick}: {snapshot.current_temp:.2f}°C, "
                f"relay {'ON' if snapshot.actuator_on else 'OFF'}, {snapshot.phase.value}")
