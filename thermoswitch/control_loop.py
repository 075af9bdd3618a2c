"""
Control loop for thermoswitch.
Samples the sensor at a fixed interval and drives the relay through the
hysteresis policy, the anti-chatter guard and the hold countdown.
"""

import asyncio
import logging
import time
from typing import Callable, List, Optional, Tuple

from thermoswitch.control import Control
from thermoswitch.exceptions import ActuatorError, ConfigurationError, SensorError, UsageError
from thermoswitch.models import Command, Phase, Snapshot, ThermostatConfig, ThermostatState
from thermoswitch.sensor import Sensor
from thermoswitch.thermostat import ChatterGuard, HoldTimer, Thermostat

logger = logging.getLogger(__name__)

Observer = Callable[[Snapshot], None]

ACTIVE_PHASES = (Phase.RUNNING, Phase.HOLDING)


class ControlLoop:
    """
    Single-task scheduler owning one sensor, one relay and the session state.

    Ticks never overlap: the next one is only scheduled once the current
    read, decision and relay command are done. stop() may be called at any
    time from the event loop (including a signal handler) and always leaves
    the relay OFF.

    Use as an async context manager so the relay and the sensor are released
    exactly once:

        async with ControlLoop(config, sensor, relay) as loop:
            await loop.run()
    """

    def __init__(self, config: ThermostatConfig, sensor: Sensor, control: Control,
                 clock: Callable[[], float] = time.monotonic):
        is_valid, error = config.validate()
        if not is_valid:
            raise ConfigurationError(error)

        self._sensor = sensor
        self._control = control
        self._clock = clock

        self._config = config
        self._thermostat = Thermostat.from_config(config)
        self._guard = ChatterGuard(config.min_off_dwell)
        self._hold = HoldTimer(config.hold_duration)
        self._state = ThermostatState()

        self._observers: List[Observer] = []
        self._pending_config: Optional[ThermostatConfig] = None
        self._in_tick = False
        self._stop_event: Optional[asyncio.Event] = None
        self._released = False

    # Accessors

    @property
    def config(self) -> ThermostatConfig:
        return self._config

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def current_temp(self) -> Optional[float]:
        return self._state.current_temp

    @property
    def target_temp(self) -> float:
        return self._config.target_temp

    @property
    def is_heater(self) -> bool:
        return self._config.is_heater

    @property
    def actuator_on(self) -> bool:
        return self._state.actuator_on

    @property
    def hold_elapsed(self) -> float:
        return self._hold.elapsed

    @property
    def last_off_at(self) -> Optional[float]:
        return self._guard.last_off_at

    def time_remaining(self) -> Optional[float]:
        """Seconds left in the hold countdown, or None when the session is unbounded."""
        if self._state.phase not in ACTIVE_PHASES:
            return None
        return self._hold.remaining()

    def snapshot(self, error: Optional[Exception] = None) -> Snapshot:
        return Snapshot(
            current_temp=self._state.current_temp,
            target_temp=self._config.target_temp,
            tolerance=self._config.tolerance,
            is_heater=self._config.is_heater,
            actuator_on=self._state.actuator_on,
            phase=self._state.phase,
            hold_elapsed=self._hold.elapsed,
            time_remaining=self.time_remaining(),
            last_off_at=self._guard.last_off_at,
            tick=self._state.tick_count,
            error=error,
        )

    def add_observer(self, observer: Observer):
        """Register a callback invoked with a Snapshot after every completed tick."""
        self._observers.append(observer)

    # Lifecycle

    def start(self):
        """
        Open a session without scheduling ticks.

        run() calls this; callers that bring their own scheduler can call it
        and then await tick() themselves.
        """
        if self._state.phase in ACTIVE_PHASES:
            raise UsageError("Control loop is already running")
        if self._state.phase is Phase.STOPPED:
            raise UsageError("Control loop has been stopped, create a new one")

        self._state = ThermostatState(phase=Phase.RUNNING)
        self._hold.reset()

        # Start from a known state: a relay found ON is switched off first
        if self._control.is_on():
            logger.info("[LOOP] Relay found ON at start, switching it off")
            self._state.actuator_on = True
            self._command(Command.OFF, self._clock())

        logger.info(f"[LOOP] Running {self._thermostat}, sampling every {self._config.sample_interval}s")

    async def run(self):
        """Tick every sample_interval until stop(), hold expiry or a fatal relay error."""
        self.start()
        self._stop_event = asyncio.Event()
        try:
            while self._state.phase in ACTIVE_PHASES:
                await self.tick()
                if self._state.phase not in ACTIVE_PHASES:
                    break
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._config.sample_interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            self.stop()

    def stop(self):
        """Force the relay OFF and end the session. Idempotent."""
        if self._state.phase is Phase.STOPPED:
            return
        error = self._halt()
        if error is not None:
            raise ActuatorError(f"Failed to switch relay off on stop: {error}") from error

    def _halt(self) -> Optional[Exception]:
        previous = self._state.phase
        self._state.phase = Phase.STOPPED
        if self._stop_event is not None:
            self._stop_event.set()

        error = None
        try:
            self._control.set_off()
        except Exception as e:
            logger.error(f"[LOOP] Relay did not acknowledge OFF while stopping: {e}")
            error = e
        self._state.actuator_on = False
        logger.info(f"[LOOP] Stopped (was {previous.value})")
        return error

    def release(self):
        """Release the relay and close the sensor. Only the first call has an effect."""
        if self._released:
            return
        self._released = True
        try:
            self._control.release()
        finally:
            self._sensor.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        try:
            self.stop()
        finally:
            self.release()

    # Configuration

    def update_options(self, config: ThermostatConfig) -> Tuple[bool, str]:
        """
        Replace the active configuration.

        The OFF dwell protection carries over, the hold countdown restarts.
        When called while a tick is in progress the new configuration takes
        effect as soon as that tick completes, unless the tick stops the loop
        (hold expiry or a relay failure), in which case it is discarded.

        Returns:
            Tuple of (success, message)
        """
        if self._state.phase is Phase.STOPPED:
            raise UsageError("Cannot update options of a stopped control loop")

        is_valid, error = config.validate()
        if not is_valid:
            logger.warning(f"[CONFIG] Rejected options: {error}")
            return False, error

        if self._in_tick:
            self._pending_config = config
            return True, "Options will apply after the current tick"

        self._swap_config(config)
        return True, "Options updated successfully"

    def _swap_config(self, config: ThermostatConfig):
        self._config = config
        self._thermostat = Thermostat.from_config(config)
        self._guard.min_off_dwell = config.min_off_dwell
        self._hold = HoldTimer(config.hold_duration)
        if self._state.phase is Phase.HOLDING:
            self._state.phase = Phase.RUNNING
        logger.info(f"[CONFIG] Now using {self._thermostat}")

    # Tick

    async def tick(self) -> Snapshot:
        """Run one sampling cycle and notify observers."""
        if self._state.phase not in ACTIVE_PHASES:
            raise UsageError(f"Cannot tick while {self._state.phase.value}")

        self._in_tick = True
        try:
            snapshot = await self._tick()
        finally:
            self._in_tick = False
            if self._pending_config is not None:
                config, self._pending_config = self._pending_config, None
                if self._state.phase in ACTIVE_PHASES:
                    self._swap_config(config)
                else:
                    logger.warning(f"[CONFIG] Loop stopped during the tick, dropping options: {config}")
        return snapshot

    async def _tick(self) -> Snapshot:
        config = self._config
        thermostat = self._thermostat
        error = None
        temperature = None

        try:
            temperature = await asyncio.wait_for(self._sensor.read(),
                                                 timeout=config.effective_read_timeout)
        except asyncio.TimeoutError:
            error = SensorError(f"Sensor read timed out after {config.effective_read_timeout}s")
        except SensorError as e:
            error = e
        except Exception as e:
            # CancelledError is a BaseException and still propagates
            error = SensorError(f"Sensor read failed: {e}")
            error.__cause__ = e

        # stop() may have run while the read was pending
        if self._state.phase is Phase.STOPPED:
            return self.snapshot(error)

        now = self._clock()
        self._state.tick_count += 1

        if error is not None:
            logger.warning(f"[SENSOR] Read failed, keeping relay {'ON' if self._state.actuator_on else 'OFF'}: {error}")
        else:
            self._state.current_temp = temperature
            desired = thermostat.decide(temperature)
            permitted = self._guard.permit(desired, now)
            try:
                self._command(permitted, now)
            except ActuatorError as e:
                self._notify(self.snapshot(e))
                raise
            self._update_hold(thermostat.in_band(temperature), config)

        snapshot = self.snapshot(error)
        self._notify(snapshot)
        return snapshot

    def _command(self, command: Command, now: float):
        if command is Command.NO_CHANGE:
            return
        want_on = command is Command.ON
        if want_on == self._state.actuator_on:
            return

        try:
            if want_on:
                self._control.set_on()
            else:
                self._control.set_off()
        except Exception as e:
            logger.error(f"[CONTROL] Relay failed to switch {command.value}, stopping: {e}")
            self._halt()
            if isinstance(e, ActuatorError):
                raise
            raise ActuatorError(f"Relay failed to switch {command.value}: {e}") from e

        self._state.actuator_on = want_on
        if not want_on:
            self._guard.record_off(now)
        logger.info(f"[CONTROL] Relay switched {'ON' if want_on else 'OFF'} at {self._state.current_temp}°C")

    def _update_hold(self, in_band: bool, config: ThermostatConfig):
        if not self._hold.enabled:
            return
        if self._hold.update(in_band, config.sample_interval):
            logger.info(f"[HOLD] Target held for {self._hold.elapsed:.1f}s, stopping")
            self.stop()
            return
        self._state.phase = Phase.HOLDING if in_band else Phase.RUNNING

    def _notify(self, snapshot: Snapshot):
        for observer in self._observers:
            try:
                observer(snapshot)
            except Exception:
                logger.exception("[LOOP] Observer failed")
