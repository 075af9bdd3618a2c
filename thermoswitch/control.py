import logging

from thermoswitch.exceptions import ActuatorError

logger = logging.getLogger(__name__)


class Control():
    """Relay-like actuator. set_on/set_off are idempotent, release() is terminal."""

    def __init__(self):
        self._state = False
        self._released = False

    def set_on(self):
        raise NotImplementedError()

    def set_off(self):
        raise NotImplementedError()

    def is_on(self):
        return self._state

    def release(self):
        self._released = True

    @property
    def released(self):
        return self._released


class SimulatedRelay(Control):

    def __init__(self, fail_on=None, initial_state=False):
        """
        In-memory relay

        Args:
            fail_on (str): "on", "off" or "any" to make the matching commands raise ActuatorError
            initial_state (bool): State the relay starts in
        """
        super().__init__()
        self._state = initial_state
        self.fail_on = fail_on
        self.history = []
        self.release_count = 0

    def _command(self, state):
        wanted = "on" if state else "off"
        if self.fail_on in (wanted, "any"):
            raise ActuatorError(f"Simulated relay failed to switch {wanted}")
        self._state = state
        self.history.append(wanted)

    def set_on(self):
        self._command(True)

    def set_off(self):
        self._command(False)

    def release(self):
        super().release()
        self.release_count += 1


class Relay(Control):

    def __init__(self, pin, active_low=True):
        super().__init__()
        import RPi.GPIO as GPIO

        self._gpio = GPIO
        self._pin = pin
        self._on_level = GPIO.LOW if active_low else GPIO.HIGH
        self._off_level = GPIO.HIGH if active_low else GPIO.LOW

        GPIO.setmode(GPIO.BCM)
        GPIO.setup(self._pin, GPIO.OUT)
        self.set_off()

    def _output(self, level, state):
        if self._released:
            raise ActuatorError(f"Relay on pin {self._pin} already released")
        try:
            self._gpio.output(self._pin, level)
        except (RuntimeError, ValueError) as e:
            raise ActuatorError(f"Relay on pin {self._pin}: {e}") from e
        self._state = state

    def set_on(self):
        self._output(self._on_level, True)

    def set_off(self):
        self._output(self._off_level, False)

    def release(self):
        if self._released:
            return
        logger.info(f"[CONTROL] Releasing relay on pin {self._pin}")
        try:
            self.set_off()
        finally:
            super().release()
            self._gpio.cleanup(self._pin)
