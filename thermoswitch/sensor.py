import asyncio
import logging
import random
from typing import Iterable, Optional, Union

from thermoswitch.exceptions import SensorError

logger = logging.getLogger(__name__)


class Sensor():
    """Temperature source. read() returns degrees Celsius or raises SensorError."""

    def __init__(self):
        self._closed = False

    async def read(self) -> float:
        raise NotImplementedError()

    def close(self):
        self._closed = True

    @property
    def closed(self):
        return self._closed


class SimulatedSensor(Sensor):

    def __init__(self, temperature=20.0, ambient=15.0, heat_rate=0.5, loss_rate=0.05,
                 noise=0.0, readings: Optional[Iterable[Union[float, Exception]]] = None,
                 delay=0.0):
        """
        In-memory sensor

        Args:
            temperature (float): Initial temperature (°C)
            ambient (float): Temperature the room drifts towards when the relay is off
            heat_rate (float): °C gained (heating) or lost (cooling) per read while the relay is on
            loss_rate (float): Fraction of the gap to ambient closed per read while the relay is off
            noise (float): Amplitude of uniform noise added to each reading
            readings (list): Scripted readings returned in order before the model kicks in;
                an exception instance in the list is raised instead
            delay (float): Seconds each read takes
        """
        super().__init__()
        self.temperature = float(temperature)
        self.ambient = ambient
        self.heat_rate = heat_rate
        self.loss_rate = loss_rate
        self.noise = noise
        self.delay = delay
        self._readings = list(readings) if readings is not None else []
        self._control = None
        self._is_heater = True
        self.reads = 0

    def attach(self, control, is_heater=True):
        """Couple the model to a relay so the temperature follows it."""
        self._control = control
        self._is_heater = is_heater

    def _step(self):
        if self._control is not None and self._control.is_on():
            self.temperature += self.heat_rate if self._is_heater else -self.heat_rate
        else:
            self.temperature += (self.ambient - self.temperature) * self.loss_rate
        if self.noise:
            return self.temperature + random.uniform(-self.noise, self.noise)
        return self.temperature

    async def read(self) -> float:
        if self._closed:
            raise SensorError("Sensor is closed")
        self.reads += 1
        if self.delay:
            await asyncio.sleep(self.delay)

        if self._readings:
            reading = self._readings.pop(0)
            if isinstance(reading, Exception):
                raise reading
            self.temperature = float(reading)
            return self.temperature

        return self._step()


class DHT22(Sensor):

    def __init__(self, pin):
        super().__init__()
        import board
        import adafruit_dht

        self._pin = pin
        dht_pin = getattr(board, f"D{pin}")
        self.dht_device = adafruit_dht.DHT22(dht_pin)

    def _read_blocking(self):
        try:
            temperature = self.dht_device.temperature
        except RuntimeError as error:
            # DHT sensors routinely miss a read, the next one usually works
            raise SensorError(f"DHT22 on pin {self._pin}: {error.args[0]}") from error
        if temperature is None:
            raise SensorError(f"DHT22 on pin {self._pin} returned no temperature")
        return float(temperature)

    async def read(self) -> float:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read_blocking)

    def close(self):
        if self._closed:
            return
        super().close()
        logger.info(f"[SENSOR] Releasing DHT22 on pin {self._pin}")
        self.dht_device.exit()
