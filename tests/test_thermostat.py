import pytest

from thermoswitch.models import Command, ThermostatConfig
from thermoswitch.thermostat import ChatterGuard, HoldTimer, Thermostat


@pytest.mark.parametrize("temp", [22.01, 25.0, 40.0])
def test_heating_above_band_requests_off(temp):
    assert Thermostat(20.0, 2.0, is_heater=True).decide(temp) is Command.OFF


@pytest.mark.parametrize("temp", [17.99, 10.0, -5.0])
def test_heating_below_band_requests_on(temp):
    assert Thermostat(20.0, 2.0, is_heater=True).decide(temp) is Command.ON


@pytest.mark.parametrize("temp", [18.0, 19.5, 20.0, 21.9, 22.0])
def test_inside_band_and_bounds_request_no_change(temp):
    assert Thermostat(20.0, 2.0, is_heater=True).decide(temp) is Command.NO_CHANGE
    assert Thermostat(20.0, 2.0, is_heater=False).decide(temp) is Command.NO_CHANGE


def test_cooling_mirrors_heating():
    thermostat = Thermostat(4.0, 1.0, is_heater=False)
    assert thermostat.decide(5.5) is Command.ON
    assert thermostat.decide(2.5) is Command.OFF


def test_zero_tolerance_only_target_is_in_band():
    thermostat = Thermostat(20.0, 0.0)
    assert thermostat.decide(20.0) is Command.NO_CHANGE
    assert thermostat.decide(19.9) is Command.ON
    assert thermostat.in_band(20.0)
    assert not thermostat.in_band(20.1)


def test_from_config():
    config = ThermostatConfig(is_heater=False, target_temp=3.0, tolerance=0.5)
    thermostat = Thermostat.from_config(config)
    assert (thermostat.low, thermostat.high) == (2.5, 3.5)
    assert not thermostat.is_heater
    assert "cooling" in repr(thermostat)


def test_guard_first_on_is_permitted():
    guard = ChatterGuard(2.0)
    assert guard.permit(Command.ON, 0.0) is Command.ON
    assert guard.wait_remaining(0.0) == 0.0


def test_guard_defers_on_until_dwell_elapsed():
    guard = ChatterGuard(2.0)
    guard.record_off(10.0)
    assert guard.permit(Command.ON, 11.0) is Command.NO_CHANGE
    assert guard.wait_remaining(11.0) == pytest.approx(1.0)
    assert guard.permit(Command.ON, 11.999) is Command.NO_CHANGE
    assert guard.permit(Command.ON, 12.0) is Command.ON


def test_guard_never_blocks_off_or_no_change():
    guard = ChatterGuard(15.0)
    guard.record_off(0.0)
    assert guard.permit(Command.OFF, 0.1) is Command.OFF
    assert guard.permit(Command.NO_CHANGE, 0.1) is Command.NO_CHANGE


def test_hold_timer_disabled():
    for duration in (None, -1):
        hold = HoldTimer(duration)
        assert not hold.enabled
        assert hold.update(True, 1.0) is False
        assert hold.remaining() is None


def test_hold_timer_accumulates_and_expires():
    hold = HoldTimer(5.0)
    results = [hold.update(True, 1.0) for _ in range(5)]
    assert results == [False, False, False, False, True]
    assert hold.remaining() == 0.0


def test_hold_timer_resets_when_band_left():
    hold = HoldTimer(5.0)
    hold.update(True, 1.0)
    hold.update(True, 1.0)
    hold.update(False, 1.0)
    assert hold.elapsed == 0.0
    hold.update(True, 1.0)
    assert hold.remaining() == 4.0


def test_zero_hold_expires_on_first_in_band_tick():
    hold = HoldTimer(0)
    assert hold.update(False, 1.0) is False
    assert hold.update(True, 1.0) is True


def test_hold_timer_counts_fractional_intervals_exactly():
    hold = HoldTimer(2.1)
    assert [hold.update(True, 0.7) for _ in range(3)] == [False, False, True]
    assert hold.elapsed == 2.1
    assert hold.remaining() == 0.0
