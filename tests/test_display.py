import json

import click

from thermoswitch.client import StatusPublisher
from thermoswitch.display import StatusLine, format_remaining, log_snapshot
from thermoswitch.exceptions import SensorError
from thermoswitch.models import Phase, Snapshot


def make_snapshot(**overrides):
    values = dict(current_temp=19.0, target_temp=20.0, tolerance=1.0, is_heater=True,
                  actuator_on=True, phase=Phase.RUNNING, hold_elapsed=0.0,
                  time_remaining=None, last_off_at=None, tick=3)
    values.update(overrides)
    return Snapshot(**values)


class FakeMqtt:

    def __init__(self):
        self.messages = []

    def publish(self, topic, message, retain=False):
        self.messages.append((topic, message, retain))


def test_format_remaining():
    assert format_remaining(None) == ""
    assert format_remaining(-1) == ""
    assert format_remaining(0) == "00:00:00"
    assert format_remaining(59.9) == "00:00:59"
    assert format_remaining(3725) == "01:02:05"


def test_status_line_heater():
    text = click.unstyle(StatusLine("c").render(make_snapshot()))
    assert text == "Set: 20.0°c\t\tTemp(°c): 19.0\t\tHeater: ON"


def test_status_line_chiller_in_fahrenheit_with_hold():
    snapshot = make_snapshot(is_heater=False, actuator_on=False, current_temp=0.0,
                             target_temp=0.0, time_remaining=90.0)
    text = click.unstyle(StatusLine("f").render(snapshot))
    assert text == "Remaining: 00:01:30\t\tSet: 32.0°f\t\tTemp(°f): 32.0\t\tChiller: ○ OFF"


def test_status_line_colours_out_of_band_temperature():
    line = StatusLine("c")
    hot = line.render(make_snapshot(current_temp=25.0))
    cold = line.render(make_snapshot(current_temp=15.0))
    assert click.style("25.0", fg="red", bold=True) in hot
    assert click.style("15.0", fg="blue", bold=True) in cold


def test_status_line_reports_read_failure():
    snapshot = make_snapshot(current_temp=None, error=SensorError("no data"))
    text = click.unstyle(StatusLine("c").render(snapshot))
    assert "Temp(°c): --.-" in text
    assert text.endswith("Sensor read failed: no data")


def test_status_line_prints(capsys):
    StatusLine("c", clear=False)(make_snapshot())
    assert "Heater: ON" in click.unstyle(capsys.readouterr().out)


def test_log_snapshot(caplog):
    caplog.set_level("INFO", logger="thermoswitch.display")
    log_snapshot(make_snapshot())
    log_snapshot(make_snapshot(error=SensorError("timeout")))
    assert "19.00°C, relay ON, running" in caplog.records[0].getMessage()
    assert "read failed (timeout)" in caplog.records[1].getMessage()


def test_status_publisher_sends_snapshot_and_phase_changes():
    mqtt = FakeMqtt()
    publisher = StatusPublisher(mqtt, topic="cellar/")

    publisher(make_snapshot())
    publisher(make_snapshot(tick=4))
    publisher(make_snapshot(phase=Phase.STOPPED, actuator_on=False))

    topics = [topic for topic, _, _ in mqtt.messages]
    assert topics == ["cellar/status", "cellar/phase", "cellar/status",
                      "cellar/status", "cellar/phase"]
    payload = json.loads(mqtt.messages[0][1])
    assert payload["current_temp"] == 19.0
    assert payload["phase"] == "running"
    assert payload["error"] is None
    assert mqtt.messages[-1] == ("cellar/phase", "stopped", True)
