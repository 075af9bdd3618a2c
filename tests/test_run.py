import signal

import yaml
from click.testing import CliRunner

import run as cli
from thermoswitch.config_manager import SettingsManager
from thermoswitch.control import SimulatedRelay
from thermoswitch.control_loop import ControlLoop
from thermoswitch.exceptions import ActuatorError
from thermoswitch.models import Phase, ThermostatConfig
from thermoswitch.sensor import SimulatedSensor

PRESET = {
    "mode": "heat",
    "units": "c",
    "temp": 20,
    "time": 0,
    "tolerance": 2,
    "frequency": 500,
    "buffer": 500,
}


def write_config(tmp_path, readings=(20.0,), presets=None):
    settings_path = tmp_path / "settings.yaml"
    if presets is not None:
        settings_path.write_text(yaml.safe_dump(presets))
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump({
        "sensor": {"type": "SimulatedSensor", "readings": list(readings)},
        "control": {"type": "SimulatedRelay"},
        "settings_file": str(settings_path),
    }))
    return config_path, settings_path


def test_run_with_named_preset_until_hold_expires(tmp_path):
    config_path, _ = write_config(tmp_path, presets={"bench": PRESET})

    result = CliRunner().invoke(cli.run, ["--conf", str(config_path), "-s", "bench"])

    assert result.exit_code == 0, result.output
    assert "Heater: OFF" in result.output


def test_quiet_run_prints_nothing(tmp_path):
    config_path, _ = write_config(tmp_path, presets={"bench": PRESET})

    result = CliRunner().invoke(cli.run, ["--conf", str(config_path), "--settings", "bench", "-q"])

    assert result.exit_code == 0, result.output
    assert result.output == ""


def test_preset_menu(tmp_path):
    config_path, _ = write_config(tmp_path, presets={"bench": PRESET, "other": dict(PRESET, temp=30)})

    result = CliRunner().invoke(cli.run, ["--conf", str(config_path), "-q"], input="1\n")

    assert result.exit_code == 0, result.output
    assert "[3] New settings..." in result.output


def test_prompts_and_saves_new_settings(tmp_path):
    config_path, settings_path = write_config(tmp_path, readings=(20.0,))
    answers = "\n".join(["h", "c", "20", "2", "0", "500", "500", "y", "bench", ""]) + "\n"

    result = CliRunner().invoke(cli.run, ["--conf", str(config_path), "-q"], input=answers)

    assert result.exit_code == 0, result.output
    saved = SettingsManager(str(settings_path)).get_preset("bench")
    assert saved["mode"] == "heat"
    assert saved["frequency"] == 500
    assert saved["time"] == 0


def test_unknown_device_type_is_reported(tmp_path):
    config_path, _ = write_config(tmp_path, presets={"bench": PRESET})
    data = yaml.safe_load(config_path.read_text())
    data["control"]["type"] = "Toaster"
    config_path.write_text(yaml.safe_dump(data))

    result = CliRunner().invoke(cli.run, ["--conf", str(config_path), "-s", "bench", "-q"])

    assert result.exit_code == 1
    assert "Unknown control type: Toaster" in result.output


def test_missing_config_file_is_reported(tmp_path):
    result = CliRunner().invoke(cli.run, ["--conf", str(tmp_path / "nope.yaml")])

    assert result.exit_code == 1
    assert "Cannot read config file" in result.output


def test_stop_handler_keeps_relay_error_for_the_caller():
    config = ThermostatConfig(is_heater=True, target_temp=20.0)
    loop = ControlLoop(config, SimulatedSensor(), SimulatedRelay(fail_on="off"))
    loop.start()
    errors = []

    cli.stop_handler(loop, errors)()

    assert loop.phase is Phase.STOPPED
    assert len(errors) == 1
    assert isinstance(errors[0], ActuatorError)


def test_signal_during_run_reports_relay_error(tmp_path, monkeypatch):
    config_path, _ = write_config(tmp_path, presets={"bench": dict(PRESET, time=-1)})
    data = yaml.safe_load(config_path.read_text())
    data["control"]["fail_on"] = "off"
    config_path.write_text(yaml.safe_dump(data))

    def interrupt(snapshot):
        signal.raise_signal(signal.SIGINT)

    monkeypatch.setattr(cli, "StatusLine", lambda units: interrupt)
    result = CliRunner().invoke(cli.run, ["--conf", str(config_path), "-s", "bench"])

    assert result.exit_code == 1, result.output
    assert "Failed to switch relay off on stop" in result.output
