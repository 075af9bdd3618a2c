import asyncio
import logging
import signal

import click

from thermoswitch.client import MosquittoClient, StatusPublisher
from thermoswitch.config_loader import load_config, instantiate_sensor, instantiate_control
from thermoswitch.config_manager import (
    SettingsManager, MAX_TEMP, MIN_TOLERANCE, MAX_TOLERANCE,
    MIN_FREQUENCY, MAX_FREQUENCY, MIN_BUFFER, MAX_BUFFER,
)
from thermoswitch.control_loop import ControlLoop
from thermoswitch.display import StatusLine, log_snapshot
from thermoswitch.exceptions import ActuatorError, ThermoswitchError
from thermoswitch.sensor import SimulatedSensor

NEW_SETTINGS_LABEL = "New settings..."


@click.command()
@click.option('--conf', help='Path to config file', default='conf/config.yaml')
@click.option('-s', '--settings', 'preset', help='Name of a saved settings preset', default=None)
@click.option('-q', '--quiet', is_flag=True, help='Do not print the status line')
@click.option('-v', '--verbose', is_flag=True, help='Log every tick')
def run(conf, preset, quiet, verbose):
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(conf)
        manager = SettingsManager(config.get('settings_file', 'conf/settings.yaml'))
        settings = choose_settings(manager, preset)
        asyncio.run(run_thermostat(config, manager, settings, quiet, verbose))
    except ThermoswitchError as e:
        raise click.ClickException(str(e))
    except OSError as e:
        raise click.ClickException(f"I/O error: {e}")
    except KeyboardInterrupt:
        click.echo("Exiting")


def choose_settings(manager, preset=None):
    """Pick the settings to run with: named preset, saved preset menu, or prompts."""
    presets = manager.list_presets()

    if preset is not None:
        if preset in presets:
            return manager.get_preset(preset)
        click.echo(f"No saved settings named '{preset}'.")

    if presets:
        options = presets + [NEW_SETTINGS_LABEL]
        for index, name in enumerate(options, start=1):
            click.echo(f"[{index}] {name}")
        choice = click.prompt('Select a preset settings file, or make a new one',
                              type=click.IntRange(1, len(options)))
        if options[choice - 1] != NEW_SETTINGS_LABEL:
            return manager.get_preset(options[choice - 1])

    return prompt_settings(manager)


def prompt_settings(manager):
    """Ask for every setting, validate them and offer to save them as a preset."""
    settings = {}
    mode = click.prompt('Is the thermostat heating or cooling?', type=click.Choice(['h', 'c']))
    settings['mode'] = 'heat' if mode == 'h' else 'cool'
    settings['units'] = click.prompt('Units?', type=click.Choice(['c', 'k', 'f']))
    units = settings['units']
    settings['temp'] = click.prompt(f'Target temperature? (°{units})',
                                    type=click.FloatRange(max=MAX_TEMP))
    settings['tolerance'] = click.prompt(
        f'How much tolerance from the target temp should be allowed? '
        f'(between {MIN_TOLERANCE} and {MAX_TOLERANCE}°{units})',
        type=click.FloatRange(MIN_TOLERANCE, MAX_TOLERANCE))
    settings['time'] = click.prompt('How long should the target temp be held? (milliseconds, -1 to run forever)',
                                    type=click.IntRange(min=-1), default=-1)
    settings['frequency'] = click.prompt(
        f'How often should the temperature sensor be sampled? '
        f'(specify {MIN_FREQUENCY} to {MAX_FREQUENCY} milliseconds between samples)',
        type=click.IntRange(MIN_FREQUENCY, MAX_FREQUENCY))
    settings['buffer'] = click.prompt(
        f'How much time should be enforced between each switch event? '
        f'(specify {MIN_BUFFER} to {MAX_BUFFER} millisecond buffer between switch toggles)',
        type=click.IntRange(MIN_BUFFER, MAX_BUFFER))

    is_valid, error = manager.validate_settings(settings)
    if not is_valid:
        raise click.ClickException(error)

    if click.confirm('Save these settings for later use?'):
        name = click.prompt('Specify a name for these settings')
        success, message = manager.save_preset(name, settings)
        click.echo(message)
        if success:
            click.prompt('Press "Enter" to start...', default='', show_default=False)

    return settings


def stop_handler(loop, errors):
    """Signal handler stopping the loop; a relay that refuses OFF is kept in errors."""
    def handler():
        try:
            loop.stop()
        except ActuatorError as e:
            errors.append(e)
    return handler


async def run_thermostat(config, manager, settings, quiet=False, verbose=False):
    thermostat_config = manager.to_thermostat_config(settings)

    sensor_conf = config.get('sensor')
    control_conf = config.get('control')
    if sensor_conf is None or control_conf is None:
        raise click.ClickException("Config file needs both a 'sensor' and a 'control' section")

    sensor = instantiate_sensor(sensor_conf.to_dict())
    try:
        control = instantiate_control(control_conf.to_dict())
    except Exception:
        sensor.close()
        raise

    if isinstance(sensor, SimulatedSensor):
        sensor.attach(control, thermostat_config.is_heater)

    mqtt_client = None
    event_loop = asyncio.get_running_loop()

    async with ControlLoop(thermostat_config, sensor, control) as loop:
        if not quiet:
            loop.add_observer(StatusLine(settings['units']))
        if verbose:
            loop.add_observer(log_snapshot)

        mqtt_conf = config.get('mqtt')
        if mqtt_conf is not None:
            mqtt_client = MosquittoClient(mqtt_conf.host, mqtt_conf.get('port', 1883),
                                          mqtt_conf.get('use_ssl', False), mqtt_conf.get('ca_certs'))
            mqtt_client.connect(mqtt_conf.get('user'), mqtt_conf.get('password'))
            loop.add_observer(StatusPublisher(mqtt_client, mqtt_conf.get('topic', 'thermoswitch')))

        errors = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            event_loop.add_signal_handler(sig, stop_handler(loop, errors))
        try:
            await loop.run()
            if errors:
                raise errors[0]
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                event_loop.remove_signal_handler(sig)
            if mqtt_client is not None:
                mqtt_client.disconnect()


if __name__ == '__main__':
    run()
