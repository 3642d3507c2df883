from __future__ import annotations

import dataclasses
import logging
import time
from typing import Optional

import click

from .config import Handshake, LinkConfiguration, Parity, StopBits, load_config
from .discovery import describe_ports, get_likely_ports
from .manager import LinkManager

_PARITY_CHOICES = [p.name.lower() for p in Parity]
_STOPBITS_CHOICES = ["1", "1.5", "2"]
_HANDSHAKE_CHOICES = [h.name.lower() for h in Handshake]


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_config(port: Optional[str], config_path: Optional[str], baudrate: Optional[int],
                  parity: Optional[str], databits: Optional[int], stopbits: Optional[str],
                  handshake: Optional[str]) -> LinkConfiguration:
    # Explicit options win over the config file, which wins over the defaults
    try:
        config = load_config(config_path) if config_path else LinkConfiguration()
    except ValueError as e:
        raise click.ClickException(str(e))

    overrides = {}
    if baudrate is not None:
        overrides["baudrate"] = baudrate
    if parity is not None:
        overrides["parity"] = Parity.parse(parity)
    if databits is not None:
        overrides["databits"] = databits
    if stopbits is not None:
        overrides["stopbits"] = StopBits.parse(stopbits)
    if handshake is not None:
        overrides["handshake"] = Handshake.parse(handshake)

    if port:
        overrides["port"] = port
    elif not config_path:
        likely = get_likely_ports()
        if not likely:
            raise click.ClickException("No serial port found. Specify PORT or --config.")
        click.echo(f"Using port: {likely[0]}", err=True)
        overrides["port"] = likely[0]

    return dataclasses.replace(config, **overrides)


def _open_or_fail(manager: LinkManager, config: LinkConfiguration) -> None:
    failures = []
    manager.status_changed.connect(failures.append)
    opened = manager.open_with(config)
    manager.status_changed.disconnect(failures.append)
    if not opened:
        raise click.ClickException(failures[-1] if failures else f"Could not open {config.port}")
    click.echo(config.summary(), err=True)


def _link_options(func):
    options = [
        click.option("-v", "--verbose", is_flag=True, help="Enable debug logging"),
        click.option("--config", "config_path", type=click.Path(dir_okay=False),
                     help="TOML file with a [serial] table"),
        click.option("--handshake", type=click.Choice(_HANDSHAKE_CHOICES, case_sensitive=False),
                     help="Flow control [default: none]"),
        click.option("--stopbits", type=click.Choice(_STOPBITS_CHOICES), help="Stop bits [default: 1]"),
        click.option("--databits", type=click.IntRange(5, 8), help="Data bits [default: 8]"),
        click.option("--parity", type=click.Choice(_PARITY_CHOICES, case_sensitive=False),
                     help="Parity [default: none]"),
        click.option("-b", "--baudrate", type=int, help="Baud rate [default: 9600]"),
    ]
    for option in options:
        func = option(func)
    return func


@click.group()
def main() -> None:
    """Open a serial link, send text and watch the lines that come back."""


@main.command()
@click.option("--all", "show_all", is_flag=True, help="Include port descriptions")
def ports(show_all: bool) -> None:
    """List serial ports, likely USB-serial adapters first."""
    if show_all:
        found = describe_ports()
        if not found:
            click.echo("No serial ports found.")
        for device, description in found:
            click.echo(f"{device}\t{description}")
        return
    found = get_likely_ports()
    if not found:
        click.echo("No serial ports found.")
    for device in found:
        click.echo(device)


@main.command()
@click.argument("port", required=False)
@_link_options
def monitor(port: Optional[str], baudrate: Optional[int], parity: Optional[str], databits: Optional[int],
            stopbits: Optional[str], handshake: Optional[str], config_path: Optional[str], verbose: bool) -> None:
    """Print received lines; send each line typed on stdin.

    PORT is a device name or pyserial URL (/dev/ttyUSB0, COM3, loop://).
    Without PORT the config file's port, or the first likely port, is used.

    Examples:

      serial-link monitor /dev/ttyUSB0 -b 115200

      serial-link monitor --config config.toml
    """
    _setup_logging(verbose)
    config = _build_config(port, config_path, baudrate, parity, databits, stopbits, handshake)

    with LinkManager() as manager:
        _open_or_fail(manager, config)
        manager.data_received.connect(click.echo)
        manager.status_changed.connect(lambda text: click.echo(f"[{text}]", err=True))
        stdin = click.get_text_stream("stdin")
        try:
            for line in stdin:
                manager.send_line(line.rstrip("\r\n"))
        except KeyboardInterrupt:
            click.echo("", err=True)


@main.command()
@click.argument("port")
@click.argument("message")
@click.option("-w", "--wait", type=float, default=1.0, show_default=True,
              help="Seconds to print received lines before closing")
@_link_options
def send(port: str, message: str, wait: float, baudrate: Optional[int], parity: Optional[str],
         databits: Optional[int], stopbits: Optional[str], handshake: Optional[str],
         config_path: Optional[str], verbose: bool) -> None:
    """Send MESSAGE as one line on PORT and print any reply."""
    _setup_logging(verbose)
    config = _build_config(port, config_path, baudrate, parity, databits, stopbits, handshake)

    with LinkManager() as manager:
        _open_or_fail(manager, config)
        manager.data_received.connect(click.echo)
        if not manager.send_line(message):
            raise click.ClickException(f"Failed to send to {config.port}")
        time.sleep(max(0.0, wait))


if __name__ == "__main__":
    main()
