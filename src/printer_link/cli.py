"""
Command-line interface for printer-link.

This module provides the CLI using Click. It opens a printer, waits for it to
come online, streams G-Code lines to it and prints what the printer reports.

Configuration is loaded with the following precedence:
1. Environment variables (highest precedence)
2. CLI arguments
3. Config file
4. Default values (lowest precedence)
"""

import signal
import sys
import uuid
from collections import deque
from pathlib import Path
from typing import Any

import click

from printer_link.core.config import (
    DEFAULT_CONFIG_PATH,
    ENV_CONFIG_FILE,
    ENV_SERIAL_BAUD_RATE,
    ENV_SERIAL_DEV_PATH,
    ENV_SERIAL_LOG_FILE,
    ENV_SERIAL_USB_ID,
    Config,
)
from printer_link.core.logging import attach_serial_log, get_logger, setup_logging
from printer_link.core.utils import (
    PrinterError,
    QueueFullError,
    wait_for_device,
)
from printer_link.gcode.command import Command, CommandStyle, compile_command
from printer_link.printer.events import (
    CommandFailed,
    CommandSubmitted,
    CommandSucceeded,
    EventStream,
    FatalError,
    OnlineStateChanged,
    PrinterEvent,
    TemperaturesChanged,
)
from printer_link.printer.printer import Printer

DEFAULT_ONLINE_WAIT = 30.0  # seconds
EVENT_POLL_INTERVAL = 1.0  # seconds

# Sent after the last line; its outcome means every line before it is done
SYNC_MARKER = "M105"


def describe_event(event: PrinterEvent) -> str | None:
    """
    Render an event as a single line of CLI output.

    Returns:
        The line, or None for events that are not printed.
    """
    if isinstance(event, OnlineStateChanged):
        return "Printer online" if event.online else "Printer offline"
    if isinstance(event, CommandSucceeded):
        return f"ok    {event.command.text}"
    if isinstance(event, CommandFailed):
        return f"error {event.command.text}: {event.message}"
    if isinstance(event, TemperaturesChanged):
        readings = " ".join(
            f"{t.code}:{t.current:.1f}" + (f"/{t.target:.1f}" if t.target is not None else "")
            for t in event.temperatures.values()
        )
        return f"temp  {readings}"
    if isinstance(event, FatalError):
        return f"fatal {event.cause}"
    return None


def read_gcode_lines(gcode: tuple[str, ...]) -> list[str]:
    """Collect non-blank G-Code lines from the arguments, or from stdin when none are given."""
    if gcode:
        source: Any = gcode
    else:
        source = click.get_text_stream("stdin")
    return [line.strip() for line in source if line.strip()]


@click.command()
@click.argument("gcode", nargs=-1)
@click.option(
    "-c", "--config",
    "config_file",
    type=click.Path(exists=False, path_type=Path),
    envvar=ENV_CONFIG_FILE,
    default=None,
    help=f"Path to configuration file. [default: {DEFAULT_CONFIG_PATH}] [env: {ENV_CONFIG_FILE}]",
)
@click.option(
    "-d", "--usb-id",
    "usb_id",
    type=str,
    default=None,
    help=f"USB device ID in vendor:product format (e.g., 2c99:0002). [env: {ENV_SERIAL_USB_ID}]",
)
@click.option(
    "--dev",
    "dev_path",
    type=str,
    default=None,
    help=f"Serial device path (e.g., /dev/ttyACM0). [env: {ENV_SERIAL_DEV_PATH}]",
)
@click.option(
    "-b", "--baud-rate",
    type=int,
    default=None,
    help=f"Serial baud rate. [env: {ENV_SERIAL_BAUD_RATE}]",
)
@click.option(
    "--checksum",
    is_flag=True,
    default=False,
    help="Append a checksum to every line sent.",
)
@click.option(
    "--online-wait",
    type=float,
    default=DEFAULT_ONLINE_WAIT,
    show_default=True,
    help="Seconds to wait for the printer to come online.",
)
@click.option(
    "--device-wait",
    type=float,
    default=None,
    help="Seconds to wait for the serial device to appear before opening it.",
)
@click.option(
    "--serial-log-file",
    type=str,
    default=None,
    help=f"File receiving every line sent to and received from the printer. [env: {ENV_SERIAL_LOG_FILE}]",
)
@click.option(
    "-v", "--verbose",
    count=True,
    help="Increase verbosity (-v for DEBUG, -vv for VERBOSE).",
)
@click.option(
    "-q", "--quiet",
    is_flag=True,
    default=False,
    help="Suppress all output except errors.",
)
@click.option(
    "--generate-config",
    is_flag=True,
    default=False,
    help="Generate a default configuration file and exit.",
)
@click.version_option(package_name="printer-link")
def main(
    gcode: tuple[str, ...],
    config_file: Path | None,
    usb_id: str | None,
    dev_path: str | None,
    baud_rate: int | None,
    checksum: bool,
    online_wait: float,
    device_wait: float | None,
    serial_log_file: str | None,
    verbose: int,
    quiet: bool,
    generate_config: bool,
) -> None:
    """
    printer-link - Send G-Code to a 3D printer over a serial port.

    GCODE lines are taken from the arguments, or read from stdin when none are
    given. Every line is numbered, and checksummed with --checksum, before it
    is sent. Resend requests from the printer are honored.

    Configuration is loaded with the following precedence (highest to lowest):

    \b
    1. Environment variables
    2. CLI arguments
    3. Configuration file
    4. Default values

    Example usage:

    \b
        # Home and report temperatures
        printer-link --usb-id 2c99:0002 G28 M105

        # Stream a file with checksums
        printer-link --dev /dev/ttyACM0 --checksum < part.gcode

        # Generate a default config file
        printer-link --generate-config
    """
    setup_logging(verbosity_level=verbose, quiet=quiet)
    logger = get_logger(__name__)

    cli_args: dict[str, Any] = {}
    if usb_id is not None:
        cli_args["usb_id"] = usb_id
    if dev_path is not None:
        cli_args["dev_path"] = dev_path
    if baud_rate is not None:
        cli_args["baud_rate"] = baud_rate
    if serial_log_file is not None:
        cli_args["serial_log_file"] = serial_log_file

    if generate_config:
        config = Config.load(
            config_file=config_file, cli_args=cli_args, skip_device_validation=True
        )
        target_path = config_file if config_file else DEFAULT_CONFIG_PATH
        try:
            config.save(target_path)
            click.echo(f"Configuration file generated: {target_path}")
        except OSError as e:
            click.echo(f"Error generating config file: {e}", err=True)
            sys.exit(1)
        return

    try:
        config = Config.load(config_file=config_file, cli_args=cli_args)
    except ValueError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    attach_serial_log(config.serial_log_file)

    lines = read_gcode_lines(gcode)
    style = CommandStyle.WITH_LINE_AND_CHECKSUM if checksum else CommandStyle.WITH_LINE

    def handle_signal(signum: int, frame: Any) -> None:
        logger.info(f"Received signal {signum}, shutting down...")
        raise KeyboardInterrupt()

    if sys.platform != "win32":
        signal.signal(signal.SIGTERM, handle_signal)
        signal.signal(signal.SIGHUP, handle_signal)

    try:
        if device_wait is not None:
            wait_for_device(
                usb_id=config.serial.usb_id,
                dev_path=config.serial.path,
                timeout=device_wait,
            )
        printer = Printer.from_config(config)
    except (PrinterError, ValueError) as e:
        click.echo(f"Failed to open printer: {e}", err=True)
        sys.exit(1)

    try:
        with printer:
            exit_code = run_session(printer, lines, style, online_wait)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        exit_code = 130

    if exit_code:
        sys.exit(exit_code)


def run_session(
    printer: Printer,
    lines: list[str],
    style: CommandStyle,
    online_wait: float,
) -> int:
    """
    Wait for a started printer to come online, then send every line and print
    the events until all of them have been settled.

    The engine executes commands strictly in submission order, so an outcome
    for one command settles every command submitted before it. A failed
    command is settled only that way, since the firmware may still ask for it
    to be resent. A trailing marker command settles the last line.

    Args:
        printer: The started printer.
        lines: The G-Code lines to send.
        style: Framing style for every line.
        online_wait: Seconds to wait for the printer to come online.

    Returns:
        The process exit code.
    """
    logger = get_logger(__name__)
    stream: EventStream = printer.events().stream()

    try:
        if not printer.is_online():
            try:
                stream.wait_for(
                    OnlineStateChanged, timeout=online_wait, predicate=lambda e: e.online
                )
            except TimeoutError:
                click.echo(f"Printer did not come online within {online_wait}s", err=True)
                return 1
            except EOFError:
                click.echo("Printer stopped before coming online", err=True)
                return 1
        click.echo("Printer online")

        queue = printer.command_queue()
        to_send = deque(lines)
        marker: Command | None = None
        unsettled: set[uuid.UUID] = set()
        submission_order: dict[uuid.UUID, int] = {}

        while to_send or marker is None or unsettled:
            while to_send:
                try:
                    command = queue.enqueue_compile(to_send[0], style)
                except QueueFullError:
                    logger.debug("Command queue full, waiting for the printer to catch up")
                    break
                unsettled.add(command.id)
                to_send.popleft()

            if not to_send and marker is None:
                try:
                    marker = queue.enqueue(
                        compile_command(0, SYNC_MARKER, CommandStyle.WITHOUT_LINE)
                    )
                    unsettled.add(marker.id)
                except QueueFullError:
                    logger.debug("Command queue full, marker deferred")

            try:
                event = stream.get(timeout=EVENT_POLL_INTERVAL)
            except TimeoutError:
                continue

            if event is None:
                click.echo("Printer stopped", err=True)
                return 1

            if isinstance(event, CommandSubmitted):
                submission_order[event.command.id] = len(submission_order)
                continue

            message = describe_event(event)
            if message:
                click.echo(message, err=isinstance(event, (CommandFailed, FatalError)))

            if isinstance(event, (CommandSucceeded, CommandFailed)):
                position = submission_order.get(event.command.id)
                if position is not None:
                    settled = {
                        c for c in unsettled
                        if c in submission_order and submission_order[c] < position
                    }
                    if isinstance(event, CommandSucceeded):
                        settled.add(event.command.id)
                    unsettled -= settled
            elif isinstance(event, FatalError):
                return 1
            elif isinstance(event, OnlineStateChanged) and not event.online:
                click.echo(
                    f"Printer went offline, {len(unsettled) + len(to_send)} commands not confirmed",
                    err=True,
                )
                return 1

        stats = queue.statistics()
        click.echo(
            f"Done: {stats.submissions} submitted, {stats.errors} errors, {stats.resends} resends"
        )
        return 0

    finally:
        stream.close()


if __name__ == "__main__":
    main()
