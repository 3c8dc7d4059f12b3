"""
Errors and serial device discovery for printer-link.

This module defines the exception hierarchy shared by the engine, the command
queue and the transports, and the helpers used to locate a printer's serial
port by USB vendor:product id.
"""

import time

import serial
import serial.tools.list_ports

from printer_link.core.logging import get_logger

logger = get_logger()


class PrinterError(Exception):
    """Base class for all printer-link errors."""

    pass


class QueueFullError(PrinterError):
    """Raised when a command is submitted to a command queue that is at capacity."""

    pass


class UnsupportedCapabilityError(PrinterError):
    """Raised when a printer is asked for a command queue flavor it does not provide."""

    pass


class CommandResubmissionError(PrinterError):
    """Raised when a command could not be delivered within the send attempt budget."""

    pass


class TransportError(PrinterError):
    """Raised when reading from or writing to the printer's transport fails."""

    pass


class TransportTimeoutError(TransportError):
    """
    Raised when a transport operation timed out.

    The engine treats this as the printer going away rather than as a broken
    link, and returns to scanning for the printer.
    """

    pass


class SerialDeviceNotFoundError(PrinterError):
    """Raised when the specified USB device cannot be found."""

    pass


def find_serial_port_by_usb_id(usb_id: str) -> str:
    """
    Find the serial port path for a given USB device ID.

    Args:
        usb_id: USB device ID in vendor:product format (e.g., "2c99:0002").

    Returns:
        The serial port path (e.g., "/dev/ttyACM0" or "COM3").

    Raises:
        ValueError: If the USB ID is malformed.
        SerialDeviceNotFoundError: If no matching device is found.
    """
    try:
        vendor_id, product_id = usb_id.lower().split(":")
        vendor_id_int = int(vendor_id, 16)
        product_id_int = int(product_id, 16)
    except (ValueError, AttributeError) as e:
        raise ValueError(
            f"Invalid USB ID format '{usb_id}'. "
            "Expected format: 'vendor:product' (e.g., '2c99:0002')"
        ) from e

    ports = serial.tools.list_ports.comports()

    for port in ports:
        if port.vid == vendor_id_int and port.pid == product_id_int:
            logger.debug(f"Found device {usb_id} at {port.device}")
            return port.device

    available = [
        f"{p.device} (VID:PID={p.vid:04x}:{p.pid:04x})"
        for p in ports
        if p.vid is not None and p.pid is not None
    ]

    logger.debug(f"Device {usb_id} not found. Available devices: {available}")

    raise SerialDeviceNotFoundError(
        f"USB device with ID '{usb_id}' not found. "
        f"Available USB serial devices: {available or 'none'}"
    )


def wait_for_device(
    usb_id: str | None = None,
    dev_path: str | None = None,
    timeout: float | None = None,
    poll_interval: float = 1.0,
) -> str:
    """
    Wait for a device to become available, polling at regular intervals.

    If a USB ID is provided, polls for devices with that ID. If a device path
    is provided, polls until that path can be opened. At least one must be provided.

    Args:
        usb_id: USB device ID in vendor:product format.
        dev_path: Device path like /dev/ttyACM0.
        timeout: Maximum time to wait in seconds. None means wait forever.
        poll_interval: Time between polls in seconds (default: 1.0).

    Returns:
        The device path when found.

    Raises:
        SerialDeviceNotFoundError: If the device is not found within timeout.
        ValueError: If neither usb_id nor dev_path are provided.
    """
    if not usb_id and not dev_path:
        raise ValueError("Must specify either usb_id or dev_path")

    deadline = None if timeout is None else time.monotonic() + timeout

    while True:
        if usb_id:
            try:
                return find_serial_port_by_usb_id(usb_id)
            except SerialDeviceNotFoundError:
                pass  # Continue polling
        else:
            try:
                with serial.Serial(dev_path) as _:
                    return dev_path  # type: ignore[return-value]
            except (serial.SerialException, OSError):
                pass  # Device not found yet

        if deadline is not None and time.monotonic() >= deadline:
            raise SerialDeviceNotFoundError(
                f"Device {usb_id or dev_path} not found within {timeout}s"
            )

        time.sleep(poll_interval)
