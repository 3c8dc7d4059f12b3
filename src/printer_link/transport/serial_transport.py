"""
Serial Transport - ASCII line I/O with a printer over a serial port.

This module provides the SerialTransport class, a LineTransport backed by a
pyserial port. Reads are bounded by the port's read timeout so the engine's
loops keep turning while the printer is silent.
"""

import serial

from printer_link.core.config import SerialConfig
from printer_link.core.logging import get_logger, log_serial_recv, log_serial_sent
from printer_link.core.utils import (
    TransportError,
    TransportTimeoutError,
    find_serial_port_by_usb_id,
)

logger = get_logger()


class SerialTransport:
    """
    LineTransport implementation over a pyserial port.

    Partial lines are buffered until their terminator arrives. Lines that are
    not valid ASCII, and the NUL lines some boards emit on reset, read as None.
    Every line sent or received is mirrored to the serial communication log.
    """

    def __init__(
        self,
        port: str,
        baud_rate: int = 115200,
        read_timeout: float = 100.0,  # ms
        write_timeout: float = 1000.0,  # ms
    ):
        """
        Initialize the transport. The port is not opened until open() is called.

        Args:
            port: Serial device path, like /dev/ttyACM0 or COM3.
            baud_rate: Serial baud rate.
            read_timeout: Time in ms a single read waits for data.
            write_timeout: Time in ms a single write may block.
        """
        self.port = port
        self.baud_rate = baud_rate
        self.read_timeout = read_timeout / 1000
        self.write_timeout = write_timeout / 1000

        self._serial: serial.Serial | None = None
        self._input_buffer = b""

    @classmethod
    def from_config(cls, config: SerialConfig) -> "SerialTransport":
        """
        Create a transport from serial configuration, resolving a USB id to
        its device path when no explicit path is given.

        Raises:
            SerialDeviceNotFoundError: If the USB device is not present.
            ValueError: If neither a path nor a USB id is configured.
        """
        if config.path:
            port = config.path
        elif config.usb_id:
            port = find_serial_port_by_usb_id(config.usb_id)
        else:
            raise ValueError("Must specify either usb_id or path")

        return cls(
            port=port,
            baud_rate=config.baud_rate,
            read_timeout=config.read_timeout,
            write_timeout=config.write_timeout,
        )

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def open(self) -> None:
        """
        Open the serial port.

        Raises:
            TransportError: If the port cannot be opened.
        """
        if self.is_open:
            logger.warning(f"Serial port {self.port} already open")
            return

        try:
            self._serial = serial.Serial(
                self.port,
                baudrate=self.baud_rate,
                timeout=self.read_timeout,
                write_timeout=self.write_timeout,
            )
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Failed to open serial port {self.port}: {e}") from e

        self._input_buffer = b""
        logger.info(f"Opened {self.port} at {self.baud_rate} baud")

    def read_line(self) -> str | None:
        """
        Read one line from the printer.

        Returns:
            The line without trailing whitespace, or None if no complete line
            arrived within the read timeout.

        Raises:
            TransportError: If the port is closed or the read fails.
        """
        port = self._require_open()

        try:
            data = port.readline()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Serial read failed: {e}") from e

        if not data:
            return None

        self._input_buffer += data
        if not self._input_buffer.endswith(b"\n"):
            # Line not complete yet, wait for the rest
            return None

        raw, self._input_buffer = self._input_buffer, b""
        logger.verbose(f"Raw serial data received: {raw!r}")

        try:
            line = raw.decode("ascii").rstrip()
        except UnicodeDecodeError as e:
            logger.warning(f"Failed to decode serial data as ASCII (potential garbage): {e}")
            return None

        if line == "\0":
            return None

        log_serial_recv(line)
        return line

    def write_line(self, text: str) -> None:
        """
        Write one line to the printer, appending a newline terminator.

        Raises:
            TransportTimeoutError: If the write timed out.
            TransportError: If the port is closed or the write fails.
            UnicodeEncodeError: If the text is not ASCII.
        """
        port = self._require_open()

        line = text.rstrip()
        data = (line + "\n").encode("ascii")

        try:
            port.write(data)
            port.flush()
        except serial.SerialTimeoutException as e:
            raise TransportTimeoutError(f"Serial write timed out: {e}") from e
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Serial write failed: {e}") from e

        log_serial_sent(line)
        logger.verbose(f"Raw serial data sent: {data!r}")

    def close(self) -> None:
        """Close the serial port. Safe to call more than once."""
        if self._serial is None:
            return

        try:
            self._serial.close()
            logger.debug(f"Serial port {self.port} closed")
        finally:
            self._serial = None

    def _require_open(self) -> serial.Serial:
        if self._serial is None:
            raise TransportError(f"Serial port {self.port} is not open")
        return self._serial

    def __repr__(self) -> str:
        return f"SerialTransport(port={self.port!r}, baud_rate={self.baud_rate})"
