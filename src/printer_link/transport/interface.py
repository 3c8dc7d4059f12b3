"""
Line Transport Interface - The duplex text channel the engine talks over.

The engine only needs to read and write single lines of ASCII text. Anything
that implements LineTransport can carry a printer connection: a serial port,
a TCP bridge, or a scripted fake in tests.
"""

from typing import Protocol


class LineTransport(Protocol):
    """
    Minimal line-oriented I/O interface used by the PrinterEngine.

    Implementations raise printer_link.core.utils.TransportError on I/O
    failures, and TransportTimeoutError when an operation timed out.
    """

    def read_line(self) -> str | None:
        """
        Read one line, without its terminator or trailing whitespace.

        Returns:
            The line, or None if no complete line is available yet.
        """
        ...

    def write_line(self, text: str) -> None:
        """Write one line; a single newline terminator is appended."""
        ...

    def close(self) -> None:
        """Release the underlying channel."""
        ...
