"""
Transport package - Line-oriented channels to a printer.

This package provides:
- LineTransport: Protocol implemented by every transport
- SerialTransport: pyserial-backed transport
"""

from .interface import LineTransport
from .serial_transport import SerialTransport

__all__ = [
    "LineTransport",
    "SerialTransport",
]
