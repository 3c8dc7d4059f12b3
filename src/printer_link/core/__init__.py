"""
Core package - Contains core utilities and infrastructure.

This package provides:
- Clock: Clock protocol, system clock and timeout gates
- Config: Configuration loading and management
- Logging: Logging utilities
- Utils: Error hierarchy and serial device discovery
"""

from .clock import Clock, SystemClock, TimeoutGate
from .config import Config, PrinterConfig, SerialConfig
from .logging import get_logger, setup_logging
from .utils import (
    CommandResubmissionError,
    PrinterError,
    QueueFullError,
    SerialDeviceNotFoundError,
    TransportError,
    TransportTimeoutError,
    UnsupportedCapabilityError,
    find_serial_port_by_usb_id,
    wait_for_device,
)

__all__ = [
    "Clock",
    "SystemClock",
    "TimeoutGate",
    "Config",
    "PrinterConfig",
    "SerialConfig",
    "get_logger",
    "setup_logging",
    "CommandResubmissionError",
    "PrinterError",
    "QueueFullError",
    "SerialDeviceNotFoundError",
    "TransportError",
    "TransportTimeoutError",
    "UnsupportedCapabilityError",
    "find_serial_port_by_usb_id",
    "wait_for_device",
]
