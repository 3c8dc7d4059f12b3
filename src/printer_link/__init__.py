"""printer-link - G-Code communication engine for 3D printers."""

__version__ = "0.1.0"
__author__ = "printer-link Team"

from .core.clock import Clock, SystemClock
from .core.config import Config
from .core.utils import (
    CommandResubmissionError,
    PrinterError,
    QueueFullError,
    SerialDeviceNotFoundError,
    TransportError,
    TransportTimeoutError,
    UnsupportedCapabilityError,
)
from .gcode import Command, CommandStyle, Temperature, Temperatures
from .printer import (
    CommandQueue,
    CommandQueueStatistics,
    EngineState,
    EventBus,
    EventStream,
    Printer,
    PrinterEvent,
    QueueCapability,
)
from .transport import LineTransport, SerialTransport

__all__ = [
    "Clock",
    "SystemClock",
    "Config",
    "CommandResubmissionError",
    "PrinterError",
    "QueueFullError",
    "SerialDeviceNotFoundError",
    "TransportError",
    "TransportTimeoutError",
    "UnsupportedCapabilityError",
    "Command",
    "CommandStyle",
    "Temperature",
    "Temperatures",
    "CommandQueue",
    "CommandQueueStatistics",
    "EngineState",
    "EventBus",
    "EventStream",
    "Printer",
    "PrinterEvent",
    "QueueCapability",
    "LineTransport",
    "SerialTransport",
    "__version__",
]
