"""
Printer package - The printer communication engine and its public surface.

This package provides:
- Printer: Owner of the engine, its worker thread and transport
- PrinterEngine, EngineState, QueueCapability: The communication state machine
- CommandQueue, CommandQueueStatistics: The bounded command FIFO
- EventBus, EventStream and the event types
"""

from .command_queue import CommandQueue, CommandQueueStatistics
from .engine import EngineState, PrinterEngine, QueueCapability
from .events import (
    CommandFailed,
    CommandSubmitted,
    CommandSucceeded,
    EventBus,
    EventKind,
    EventStream,
    FatalError,
    OnlineStateChanged,
    PrinterEvent,
    Subscription,
    TemperaturesChanged,
)
from .printer import Printer

__all__ = [
    "CommandQueue",
    "CommandQueueStatistics",
    "EngineState",
    "PrinterEngine",
    "QueueCapability",
    "CommandFailed",
    "CommandSubmitted",
    "CommandSucceeded",
    "EventBus",
    "EventKind",
    "EventStream",
    "FatalError",
    "OnlineStateChanged",
    "PrinterEvent",
    "Subscription",
    "TemperaturesChanged",
    "Printer",
]
