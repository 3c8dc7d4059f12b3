"""
Printer - Owner of a printer engine and its worker thread.

This module provides the Printer class, the public entry point of the library.
A Printer wires a transport to a PrinterEngine, runs the engine on a dedicated
worker thread, and tears everything down again on close().
"""

import threading

from printer_link.core.clock import Clock, SystemClock
from printer_link.core.config import Config
from printer_link.core.logging import get_logger
from printer_link.printer.command_queue import DEFAULT_QUEUE_CAPACITY, CommandQueue
from printer_link.printer.engine import (
    DEFAULT_OFFLINE_TIMEOUT,
    DEFAULT_ONLINE_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
    EngineState,
    PrinterEngine,
    QueueCapability,
)
from printer_link.printer.events import EventBus
from printer_link.transport.interface import LineTransport
from printer_link.transport.serial_transport import SerialTransport

logger = get_logger()

DEFAULT_CLOSE_TIMEOUT = 30000.0  # ms
WORKER_THREAD_NAME = "printer-link-engine"


class Printer:
    """
    A G-Code printer reachable over a line transport.

    The printer starts offline. Once start() is called the engine scans the
    transport for the printer and, when it answers, starts executing the
    commands submitted to command_queue(). Progress is reported on events().

    A Printer that hit a fatal error stays stopped; build a new one to retry.
    """

    def __init__(
        self,
        transport: LineTransport,
        clock: Clock | None = None,
        queue_capacity: int = DEFAULT_QUEUE_CAPACITY,
        offline_timeout: float = DEFAULT_OFFLINE_TIMEOUT,  # ms
        online_timeout: float = DEFAULT_ONLINE_TIMEOUT,  # ms
        poll_interval: float = DEFAULT_POLL_INTERVAL,  # ms
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,  # ms
    ):
        """
        Initialize the printer. The worker thread is not started yet.

        Args:
            transport: An open line transport connected to the printer.
            clock: Clock for timeouts and event timestamps. Defaults to the
                system UTC clock.
            queue_capacity: Maximum number of pending commands.
            offline_timeout: Time in ms without input while offline before a
                temperature probe is written.
            online_timeout: Time in ms without input while online before a
                keep-alive probe is queued or the printer considered offline.
            poll_interval: Time in ms the engine waits for a command per pass.
            close_timeout: Time in ms close() waits for the worker to finish.
        """
        self.transport = transport
        self.close_timeout = close_timeout / 1000

        self._engine = PrinterEngine(
            transport,
            clock or SystemClock(),
            queue_capacity=queue_capacity,
            offline_timeout=offline_timeout,
            online_timeout=online_timeout,
            poll_interval=poll_interval,
        )
        self._worker: threading.Thread | None = None
        self._lifecycle_lock = threading.Lock()
        self._closed = False

    @classmethod
    def from_config(cls, config: Config, clock: Clock | None = None) -> "Printer":
        """
        Create a printer over a serial port described by configuration.

        The serial port is opened, but the worker thread is not started.

        Raises:
            SerialDeviceNotFoundError: If the configured USB device is not present.
            TransportError: If the serial port cannot be opened.
        """
        transport = SerialTransport.from_config(config.serial)
        transport.open()

        return cls(
            transport,
            clock=clock,
            queue_capacity=config.printer.queue_capacity,
            offline_timeout=config.printer.offline_timeout,
            online_timeout=config.printer.online_timeout,
            poll_interval=config.printer.poll_interval,
            close_timeout=config.printer.close_timeout,
        )

    @property
    def state(self) -> EngineState:
        return self._engine.state

    @property
    def is_running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def start(self) -> "Printer":
        """
        Start the engine on its worker thread.

        Raises:
            RuntimeError: If the printer was already started or closed.
        """
        with self._lifecycle_lock:
            if self._closed:
                raise RuntimeError("Printer is closed")
            if self._worker is not None:
                raise RuntimeError("Printer already started")

            self._worker = threading.Thread(
                target=self._engine.run,
                name=WORKER_THREAD_NAME,
                daemon=True,
            )
            self._worker.start()

        logger.info(f"Printer started on {self.transport!r}")
        return self

    def events(self) -> EventBus:
        return self._engine.events

    def is_online(self) -> bool:
        return self._engine.is_online()

    def command_queue(
        self, capability: QueueCapability | str = QueueCapability.GCODE
    ) -> CommandQueue:
        """
        Get the command queue of the requested flavor.

        Raises:
            UnsupportedCapabilityError: If the printer has no such queue.
        """
        return self._engine.command_queue(capability)

    def close(self) -> None:
        """
        Stop the engine, close the transport and wait for the worker thread.

        Idempotent. Transport close failures are logged, not raised.
        """
        with self._lifecycle_lock:
            if self._closed:
                return
            self._closed = True
            worker = self._worker

        self._engine.close()

        try:
            self.transport.close()
        except Exception as e:
            logger.error(f"Failed to close transport {self.transport!r}: {e}")

        if worker is not None and worker is not threading.current_thread():
            worker.join(self.close_timeout)
            if worker.is_alive():
                logger.warning(
                    f"Printer engine did not stop within {self.close_timeout}s, giving up"
                )

        logger.info("Printer closed")

    def __enter__(self) -> "Printer":
        if self._worker is None:
            self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Printer(transport={self.transport!r}, state={self.state})"
