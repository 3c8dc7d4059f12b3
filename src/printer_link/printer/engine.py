"""
Printer Engine - The printer communication state machine.

This module provides the PrinterEngine, which drives a printer over a line
transport. The engine is run by exactly one worker thread and moves between
three states:

- OFFLINE: scan the transport for any sign of life, writing a temperature
  probe whenever the offline timeout elapses.
- ONLINE: execute queued commands one at a time, with line-numbered framing,
  resend handling and a bounded number of send attempts, injecting a
  temperature probe as a keep-alive when idle.
- STOPPED: terminal. Reached by close() or by a fatal error.

Everything the engine does is published on its EventBus.
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from printer_link.core.clock import Clock, TimeoutGate
from printer_link.core.logging import get_logger
from printer_link.core.utils import (
    CommandResubmissionError,
    QueueFullError,
    TransportError,
    TransportTimeoutError,
    UnsupportedCapabilityError,
)
from printer_link.gcode.command import Command, CommandStyle, compile_command
from printer_link.gcode.responses import ResponseKind, classify_response, resend_line_number
from printer_link.gcode.temperature import parse_temperatures
from printer_link.printer.command_queue import DEFAULT_QUEUE_CAPACITY, CommandQueue
from printer_link.printer.events import (
    CommandFailed,
    CommandSucceeded,
    EventBus,
    FatalError,
    OnlineStateChanged,
    PrinterEvent,
    TemperaturesChanged,
)
from printer_link.transport.interface import LineTransport

logger = get_logger()

DEFAULT_OFFLINE_TIMEOUT = 10000.0  # ms
DEFAULT_ONLINE_TIMEOUT = 10000.0  # ms
DEFAULT_POLL_INTERVAL = 10.0  # ms
MAX_SEND_ATTEMPTS = 30

FIRMWARE_PROBE = "M115"
TEMPERATURE_PROBE = "M105"


class EngineState(str, Enum):
    """States of the printer engine."""

    OFFLINE = "offline"
    ONLINE = "online"
    STOPPED = "stopped"

    def __str__(self) -> str:
        """Return the string value of the enum."""
        return self.value


class QueueCapability(str, Enum):
    """Command queue flavors a printer can be asked for."""

    GCODE = "gcode"

    def __str__(self) -> str:
        """Return the string value of the enum."""
        return self.value


class DispatchResult(Enum):
    """What the engine loop should do after executing a command."""

    CONTINUE = "continue"
    WENT_OFFLINE = "went-offline"
    FATAL = "fatal"


@dataclass(frozen=True)
class Dispatch:
    """
    Outcome of running the online loop or a single command.

    Attributes:
        result: The kind of outcome.
        cause: The error behind a FATAL outcome.
    """

    result: DispatchResult
    cause: BaseException | None = None


CONTINUE = Dispatch(DispatchResult.CONTINUE)
WENT_OFFLINE = Dispatch(DispatchResult.WENT_OFFLINE)


class PrinterEngine:
    """
    State machine driving a G-Code printer over a line transport.

    run() is meant to be the body of a single dedicated worker thread. All
    engine state is mutated on that thread only; other threads interact with
    the engine through the command queue, the event bus, is_online() and
    close().
    """

    def __init__(
        self,
        transport: LineTransport,
        clock: Clock,
        queue_capacity: int = DEFAULT_QUEUE_CAPACITY,
        offline_timeout: float = DEFAULT_OFFLINE_TIMEOUT,  # ms
        online_timeout: float = DEFAULT_ONLINE_TIMEOUT,  # ms
        poll_interval: float = DEFAULT_POLL_INTERVAL,  # ms
        max_send_attempts: int = MAX_SEND_ATTEMPTS,
    ):
        """
        Initialize the engine.

        Args:
            transport: The line transport connected to the printer.
            clock: Clock used for timeouts and event timestamps.
            queue_capacity: Maximum number of pending commands.
            offline_timeout: Time in ms without input while offline before a
                temperature probe is written.
            online_timeout: Time in ms without input while online before a
                keep-alive probe is queued, or before an in-flight command is
                abandoned and the printer considered offline.
            poll_interval: Time in ms to wait for a command on each pass of the
                online loop.
            max_send_attempts: Number of times a command is sent before the
                engine gives up and stops.
        """
        self.transport = transport
        self.clock = clock
        self.poll_interval = poll_interval / 1000
        self.max_send_attempts = max_send_attempts

        self._events = EventBus()
        self.queue = CommandQueue(clock, self._events, capacity=queue_capacity)
        self._offline_timeout = TimeoutGate(clock, offline_timeout / 1000)
        self._online_timeout = TimeoutGate(clock, online_timeout / 1000)

        self._state = EngineState.OFFLINE
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def state(self) -> EngineState:
        return self._state

    def is_online(self) -> bool:
        return self._state is EngineState.ONLINE

    def command_queue(self, capability: QueueCapability | str = QueueCapability.GCODE) -> CommandQueue:
        """
        Get the command queue of the requested flavor.

        Raises:
            UnsupportedCapabilityError: If the engine has no such queue.
        """
        try:
            QueueCapability(capability)
        except ValueError:
            supported = ", ".join(c.value for c in QueueCapability)
            raise UnsupportedCapabilityError(
                f"Command queue '{capability}' is not supported (supported: {supported})"
            ) from None
        return self.queue

    def close(self) -> None:
        """
        Stop the engine and complete the event stream.

        Idempotent. Does not interrupt a transport read or write already in
        progress; the worker notices the stop request at its next loop head.
        """
        if self._stop_event.is_set():
            return

        logger.debug("Printer engine stop requested")
        self._stop_event.set()
        self._set_state(EngineState.STOPPED)
        self._events.complete()

    def run(self) -> None:
        """Run the state machine until closed or until a fatal error occurs."""
        logger.debug("Printer engine starting")

        try:
            while self._running():
                self._run_offline()

                if not self._running():
                    break

                outcome = self._run_online()
                if outcome.result is DispatchResult.FATAL:
                    if self._running():
                        self._on_fatal(outcome.cause)
                    break

        except Exception as e:
            self._on_fatal(e)

        finally:
            self._stop_event.set()
            self._set_state(EngineState.STOPPED)
            self._events.complete()
            logger.debug("Printer engine finished")

    def _running(self) -> bool:
        return not self._stop_event.is_set()

    def _now(self) -> datetime:
        return self.clock.now()

    def _publish(self, event: PrinterEvent) -> None:
        self._events.publish(event)

    def _set_state(self, state: EngineState) -> bool:
        """Move to a new state. STOPPED is never left."""
        with self._state_lock:
            if self._state is EngineState.STOPPED:
                return False
            self._state = state
            return True

    def _run_offline(self) -> None:
        """
        Scan the transport until the printer says anything.

        Transport failures here are not fatal: a broken or absent link is
        exactly what the offline state is waiting out.
        """
        self._offline_timeout.reset()

        while self._running():
            if self._offline_timeout.is_timed_out():
                try:
                    logger.verbose("Offline timeout elapsed, writing temperature probe")
                    self.transport.write_line(TEMPERATURE_PROBE)
                except TransportError as e:
                    logger.debug(f"Failed to write probe while offline: {e}")
                self._offline_timeout.reset()

            try:
                line = self.transport.read_line()
            except TransportError as e:
                logger.debug(f"Failed to read while offline: {e}")
                self._stop_event.wait(self.poll_interval)
                continue

            if line is None or not line.strip():
                continue

            if classify_response(line) is ResponseKind.RESET_SENTINEL:
                logger.debug("Received reset sentinel while offline")
                continue

            self._went_online(self._now())
            return

    def _run_online(self) -> Dispatch:
        """Execute queued commands until the printer goes away or the engine stops."""
        self._online_timeout.reset()

        while self._running():
            command = self.queue.poll(self.poll_interval)

            if command is not None:
                self._online_timeout.reset()
                outcome = self._execute(command)
                if outcome.result is DispatchResult.WENT_OFFLINE:
                    self._went_offline()
                if outcome.result is not DispatchResult.CONTINUE:
                    return outcome
                continue

            if self._online_timeout.is_timed_out():
                logger.debug(
                    f"No commands sent in the last {self._online_timeout.duration}, "
                    "sending temperature probe"
                )
                self._enqueue_probe(TEMPERATURE_PROBE)

        return CONTINUE

    def _execute(self, command: Command) -> Dispatch:
        """
        Send a command and wait for the printer to accept it.

        The command is resent, with identical text, each time the printer asks
        for a resend, up to max_send_attempts times.
        """
        logger.debug(f"Command executing: {command.show()}")

        for attempt in range(self.max_send_attempts):
            if not self._running():
                return CONTINUE

            logger.verbose(f"Command send attempt {attempt}: {command.show()}")
            try:
                self.transport.write_line(command.text)
            except TransportTimeoutError as e:
                logger.info(f"Timed out writing to printer, printer must be offline: {e}")
                return WENT_OFFLINE
            except TransportError as e:
                return Dispatch(DispatchResult.FATAL, e)

            self._online_timeout.reset()

            need_resend = False
            failed = False

            while self._running():
                try:
                    line = self.transport.read_line()
                except TransportTimeoutError as e:
                    logger.info(f"Timed out reading from printer, printer must be offline: {e}")
                    return WENT_OFFLINE
                except TransportError as e:
                    return Dispatch(DispatchResult.FATAL, e)

                if line is None:
                    if self._online_timeout.is_timed_out():
                        logger.info(
                            f"Nothing received in the last {self._online_timeout.duration}, "
                            "printer must be offline"
                        )
                        return WENT_OFFLINE
                    continue

                kind = classify_response(line)
                if kind is ResponseKind.RESET_SENTINEL:
                    logger.info("Received reset sentinel, printer was reset")
                    return WENT_OFFLINE

                self._online_timeout.reset()

                if kind is ResponseKind.RESEND:
                    logger.debug(
                        f"Command {command.show()} must be resent "
                        f"(printer asked for line {resend_line_number(line)})"
                    )
                    self.queue.increment_resends()
                    need_resend = True

                elif kind is ResponseKind.ERROR:
                    logger.debug(f"Command {command.show()} failed: {line.strip()}")
                    failed = True
                    self.queue.increment_errors()
                    self._publish(CommandFailed(self._now(), command, line.strip()))

                elif kind is ResponseKind.OK:
                    self._publish_temperatures(line)
                    if need_resend:
                        break

                    logger.debug(f"Command {command.show()} done")
                    if not failed:
                        self._publish(CommandSucceeded(self._now(), command))
                    return CONTINUE

                else:
                    logger.verbose(f"Ignoring unrecognized response: {line.strip()!r}")

            if not self._running():
                return CONTINUE

        logger.error(f"Command {command.show()} could not be re-sent")
        return Dispatch(
            DispatchResult.FATAL, CommandResubmissionError("Command resubmission failure")
        )

    def _publish_temperatures(self, line: str) -> None:
        temperatures = parse_temperatures(line)
        if temperatures:
            self._publish(TemperaturesChanged(self._now(), temperatures))

    def _enqueue_probe(self, text: str) -> None:
        try:
            self.queue.enqueue(compile_command(0, text, CommandStyle.WITHOUT_LINE))
        except QueueFullError as e:
            logger.warning(f"Could not queue {text} probe: {e}")

    def _went_online(self, received_at: datetime) -> None:
        if not self._set_state(EngineState.ONLINE):
            return

        logger.info("Printer came online")
        self._publish(OnlineStateChanged(received_at, True))
        self._enqueue_probe(FIRMWARE_PROBE)
        self._enqueue_probe(TEMPERATURE_PROBE)

    def _went_offline(self) -> None:
        self.queue.reset()
        if not self._set_state(EngineState.OFFLINE):
            return

        logger.info("Printer went offline")
        self._publish(OnlineStateChanged(self._now(), False))

    def _on_fatal(self, cause: BaseException | None) -> None:
        if cause is None:
            cause = RuntimeError("Unknown fatal error")

        logger.error(f"Fatal error, stopping printer engine: {cause}", exc_info=cause)
        self._publish(FatalError(self._now(), cause))

        if self.is_online():
            self._went_offline()

        self._stop_event.set()
        self._set_state(EngineState.STOPPED)
