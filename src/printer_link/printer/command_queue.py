"""
Command queue for printer-link.

This module provides the CommandQueue, the bounded FIFO between the threads
submitting G-Code and the engine worker that executes it. The queue owns the
line-number counter used for framing and the running command statistics.
"""

import dataclasses
import queue
import threading
from dataclasses import dataclass

from printer_link.core.clock import Clock
from printer_link.core.logging import get_logger
from printer_link.core.utils import QueueFullError
from printer_link.gcode.command import Command, CommandStyle, compile_command
from printer_link.printer.events import CommandSubmitted, EventBus

logger = get_logger()

DEFAULT_QUEUE_CAPACITY = 100


@dataclass(frozen=True)
class CommandQueueStatistics:
    """
    Point-in-time command statistics. Counters never decrease.

    Attributes:
        submissions: Number of commands accepted by the queue.
        errors: Number of error responses received.
        resends: Number of resend requests received.
    """

    submissions: int = 0
    errors: int = 0
    resends: int = 0


class CommandQueue:
    """
    Bounded FIFO of compiled G-Code commands.

    enqueue_compile() and enqueue() may be called from any thread and never
    block: a full queue raises QueueFullError. The CommandSubmitted event is
    published before the command becomes visible to the engine, so it always
    precedes the events describing the command's execution. Submission holds
    the event bus lock, so event handlers running on the submitting thread may
    themselves submit commands.

    The remaining methods are used by the engine worker.
    """

    def __init__(
        self,
        clock: Clock,
        events: EventBus,
        capacity: int = DEFAULT_QUEUE_CAPACITY,
    ):
        """
        Initialize the command queue.

        Args:
            clock: Clock used to timestamp CommandSubmitted events.
            events: Bus receiving a CommandSubmitted event per accepted command.
            capacity: Maximum number of pending commands.
        """
        if capacity <= 0:
            raise ValueError(f"Queue capacity must be positive, got {capacity}")

        self.clock = clock
        self.events = events
        self._pending: queue.Queue[Command] = queue.Queue(maxsize=capacity)
        self._stats_lock = threading.Lock()
        self._line_number = 0
        self._statistics = CommandQueueStatistics()

    @property
    def capacity(self) -> int:
        return self._pending.maxsize

    @property
    def line_number(self) -> int:
        """The line number the next line-numbered command will receive."""
        return self._line_number

    @property
    def pending_count(self) -> int:
        return self._pending.qsize()

    def enqueue_compile(self, text: str, style: CommandStyle = CommandStyle.WITH_LINE) -> Command:
        """
        Compile a command with the next line number and enqueue it.

        The line-number counter only advances for styles carrying a line
        number, and only if the command was accepted.

        Args:
            text: The command body.
            style: The framing style.

        Returns:
            The compiled command.

        Raises:
            QueueFullError: If the queue is at capacity.
        """
        with self.events.exclusive():
            self._check_capacity(text)
            command = compile_command(self._line_number, text, style)
            if style.has_line_number:
                self._line_number += 1
            self._submit(command)
        return command

    def enqueue(self, command: Command) -> Command:
        """
        Enqueue an already compiled command, bypassing line numbering.

        Raises:
            QueueFullError: If the queue is at capacity.
        """
        with self.events.exclusive():
            self._check_capacity(command.text)
            self._submit(command)
        return command

    def statistics(self) -> CommandQueueStatistics:
        return self._statistics

    def poll(self, timeout: float) -> Command | None:
        """
        Take the oldest pending command, waiting at most timeout seconds.

        Returns:
            The command, or None if none arrived in time.
        """
        try:
            return self._pending.get(timeout=timeout)
        except queue.Empty:
            return None

    def reset(self) -> None:
        """Drop all pending commands and restart line numbering at 0."""
        with self.events.exclusive():
            dropped = 0
            while True:
                try:
                    self._pending.get_nowait()
                    dropped += 1
                except queue.Empty:
                    break
            self._line_number = 0

        logger.debug(f"Command queue reset, dropped {dropped} pending commands")

    def increment_errors(self) -> None:
        with self._stats_lock:
            self._statistics = dataclasses.replace(
                self._statistics, errors=self._statistics.errors + 1
            )

    def increment_resends(self) -> None:
        with self._stats_lock:
            self._statistics = dataclasses.replace(
                self._statistics, resends=self._statistics.resends + 1
            )

    def _check_capacity(self, text: str) -> None:
        # Callers hold the bus lock and the engine only removes commands, so a
        # passing check stays valid until the put.
        if self._pending.full():
            raise QueueFullError(
                f"Command queue is full ({self.capacity} commands pending), "
                f"rejected {text!r}"
            )

    def _submit(self, command: Command) -> None:
        with self._stats_lock:
            self._statistics = dataclasses.replace(
                self._statistics, submissions=self._statistics.submissions + 1
            )

        logger.verbose(f"Command submitted: {command.show()}")
        self.events.publish(CommandSubmitted(self.clock.now(), command))
        self._pending.put_nowait(command)
