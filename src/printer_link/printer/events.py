"""
Printer events and the event bus.

The engine reports everything it does as immutable, timestamped events on an
EventBus. The bus is a hot multicast stream: subscribers see the events
published after they subscribe, in one total order shared by all subscribers,
followed by a single completion signal when the printer shuts down.
"""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TypeVar

from printer_link.core.logging import get_logger
from printer_link.gcode.command import Command
from printer_link.gcode.temperature import Temperatures

logger = get_logger()


class EventKind(str, Enum):
    """The kinds of events published by printers."""

    ONLINE_STATE_CHANGED = "online-state-changed"
    COMMAND_SUBMITTED = "command-submitted"
    COMMAND_SUCCEEDED = "command-succeeded"
    COMMAND_FAILED = "command-failed"
    TEMPERATURES_CHANGED = "temperatures-changed"
    FATAL_ERROR = "fatal-error"

    def __str__(self) -> str:
        """Return the string value of the enum."""
        return self.value


@dataclass(frozen=True)
class PrinterEvent:
    """Base class of all printer events."""

    timestamp: datetime

    @property
    def kind(self) -> EventKind:
        raise NotImplementedError


@dataclass(frozen=True)
class OnlineStateChanged(PrinterEvent):
    """The printer went from offline to online, or vice-versa."""

    online: bool

    @property
    def kind(self) -> EventKind:
        return EventKind.ONLINE_STATE_CHANGED


@dataclass(frozen=True)
class CommandSubmitted(PrinterEvent):
    """A command was accepted by the command queue and awaits execution."""

    command: Command

    @property
    def kind(self) -> EventKind:
        return EventKind.COMMAND_SUBMITTED


@dataclass(frozen=True)
class CommandSucceeded(PrinterEvent):
    """The printer acknowledged a command without reporting any error."""

    command: Command

    @property
    def kind(self) -> EventKind:
        return EventKind.COMMAND_SUCCEEDED


@dataclass(frozen=True)
class CommandFailed(PrinterEvent):
    """
    The printer reported an error for a command.

    The command may still be resent and succeed later.
    """

    command: Command
    message: str

    @property
    def kind(self) -> EventKind:
        return EventKind.COMMAND_FAILED


@dataclass(frozen=True)
class TemperaturesChanged(PrinterEvent):
    """The printer reported new temperature readings."""

    temperatures: Temperatures

    @property
    def kind(self) -> EventKind:
        return EventKind.TEMPERATURES_CHANGED


@dataclass(frozen=True)
class FatalError(PrinterEvent):
    """The engine hit an unrecoverable error and is stopping."""

    cause: BaseException

    @property
    def kind(self) -> EventKind:
        return EventKind.FATAL_ERROR


EventHandler = Callable[[PrinterEvent], None]
CompletionHandler = Callable[[], None]

E = TypeVar("E", bound=PrinterEvent)


class Subscription:
    """A live registration on an EventBus."""

    def __init__(
        self,
        bus: EventBus,
        on_event: EventHandler | None,
        on_complete: CompletionHandler | None,
    ):
        self._bus = bus
        self.on_event = on_event
        self.on_complete = on_complete

    def dispose(self) -> None:
        """Stop receiving events. Safe to call more than once."""
        self._bus._unsubscribe(self)


class EventBus:
    """
    Ordered, multicast, completable stream of printer events.

    Publication is serialized by a re-entrant lock, so every subscriber
    observes the same total order even when events are published from more
    than one thread. A failing subscriber is logged and skipped.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._subscriptions: list[Subscription] = []
        self._completed = False

    @property
    def completed(self) -> bool:
        return self._completed

    def subscribe(
        self,
        on_event: EventHandler | None = None,
        on_complete: CompletionHandler | None = None,
    ) -> Subscription:
        """
        Register callbacks for future events.

        Subscribing to a completed bus only invokes on_complete.

        Args:
            on_event: Called with every event published after subscription.
            on_complete: Called once when the bus completes.

        Returns:
            The subscription, which can be disposed.
        """
        subscription = Subscription(self, on_event, on_complete)
        with self._lock:
            if not self._completed:
                self._subscriptions.append(subscription)
                return subscription

        if on_complete:
            self._notify_complete(subscription)
        return subscription

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """
        Hold the publication lock for the duration of the block.

        No other thread publishes meanwhile, while the holding thread, and the
        handlers it triggers, may still publish. Code that publishes while
        holding locks of its own takes this one first.
        """
        with self._lock:
            yield

    def stream(self) -> EventStream:
        """Subscribe a blocking, iterable view of the bus."""
        return EventStream(self)

    def publish(self, event: PrinterEvent) -> None:
        with self._lock:
            if self._completed:
                logger.verbose(f"Dropping event published after completion: {event!r}")
                return

            for subscription in list(self._subscriptions):
                if subscription.on_event is None:
                    continue
                try:
                    subscription.on_event(event)
                except Exception:
                    logger.exception(f"Event subscriber failed handling {event.kind}")

    def complete(self) -> None:
        """Complete the stream. Only the first call has any effect."""
        with self._lock:
            if self._completed:
                return
            self._completed = True
            subscriptions = list(self._subscriptions)
            self._subscriptions.clear()

            for subscription in subscriptions:
                self._notify_complete(subscription)

    def _notify_complete(self, subscription: Subscription) -> None:
        if subscription.on_complete is None:
            return
        try:
            subscription.on_complete()
        except Exception:
            logger.exception("Event subscriber failed handling completion")

    def _unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)


_COMPLETED = object()


class EventStream:
    """
    Blocking consumer of an EventBus.

    Buffers every event published after creation. Iterating yields events
    until the bus completes.
    """

    def __init__(self, bus: EventBus):
        self._queue: queue.Queue[object] = queue.Queue()
        self._done = False
        self._subscription = bus.subscribe(self._queue.put, lambda: self._queue.put(_COMPLETED))

    @property
    def done(self) -> bool:
        """True once the completion signal has been consumed."""
        return self._done

    def get(self, timeout: float | None = None) -> PrinterEvent | None:
        """
        Return the next event, or None once the bus has completed.

        Raises:
            TimeoutError: If nothing arrives within timeout seconds.
        """
        if self._done:
            return None
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError(f"No event within {timeout}s") from None

        if item is _COMPLETED:
            self._done = True
            return None
        return item  # type: ignore[return-value]

    def wait_for(
        self,
        event_type: type[E],
        timeout: float | None = None,
        predicate: Callable[[E], bool] | None = None,
    ) -> E:
        """
        Consume events until one of event_type (matching predicate) arrives.

        Raises:
            TimeoutError: If no matching event arrives within timeout seconds.
            EOFError: If the bus completes first.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            event = self.get(timeout=remaining)
            if event is None:
                raise EOFError(f"Event stream completed before {event_type.__name__}")
            if isinstance(event, event_type) and (predicate is None or predicate(event)):
                return event

    def wait_completed(self, timeout: float | None = None) -> list[PrinterEvent]:
        """
        Consume events until the bus completes, returning the ones skipped.

        Raises:
            TimeoutError: If the bus does not complete within timeout seconds.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        events: list[PrinterEvent] = []
        while True:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            event = self.get(timeout=remaining)
            if event is None:
                return events
            events.append(event)

    def close(self) -> None:
        self._subscription.dispose()

    def __iter__(self) -> Iterator[PrinterEvent]:
        while True:
            event = self.get()
            if event is None:
                return
            yield event
