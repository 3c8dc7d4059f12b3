"""Shared fixtures: a scripted transport and a manually advanced clock."""

import threading
import time
from collections import deque
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest

from printer_link.core.config import (
    ENV_CONFIG_FILE,
    ENV_PRINTER_OFFLINE_TIMEOUT,
    ENV_PRINTER_ONLINE_TIMEOUT,
    ENV_PRINTER_QUEUE_CAPACITY,
    ENV_SERIAL_BAUD_RATE,
    ENV_SERIAL_DEV_PATH,
    ENV_SERIAL_LOG_FILE,
    ENV_SERIAL_USB_ID,
)
from printer_link.printer.printer import Printer

EVENT_TIMEOUT = 5.0  # seconds


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def tick(self, seconds: float) -> None:
        with self._lock:
            self._now += timedelta(seconds=seconds)


class FakeTransport:
    """
    Scripted LineTransport.

    Lines queued with add_line() are returned by read_line() in order; an
    exception queued with add_failure() is raised instead. An empty script
    reads as None. Every written line is recorded in `writes`.
    """

    def __init__(self, read_delay: float = 0.001):
        self.writes: list[str] = []
        self.reads = 0
        self.closed = False
        self.on_read: Callable[["FakeTransport"], None] | None = None
        self.on_write: Callable[["FakeTransport", str], None] | None = None
        self._script: deque = deque()
        self._lock = threading.Lock()
        self._read_delay = read_delay

    def add_line(self, *lines: str) -> None:
        with self._lock:
            self._script.extend(lines)

    def add_failure(self, error: Exception) -> None:
        with self._lock:
            self._script.append(error)

    def pending(self) -> int:
        with self._lock:
            return len(self._script)

    def read_line(self) -> str | None:
        time.sleep(self._read_delay)
        self.reads += 1
        if self.on_read:
            self.on_read(self)

        with self._lock:
            if not self._script:
                return None
            item = self._script.popleft()

        if isinstance(item, Exception):
            raise item
        return item

    def write_line(self, text: str) -> None:
        with self._lock:
            self.writes.append(text)
        if self.on_write:
            self.on_write(self, text)

    def close(self) -> None:
        self.closed = True

    def __repr__(self) -> str:
        return "FakeTransport()"


def wait_until(condition: Callable[[], bool], timeout: float = EVENT_TIMEOUT) -> bool:
    """Poll condition until it holds or timeout seconds pass."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.005)
    return condition()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the caller's environment out of configuration loading."""
    for name in (
        ENV_CONFIG_FILE,
        ENV_PRINTER_OFFLINE_TIMEOUT,
        ENV_PRINTER_ONLINE_TIMEOUT,
        ENV_PRINTER_QUEUE_CAPACITY,
        ENV_SERIAL_BAUD_RATE,
        ENV_SERIAL_DEV_PATH,
        ENV_SERIAL_LOG_FILE,
        ENV_SERIAL_USB_ID,
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def printer(transport, clock):
    """An unstarted printer over the fake transport; closed after the test."""
    printer = Printer(transport, clock=clock, close_timeout=5000)
    yield printer
    printer.close()
