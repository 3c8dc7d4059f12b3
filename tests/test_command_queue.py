"""Tests for the command queue."""

import threading
import time
from datetime import datetime, timezone

import pytest

from printer_link.core.utils import QueueFullError
from printer_link.gcode.command import CommandStyle, compile_command
from printer_link.printer.command_queue import CommandQueue, CommandQueueStatistics
from printer_link.printer.events import CommandSubmitted, EventBus, OnlineStateChanged

from conftest import FakeClock


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def command_queue(bus):
    return CommandQueue(FakeClock(), bus, capacity=3)


class TestEnqueueCompile:
    """Tests for CommandQueue.enqueue_compile()."""

    def test_line_numbers_start_at_zero_and_advance(self, command_queue):
        first = command_queue.enqueue_compile("G28")
        second = command_queue.enqueue_compile("M105")

        assert first.text == "N0 G28"
        assert second.text == "N1 M105"
        assert command_queue.line_number == 2

    def test_without_line_does_not_advance_counter(self, command_queue):
        command = command_queue.enqueue_compile("M105", CommandStyle.WITHOUT_LINE)

        assert command.text == "M105"
        assert command_queue.line_number == 0

    def test_checksum_style(self, command_queue):
        command_queue.enqueue_compile("G28")
        command = command_queue.enqueue_compile("M115", CommandStyle.WITH_LINE_AND_CHECKSUM)

        assert command.text == "N1 M115*39"

    def test_full_queue_raises_immediately(self, command_queue):
        """Test that a full queue rejects without consuming a line number."""
        for text in ("G28", "G1 X1", "G1 X2"):
            command_queue.enqueue_compile(text)

        with pytest.raises(QueueFullError):
            command_queue.enqueue_compile("G1 X3")

        assert command_queue.line_number == 3
        assert command_queue.statistics().submissions == 3

    def test_publishes_command_submitted(self, bus, command_queue):
        seen: list = []
        bus.subscribe(seen.append)

        command = command_queue.enqueue_compile("G28")

        assert len(seen) == 1
        assert isinstance(seen[0], CommandSubmitted)
        assert seen[0].command == command

    def test_non_ascii_rejected_without_side_effects(self, bus, command_queue):
        seen: list = []
        bus.subscribe(seen.append)

        with pytest.raises(UnicodeEncodeError):
            command_queue.enqueue_compile("M117 200\u00b0C")

        assert command_queue.line_number == 0
        assert command_queue.pending_count == 0
        assert command_queue.statistics().submissions == 0
        assert seen == []


class TestEnqueue:
    def test_enqueue_precompiled(self, command_queue):
        command = compile_command(0, "M105", CommandStyle.WITHOUT_LINE)

        assert command_queue.enqueue(command) is command
        assert command_queue.statistics().submissions == 1
        assert command_queue.line_number == 0

    def test_enqueue_full_raises(self, command_queue):
        for _ in range(3):
            command_queue.enqueue(compile_command(0, "M105", CommandStyle.WITHOUT_LINE))

        with pytest.raises(QueueFullError):
            command_queue.enqueue(compile_command(0, "M105", CommandStyle.WITHOUT_LINE))


class TestPollAndReset:
    """Tests for the engine side of the queue."""

    def test_poll_is_fifo(self, command_queue):
        first = command_queue.enqueue_compile("G28")
        second = command_queue.enqueue_compile("M105")

        assert command_queue.poll(0.01) == first
        assert command_queue.poll(0.01) == second
        assert command_queue.poll(0.01) is None

    def test_reset_clears_fifo_and_counter_but_keeps_statistics(self, command_queue):
        command_queue.enqueue_compile("G28")
        command_queue.enqueue_compile("M105")
        command_queue.increment_errors()
        command_queue.increment_resends()

        command_queue.reset()

        assert command_queue.pending_count == 0
        assert command_queue.line_number == 0
        assert command_queue.statistics() == CommandQueueStatistics(
            submissions=2, errors=1, resends=1
        )
        assert command_queue.enqueue_compile("G28").text == "N0 G28"


class TestStatistics:
    def test_snapshots_are_immutable(self, command_queue):
        before = command_queue.statistics()
        command_queue.increment_errors()
        after = command_queue.statistics()

        assert before == CommandQueueStatistics()
        assert after.errors == 1
        with pytest.raises(AttributeError):
            after.errors = 5  # type: ignore[misc]

    def test_invalid_capacity(self, bus):
        with pytest.raises(ValueError):
            CommandQueue(FakeClock(), bus, capacity=0)

    def test_capacity(self, command_queue):
        assert command_queue.capacity == 3


class TestConcurrentSubmission:
    """Tests for submitting from event handlers while other threads submit."""

    def test_handler_submits_while_another_thread_submits(self, bus, command_queue):
        in_handler = threading.Event()
        other_started = threading.Event()
        errors: list[BaseException] = []

        def on_event(event):
            if isinstance(event, OnlineStateChanged):
                in_handler.set()
                other_started.wait(1.0)
                time.sleep(0.05)
                command_queue.enqueue_compile("M105", CommandStyle.WITHOUT_LINE)

        bus.subscribe(on_event)

        def publish():
            try:
                bus.publish(OnlineStateChanged(datetime.now(timezone.utc), True))
            except BaseException as e:
                errors.append(e)

        def submit():
            try:
                in_handler.wait(1.0)
                other_started.set()
                command_queue.enqueue_compile("G28")
            except BaseException as e:
                errors.append(e)

        threads = [
            threading.Thread(target=publish, daemon=True),
            threading.Thread(target=submit, daemon=True),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=2.0)

        assert not any(thread.is_alive() for thread in threads)
        assert errors == []
        assert command_queue.pending_count == 2
        assert command_queue.statistics().submissions == 2
