"""
Clocks and timeout gates.

The engine never reads the system time directly. Every timestamp and every
deadline goes through a Clock, so tests can drive the state machine with a
manually advanced clock.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Source of timezone-aware 'now' values."""

    def now(self) -> datetime: ...


class SystemClock:
    """Clock backed by the system's UTC wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class TimeoutGate:
    """
    Deadline tracker over a Clock.

    Answers "has `duration` elapsed since the gate was last reset?". A new gate
    counts as freshly reset.
    """

    def __init__(self, clock: Clock, duration: float):
        """
        Args:
            clock: The clock to measure against.
            duration: Timeout duration in seconds.
        """
        self.clock = clock
        self.duration = timedelta(seconds=duration)
        self._last_reset = clock.now()

    def reset(self) -> None:
        self._last_reset = self.clock.now()

    def is_timed_out(self) -> bool:
        return self.clock.now() - self._last_reset >= self.duration

    def __repr__(self) -> str:
        return f"TimeoutGate(duration={self.duration.total_seconds()}s)"
