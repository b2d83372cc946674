"""
Clock -- Deterministic time abstraction.

Responsibility:
    Provides an injectable clock so that service code never calls
    ``datetime.now()`` or ``date.today()`` directly.  Engines never read a
    clock at all: the assessment "as-of" date is an explicit argument.

Architecture position:
    Kernel > Domain -- SystemClock is the one sanctioned I/O boundary for time.
"""

from abc import ABC, abstractmethod
from datetime import UTC, date, datetime, timedelta


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        - ``now()`` returns a timezone-aware UTC ``datetime``.
        - ``today()`` returns the UTC calendar date of ``now()``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    def today(self) -> date:
        """Get the current UTC date."""
        return self.now().astimezone(UTC).date()


class SystemClock(Clock):
    """Production clock that returns actual system time."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value on repeated calls until ``advance()``
    or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)
        self._advance = timedelta(0)

    def now(self) -> datetime:
        return self._fixed_time + self._advance

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._fixed_time = time
        self._advance = timedelta(0)

    def advance(self, days: int = 0, seconds: int = 0) -> None:
        """Advance the clock by the given days and seconds."""
        self._advance += timedelta(days=days, seconds=seconds)
