"""
Core Module - System Clock.

============================================================
RESPONSIBILITY
============================================================
Provides a unified, testable clock abstraction for the scoring system.

- Ledger cutoffs, cache ages and candle slots all read this clock
- Enables deterministic testing of windows and TTL expiry
- Millisecond epoch timestamps are the unit of record

============================================================
DESIGN PRINCIPLES
============================================================
- Injected, never global
- UTC only
- Mockable for testing
- Thread-safe

============================================================
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional
import threading
import time


# ============================================================
# CLOCK PROTOCOL
# ============================================================

class ClockProtocol(ABC):
    """Abstract interface for system clock."""

    @abstractmethod
    def now(self) -> datetime:
        """Get current UTC datetime."""
        pass

    @abstractmethod
    def timestamp(self) -> float:
        """Get current Unix timestamp in seconds."""
        pass

    def now_ms(self) -> int:
        """Get current Unix timestamp in milliseconds."""
        return int(self.timestamp() * 1000)

    def format_iso(self, dt: Optional[datetime] = None) -> str:
        """Format datetime as ISO 8601."""
        dt = dt or self.now()
        return dt.isoformat()


# ============================================================
# SYSTEM CLOCK (PRODUCTION)
# ============================================================

class SystemClock(ClockProtocol):
    """
    Production clock using actual system time.

    All times are in UTC.
    """

    def now(self) -> datetime:
        """Get current UTC datetime."""
        return datetime.now(timezone.utc)

    def timestamp(self) -> float:
        """Get current Unix timestamp."""
        return time.time()


# ============================================================
# MOCK CLOCK (TESTING)
# ============================================================

class MockClock(ClockProtocol):
    """
    Mock clock for testing.

    Allows time manipulation for deterministic tests. Time is held
    in integer milliseconds so that slot arithmetic stays exact.
    """

    def __init__(self, initial_ms: Optional[int] = None):
        """
        Initialize mock clock.

        Args:
            initial_ms: Starting epoch milliseconds (defaults to current time)
        """
        if initial_ms is None:
            initial_ms = int(time.time() * 1000)
        self._ms = int(initial_ms)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        """Get current (mocked) datetime."""
        with self._lock:
            return datetime.fromtimestamp(self._ms / 1000, tz=timezone.utc)

    def timestamp(self) -> float:
        """Get current (mocked) timestamp."""
        with self._lock:
            return self._ms / 1000

    def now_ms(self) -> int:
        with self._lock:
            return self._ms

    def set_ms(self, value_ms: int) -> None:
        """Set the current time in epoch milliseconds."""
        with self._lock:
            self._ms = int(value_ms)

    def set_time(self, new_time: datetime) -> None:
        """Set the current time."""
        if new_time.tzinfo is None:
            new_time = new_time.replace(tzinfo=timezone.utc)
        self.set_ms(int(new_time.timestamp() * 1000))

    def advance(self, seconds: float = 0, **kwargs) -> None:
        """
        Advance time by the specified amount.

        Args:
            seconds: Number of seconds to advance
            **kwargs: Passed to timedelta (milliseconds, minutes, hours, days)
        """
        delta = timedelta(seconds=seconds, **kwargs)
        with self._lock:
            self._ms += int(delta.total_seconds() * 1000)


# ============================================================
# TIMESTAMP UTILITIES
# ============================================================

def ms_to_datetime(value_ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value_ms / 1000, tz=timezone.utc)


def datetime_to_ms(dt: datetime) -> int:
    """Convert a datetime to epoch milliseconds (naive values are UTC)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def floor_to_period(value_ms: int, period_ms: int) -> int:
    """Align a timestamp down to the start of its period slot."""
    return (value_ms // period_ms) * period_ms


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "ms_to_datetime",
    "datetime_to_ms",
    "floor_to_period",
]
