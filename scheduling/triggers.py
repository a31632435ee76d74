"""
Scheduling - Triggers.

============================================================
PURPOSE
============================================================
Decouples WHEN a job runs from WHAT it does.

A trigger is awaited by a runner loop: wait() returns True each
time the job should fire and False once the trigger is closed.

- IntervalTrigger: fires every N seconds
- ManualTrigger: fires when fire() is called (operators, tests)

============================================================
"""

import asyncio
from abc import ABC, abstractmethod


class Trigger(ABC):
    """Source of fire signals for a runner loop."""

    @abstractmethod
    async def wait(self) -> bool:
        """Block until the next fire; False means the trigger was closed."""

    @abstractmethod
    def close(self) -> None:
        """Release any waiter; subsequent wait() calls return False."""


class IntervalTrigger(Trigger):
    """Fires every `interval_seconds`, optionally once right away."""

    def __init__(self, interval_seconds: float, fire_immediately: bool = False):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._interval = interval_seconds
        self._fire_immediately = fire_immediately
        self._closed = asyncio.Event()

    @property
    def interval_seconds(self) -> float:
        return self._interval

    async def wait(self) -> bool:
        if self._closed.is_set():
            return False
        if self._fire_immediately:
            self._fire_immediately = False
            return True
        try:
            await asyncio.wait_for(self._closed.wait(), timeout=self._interval)
        except asyncio.TimeoutError:
            return True
        return False

    def close(self) -> None:
        self._closed.set()


class ManualTrigger(Trigger):
    """Fires once per fire() call."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._pending = 0
        self._closed = False

    def fire(self) -> None:
        self._pending += 1
        self._event.set()

    async def wait(self) -> bool:
        while True:
            if self._closed:
                return False
            if self._pending:
                self._pending -= 1
                return True
            self._event.clear()
            await self._event.wait()

    def close(self) -> None:
        self._closed = True
        self._event.set()
