"""
Scheduling - Periodic Runner.

============================================================
PURPOSE
============================================================
Runs an async job each time its trigger fires, with two rules:

1. NO OVERLAP: if the previous run is still in flight when the
   trigger fires, that fire is skipped (counted, not queued)
2. GRACEFUL STOP: stop() closes the trigger and waits for the
   in-flight run to finish; runs are never cancelled mid-way

Job errors are logged and counted; the loop keeps going.

============================================================
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from core.clock import ClockProtocol, SystemClock
from scheduling.triggers import Trigger


logger = logging.getLogger(__name__)


Job = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class RunnerStatus:
    """Snapshot of one runner."""

    name: str
    started: bool
    is_running: bool
    last_run_ms: Optional[int]
    run_count: int
    error_count: int
    skip_count: int
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class PeriodicRunner:
    """Trigger-driven, non-overlapping job loop."""

    def __init__(
        self,
        name: str,
        job: Job,
        trigger: Trigger,
        clock: Optional[ClockProtocol] = None,
    ):
        self._name = name
        self._job = job
        self._trigger = trigger
        self._clock = clock or SystemClock()

        self._started = False
        self._loop_task: Optional[asyncio.Task] = None
        self._in_flight: Optional[asyncio.Task] = None

        self._last_run_ms: Optional[int] = None
        self._runs = 0
        self._errors = 0
        self._skips = 0
        self._last_error: Optional[str] = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_running(self) -> bool:
        """True while a run is in flight."""
        return self._in_flight is not None and not self._in_flight.done()

    # =========================================================
    # LIFECYCLE
    # =========================================================

    async def start(self, trigger: Optional[Trigger] = None) -> None:
        """Start the loop; pass a fresh trigger when restarting after stop()."""
        if self._started:
            return
        if trigger is not None:
            self._trigger = trigger
        self._started = True
        self._loop_task = asyncio.create_task(self._loop(), name=f"runner:{self._name}")
        logger.info(f"Runner '{self._name}' started")

    async def stop(self) -> None:
        """Stop firing and wait for the in-flight run to complete."""
        if not self._started:
            return
        self._started = False
        self._trigger.close()

        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None

        if self._in_flight is not None and not self._in_flight.done():
            logger.info(f"Runner '{self._name}' waiting for in-flight run")
            await self._in_flight
        self._in_flight = None
        logger.info(f"Runner '{self._name}' stopped")

    async def _loop(self) -> None:
        while self._started:
            fired = await self._trigger.wait()
            if not fired:
                break
            if self.is_running:
                self._skips += 1
                logger.warning(f"Runner '{self._name}' still busy, skipping trigger")
                continue
            self._in_flight = asyncio.create_task(self._execute(), name=f"run:{self._name}")

    # =========================================================
    # EXECUTION
    # =========================================================

    async def _execute(self) -> None:
        self._last_run_ms = self._clock.now_ms()
        self._runs += 1
        try:
            await self._job()
        except Exception as e:
            self._errors += 1
            self._last_error = str(e)
            logger.error(f"Runner '{self._name}' job failed: {e}", exc_info=True)

    async def run_now(self) -> bool:
        """
        Run the job immediately and wait for it.

        Returns:
            False if a run was already in flight (nothing started)
        """
        if self.is_running:
            self._skips += 1
            logger.warning(f"Runner '{self._name}' busy, manual run skipped")
            return False
        self._in_flight = asyncio.create_task(self._execute(), name=f"run:{self._name}")
        await self._in_flight
        return True

    def status(self) -> RunnerStatus:
        return RunnerStatus(
            name=self._name,
            started=self._started,
            is_running=self.is_running,
            last_run_ms=self._last_run_ms,
            run_count=self._runs,
            error_count=self._errors,
            skip_count=self._skips,
            last_error=self._last_error,
        )
