"""
Scheduling - Job Scheduler.

============================================================
PURPOSE
============================================================
Runs the operational hooks on their own triggers.

DEFAULT JOBS:
- cache-warmup      hourly
- metrics-reset     daily
- ledger-cleanup    daily (retention age from config)
- quality-audit     daily
- cache-sweep       every 5 minutes

Each job has its own non-overlapping runner. Hook calls are
synchronous and run in a worker thread so storage reads do not
stall the event loop. Errors are logged per run and never stop
the schedule.

============================================================
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from core.clock import ClockProtocol, SystemClock
from core.config import SchedulerConfig
from scheduling.hooks import OperationalHooks
from scheduling.runner import PeriodicRunner, RunnerStatus
from scheduling.triggers import IntervalTrigger, Trigger


logger = logging.getLogger(__name__)


TriggerFactory = Callable[[str, float], Trigger]


def interval_trigger_factory(name: str, interval_seconds: float) -> Trigger:
    return IntervalTrigger(interval_seconds)


class JobScheduler:
    """Named periodic jobs with start/stop and manual runs."""

    def __init__(
        self,
        clock: Optional[ClockProtocol] = None,
        trigger_factory: TriggerFactory = interval_trigger_factory,
    ):
        self._clock = clock or SystemClock()
        self._trigger_factory = trigger_factory
        self._runners: Dict[str, PeriodicRunner] = {}
        self._intervals: Dict[str, float] = {}
        self._started = False
        # Triggers are closed by stop(); a restart needs new ones
        self._triggers_closed = False

    @property
    def job_names(self) -> List[str]:
        return list(self._runners)

    def add_job(self, name: str, func: Callable[[], Any], interval_seconds: float) -> None:
        """Register a synchronous job; duplicate names are ignored."""
        if name in self._runners:
            logger.warning(f"Job {name} already registered, skipping")
            return

        async def run() -> None:
            started = self._clock.now_ms()
            logger.info(f"Job {name} starting")
            result = await asyncio.to_thread(func)
            suffix = f" ({result})" if isinstance(result, int) else ""
            logger.info(f"Job {name} finished in {self._clock.now_ms() - started}ms{suffix}")

        trigger = self._trigger_factory(name, interval_seconds)
        self._runners[name] = PeriodicRunner(name, run, trigger, self._clock)
        self._intervals[name] = interval_seconds
        logger.info(f"Registered job {name} every {interval_seconds}s")

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        for name, runner in self._runners.items():
            trigger = None
            if self._triggers_closed:
                trigger = self._trigger_factory(name, self._intervals[name])
            await runner.start(trigger)
        self._triggers_closed = False
        logger.info(f"Job scheduler started with {len(self._runners)} jobs")

    async def stop(self) -> None:
        """Stop every job; in-flight runs finish first."""
        if not self._started:
            return
        self._started = False
        await asyncio.gather(*(runner.stop() for runner in self._runners.values()))
        self._triggers_closed = True
        logger.info("Job scheduler stopped")

    async def run_job_now(self, name: str) -> bool:
        """
        Run a job immediately.

        Returns:
            False if the job is already running

        Raises:
            KeyError: unknown job name
        """
        runner = self._runners.get(name)
        if runner is None:
            raise KeyError(f"Unknown job: {name}")
        return await runner.run_now()

    def status(self) -> Dict[str, RunnerStatus]:
        return {name: runner.status() for name, runner in self._runners.items()}


def create_default_scheduler(
    hooks: OperationalHooks,
    config: Optional[SchedulerConfig] = None,
    clock: Optional[ClockProtocol] = None,
    trigger_factory: TriggerFactory = interval_trigger_factory,
) -> JobScheduler:
    """Scheduler preloaded with the standard operational jobs."""
    config = config or SchedulerConfig()
    scheduler = JobScheduler(clock, trigger_factory)
    scheduler.add_job("cache-warmup", hooks.warmup_cache, config.warmup_interval_seconds)
    scheduler.add_job("metrics-reset", hooks.reset_metrics, config.metrics_reset_interval_seconds)
    scheduler.add_job("ledger-cleanup", hooks.cleanup_older_than, config.cleanup_interval_seconds)
    scheduler.add_job("quality-audit", hooks.audit_recent_candles, config.audit_interval_seconds)
    scheduler.add_job("cache-sweep", hooks.sweep_cache, config.cache_sweep_interval_seconds)
    return scheduler
