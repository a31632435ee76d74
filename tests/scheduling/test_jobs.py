"""
Tests for the job scheduler and operational hooks.
"""

from unittest.mock import MagicMock

import pytest

from core.config import SchedulerConfig
from monitoring.auditor import QualityAuditor
from scheduling.hooks import OperationalHooks
from scheduling.jobs import JobScheduler, create_default_scheduler
from scheduling.triggers import ManualTrigger

from tests.helpers import BASE_MS, alternating, seed_ledger, wait_until


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def triggers():
    return {}


@pytest.fixture
def trigger_factory(triggers):
    def factory(name, interval_seconds):
        triggers[name] = ManualTrigger()
        return triggers[name]
    return factory


@pytest.fixture
def hooks(ledger, candle_service, metrics, clock):
    auditor = QualityAuditor(ledger, candle_service, metrics, clock)
    return OperationalHooks(ledger, candle_service, auditor, retention_ms=60_000)


# ============================================================
# SCHEDULER
# ============================================================

class TestJobScheduler:

    @pytest.mark.asyncio
    async def test_job_runs_on_trigger(self, clock, triggers, trigger_factory):
        func = MagicMock(return_value=3)
        scheduler = JobScheduler(clock, trigger_factory)
        scheduler.add_job("count", func, 60)

        await scheduler.start()
        triggers["count"].fire()
        await wait_until(lambda: func.call_count == 1)
        await scheduler.stop()

        assert scheduler.status()["count"].run_count == 1

    @pytest.mark.asyncio
    async def test_restart_after_stop(self, clock, triggers, trigger_factory):
        func = MagicMock(return_value=None)
        scheduler = JobScheduler(clock, trigger_factory)
        scheduler.add_job("job", func, 60)
        first_trigger = triggers["job"]

        await scheduler.start()
        await scheduler.stop()
        await scheduler.start()

        assert triggers["job"] is not first_trigger
        triggers["job"].fire()
        await wait_until(lambda: func.call_count == 1)
        await scheduler.stop()

        status = scheduler.status()["job"]
        assert status.run_count == 1
        assert status.started is False

    @pytest.mark.asyncio
    async def test_run_job_now(self, clock, trigger_factory):
        func = MagicMock(return_value=None)
        scheduler = JobScheduler(clock, trigger_factory)
        scheduler.add_job("once", func, 60)

        assert await scheduler.run_job_now("once") is True
        func.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_unknown_job_raises(self, clock, trigger_factory):
        scheduler = JobScheduler(clock, trigger_factory)

        with pytest.raises(KeyError):
            await scheduler.run_job_now("missing")

    @pytest.mark.asyncio
    async def test_failing_job_is_counted(self, clock, trigger_factory):
        func = MagicMock(side_effect=RuntimeError("store down"))
        scheduler = JobScheduler(clock, trigger_factory)
        scheduler.add_job("broken", func, 60)

        await scheduler.run_job_now("broken")

        status = scheduler.status()["broken"]
        assert status.error_count == 1
        assert status.last_error == "store down"

    def test_duplicate_names_ignored(self, clock, trigger_factory):
        scheduler = JobScheduler(clock, trigger_factory)
        scheduler.add_job("job", MagicMock(), 60)
        scheduler.add_job("job", MagicMock(), 30)

        assert scheduler.job_names == ["job"]

    def test_default_scheduler_jobs(self, hooks, clock, trigger_factory):
        scheduler = create_default_scheduler(hooks, SchedulerConfig(), clock, trigger_factory)

        assert scheduler.job_names == [
            "cache-warmup",
            "metrics-reset",
            "ledger-cleanup",
            "quality-audit",
            "cache-sweep",
        ]


# ============================================================
# HOOKS
# ============================================================

class TestOperationalHooks:

    def test_cleanup_uses_retention_and_invalidates_cache(self, ledger, hooks, cache, clock):
        seed_ledger(ledger, alternating(45))
        hooks.warmup_cache([5])
        assert len(cache) == 1
        clock.set_ms(BASE_MS + 90_000)

        removed = hooks.cleanup_older_than()

        assert removed == 10
        assert len(cache) == 0

    def test_cleanup_keeps_cache_when_nothing_removed(self, ledger, hooks, cache):
        seed_ledger(ledger, alternating(45))
        hooks.warmup_cache([5])

        assert hooks.cleanup_older_than() == 0
        assert len(cache) == 1

    def test_reset_metrics(self, ledger, hooks, metrics, clock):
        metrics.record_cache_hit()

        hooks.reset_metrics()

        assert metrics.snapshot().cache_hits == 0
        assert metrics.snapshot().last_reset_ms == clock.now_ms()

    def test_audit_and_sweep(self, ledger, hooks, cache, clock):
        seed_ledger(ledger, alternating(45))
        hooks.warmup_cache([5])
        clock.advance(120)

        assert hooks.audit_recent_candles().passed
        assert hooks.sweep_cache() == 1
