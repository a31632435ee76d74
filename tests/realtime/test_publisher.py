"""
Tests for the Real-Time Publisher.

============================================================
PURPOSE
============================================================
Verify publish cycles:
1. ScoreDelta carries only the newest event, only when new
2. CandleUpdate carries current + recent closed candles
3. StatsUpdate is sent every cycle
4. Failures are logged, counted, and never stop the schedule

============================================================
"""

from unittest.mock import MagicMock

import pytest

from core.config import PublisherConfig
from core.exceptions import StorageFailureError
from realtime.channel import BroadcastChannel
from realtime.messages import MessageKind
from realtime.publisher import RealTimePublisher
from scheduling.triggers import ManualTrigger

from tests.helpers import BASE_MS, BLOCK_INTERVAL_MS, alternating, seed_ledger, wait_until


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def channel():
    return BroadcastChannel()


@pytest.fixture
def publisher(ledger, candle_service, channel, clock):
    return RealTimePublisher(ledger, candle_service, channel, clock, PublisherConfig(recent_candles=3))


def drain(subscription):
    messages = []
    message = subscription.get_nowait()
    while message is not None:
        messages.append(message)
        message = subscription.get_nowait()
    return messages


def seed_history(ledger, count=45):
    """Events ending just before the clock."""
    return seed_ledger(ledger, alternating(count), start_ms=BASE_MS - count * BLOCK_INTERVAL_MS)


# ============================================================
# CYCLE CONTENT
# ============================================================

class TestPublishCycle:

    @pytest.mark.asyncio
    async def test_first_cycle_sends_all_kinds(self, ledger, publisher, channel):
        events = seed_history(ledger)
        subscription = channel.subscribe()

        assert await publisher.publish_cycle() is True

        messages = drain(subscription)
        assert [m.kind for m in messages] == [
            MessageKind.SCORE_DELTA,
            MessageKind.CANDLE_UPDATE,
            MessageKind.STATS_UPDATE,
        ]
        delta, candles, stats = messages
        assert delta.sequence_number == events[-1].sequence_number
        assert candles.current.volume == 5
        assert len(candles.recent) == 2
        assert stats.stats.count == 45

    @pytest.mark.asyncio
    async def test_no_delta_without_new_events(self, ledger, publisher, channel, clock):
        seed_history(ledger)
        subscription = channel.subscribe()
        await publisher.publish_cycle()
        drain(subscription)

        clock.advance(30)
        await publisher.publish_cycle()

        kinds = [m.kind for m in drain(subscription)]
        assert MessageKind.SCORE_DELTA not in kinds
        assert MessageKind.STATS_UPDATE in kinds

    @pytest.mark.asyncio
    async def test_delta_carries_only_newest_event(self, ledger, publisher, channel, clock):
        seed_history(ledger)
        await publisher.publish_cycle()
        subscription = channel.subscribe([MessageKind.SCORE_DELTA])

        clock.advance(30)
        for seq in (46, 47, 48):
            ledger.append(seq, BASE_MS + seq * 100, 1)
        await publisher.publish_cycle()

        messages = drain(subscription)
        assert len(messages) == 1
        assert messages[0].sequence_number == 48

    @pytest.mark.asyncio
    async def test_empty_ledger_sends_stats_only(self, publisher, channel):
        subscription = channel.subscribe()

        await publisher.publish_cycle()

        messages = drain(subscription)
        assert [m.kind for m in messages] == [MessageKind.STATS_UPDATE]
        assert messages[0].stats.count == 0

    @pytest.mark.asyncio
    async def test_recent_candles_limited(self, ledger, publisher, channel):
        seed_history(ledger, count=200)
        subscription = channel.subscribe([MessageKind.CANDLE_UPDATE])

        await publisher.publish_cycle()

        update = drain(subscription)[0]
        assert len(update.recent) == 3
        assert update.current is None


# ============================================================
# FAILURES
# ============================================================

class TestCycleFailures:

    @pytest.mark.asyncio
    async def test_failure_is_counted_and_cycle_time_kept(self, ledger, channel, clock):
        candles = MagicMock()
        candles.config.bucket_size = 20
        candles.get_candles.side_effect = StorageFailureError("down", operation="count")
        publisher = RealTimePublisher(ledger, candles, channel, clock)
        subscription = channel.subscribe()

        assert await publisher.publish_cycle() is False

        status = publisher.status()
        assert status.failed_cycles == 1
        assert status.cycles == 0
        assert status.last_cycle_ms is None
        assert subscription.pending() == 0

    @pytest.mark.asyncio
    async def test_delta_sent_after_failed_cycle(self, ledger, channel, clock, candle_service):
        ledger.append(1, BASE_MS - BLOCK_INTERVAL_MS, 1)
        calls = []

        def fail_once(query, use_cache=True):
            calls.append(query)
            if len(calls) == 1:
                raise StorageFailureError("down", operation="count")
            return candle_service.get_candles(query, use_cache=use_cache)

        candles = MagicMock()
        candles.config = candle_service.config
        candles.get_candles.side_effect = fail_once
        publisher = RealTimePublisher(ledger, candles, channel, clock)
        subscription = channel.subscribe([MessageKind.SCORE_DELTA])

        assert await publisher.publish_cycle() is False
        clock.advance(seconds=1)
        assert await publisher.publish_cycle() is True

        deltas = drain(subscription)
        assert [d.sequence_number for d in deltas] == [1]
        assert publisher.last_cycle_ms == clock.now_ms()

    @pytest.mark.asyncio
    async def test_quiet_cycle_advances_cycle_time(self, publisher, clock):
        assert await publisher.publish_cycle() is True
        first = publisher.last_cycle_ms

        clock.advance(seconds=1)
        await publisher.publish_cycle()

        assert first is not None
        assert publisher.last_cycle_ms == first + 1000

    @pytest.mark.asyncio
    async def test_trigger_now_after_failure(self, ledger, channel, clock, candle_service):
        calls = []

        def flaky(query, use_cache=True):
            calls.append(query)
            if len(calls) == 1:
                raise StorageFailureError("down")
            return candle_service.get_candles(query, use_cache=use_cache)

        candles = MagicMock()
        candles.config = candle_service.config
        candles.get_candles.side_effect = flaky
        publisher = RealTimePublisher(ledger, candles, channel, clock)

        await publisher.trigger_now()
        await publisher.trigger_now()

        status = publisher.status()
        assert status.failed_cycles == 1
        assert status.cycles == 1


# ============================================================
# LIFECYCLE
# ============================================================

class TestLifecycle:

    @pytest.mark.asyncio
    async def test_trigger_driven_cycles(self, ledger, candle_service, channel, clock):
        seed_history(ledger)
        trigger = ManualTrigger()
        publisher = RealTimePublisher(ledger, candle_service, channel, clock, trigger=trigger)
        subscription = channel.subscribe([MessageKind.STATS_UPDATE])

        await publisher.start()
        assert publisher.status().running

        trigger.fire()
        await wait_until(lambda: subscription.pending() == 1)
        trigger.fire()
        await wait_until(lambda: subscription.pending() == 2)

        await publisher.stop()
        status = publisher.status()
        assert not status.running
        assert status.cycles == 2

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, publisher):
        await publisher.stop()
        assert not publisher.status().running
