"""
Real-Time Publisher.

============================================================
PURPOSE
============================================================
Periodically recomputes what changed and pushes it to the
broadcast channel.

CYCLE:
1. Compare the ledger tip timestamp with the last cycle time
2. Newer tip -> ScoreDelta for the tip only (no catch-up)
3. Recompute current + recent closed candles, bypassing the
   cache -> CandleUpdate
4. Recompute stats over a short recent window -> StatsUpdate
5. Advance the last cycle time to this cycle's start, whether
   or not there was new data

A failing cycle is logged and counted and leaves the last cycle
time alone, so the next cycle still sends the missed tip.
Cycles never overlap (see scheduling.runner).

============================================================
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from candles import aggregator
from candles.models import BucketKind, CandleQuery
from candles.service import CandleService
from core.clock import ClockProtocol, SystemClock
from core.config import PublisherConfig
from ledger.ledger import ScoreLedger
from realtime.channel import BroadcastChannel
from realtime.messages import CandleUpdate, Message, ScoreDelta, StatsUpdate
from scheduling.runner import PeriodicRunner
from scheduling.triggers import IntervalTrigger, Trigger


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublisherStatus:
    running: bool
    subscriber_count: int
    last_cycle_ms: Optional[int]
    cycles: int
    failed_cycles: int
    skipped_triggers: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class RealTimePublisher:
    """
    Delta publisher over the ledger and candle service.

    Constructed explicitly and started/stopped by the owner;
    the trigger defaults to an interval timer.
    """

    def __init__(
        self,
        ledger: ScoreLedger,
        candle_service: CandleService,
        channel: BroadcastChannel,
        clock: Optional[ClockProtocol] = None,
        config: Optional[PublisherConfig] = None,
        trigger: Optional[Trigger] = None,
    ):
        self._ledger = ledger
        self._candles = candle_service
        self._channel = channel
        self._clock = clock or SystemClock()
        self._config = config or PublisherConfig()
        self._trigger = trigger

        self._runner: Optional[PeriodicRunner] = None
        self._last_cycle_ms: Optional[int] = None
        self._cycles = 0
        self._failed_cycles = 0

    @property
    def channel(self) -> BroadcastChannel:
        return self._channel

    @property
    def last_cycle_ms(self) -> Optional[int]:
        return self._last_cycle_ms

    # =========================================================
    # LIFECYCLE
    # =========================================================

    async def start(self) -> None:
        if self._runner is not None:
            return
        trigger = self._trigger or IntervalTrigger(self._config.interval_seconds)
        self._runner = PeriodicRunner("realtime-publisher", self.publish_cycle, trigger, self._clock)
        await self._runner.start()
        logger.info(f"Real-time publisher started (interval {self._config.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the timer; an in-flight cycle is allowed to finish."""
        if self._runner is None:
            return
        await self._runner.stop()
        self._runner = None
        # A closed trigger cannot fire again
        self._trigger = None
        logger.info("Real-time publisher stopped")

    async def trigger_now(self) -> bool:
        """Run one cycle out of schedule; False if a cycle is in flight."""
        if self._runner is None:
            await self.publish_cycle()
            return True
        return await self._runner.run_now()

    # =========================================================
    # CYCLE
    # =========================================================

    async def publish_cycle(self) -> bool:
        """
        Run one publish cycle.

        Never raises; returns False when the cycle failed.
        """
        started_ms = self._clock.now_ms()
        try:
            messages = await asyncio.to_thread(self._compute_messages, started_ms)
            for message in messages:
                self._channel.publish(message)
            self._cycles += 1
            self._last_cycle_ms = started_ms
            logger.debug(f"Publish cycle emitted {len(messages)} messages")
            return True
        except Exception as e:
            self._failed_cycles += 1
            logger.error(f"Publish cycle failed: {e}", exc_info=True)
            return False

    def _compute_messages(self, started_ms: int) -> List[Message]:
        messages: List[Message] = []

        tip = self._ledger.latest()
        if tip is not None and (self._last_cycle_ms is None or tip.timestamp_ms > self._last_cycle_ms):
            messages.append(ScoreDelta(
                timestamp_ms=started_ms,
                sequence_number=tip.sequence_number,
                delta=tip.delta,
                cumulative_score=tip.cumulative_score,
            ))

        query = CandleQuery(
            BucketKind.COUNT,
            self._candles.config.bucket_size,
            self._config.candle_limit,
            include_current=True,
        )
        candle_set = self._candles.get_candles(query, use_cache=False)
        if candle_set.candles or candle_set.current is not None:
            recent = candle_set.candles[-self._config.recent_candles:] if self._config.recent_candles else []
            messages.append(CandleUpdate(
                timestamp_ms=started_ms,
                current=candle_set.current,
                recent=recent,
                bucket_size=query.bucket_size,
            ))

        window_ms = self._config.stats_window_ms
        messages.append(StatsUpdate(
            timestamp_ms=started_ms,
            window_ms=window_ms,
            stats=self._ledger.stats_since(started_ms - window_ms),
            price_change=aggregator.price_change_stats(candle_set.candles),
        ))
        return messages

    def status(self) -> PublisherStatus:
        runner_status = self._runner.status() if self._runner else None
        return PublisherStatus(
            running=self._runner is not None,
            subscriber_count=self._channel.subscriber_count,
            last_cycle_ms=self._last_cycle_ms,
            cycles=self._cycles,
            failed_cycles=self._failed_cycles,
            skipped_triggers=runner_status.skip_count if runner_status else 0,
        )
