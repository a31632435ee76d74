"""
Monitoring - Quality Auditor.

============================================================
PURPOSE
============================================================
Periodic, read-only consistency checks over recently generated
candles and the ledger.

CHECKS:
- OHLC ordering: low <= min(open, close) <= max(open, close) <= high
- Fixed volume: closed count-bucketed candles hold exactly N events
- Ledger continuity: cumulative[i] = cumulative[i-1] + delta[i]
  for consecutive sequence numbers in a recent sample
- Query latency above a threshold

PRINCIPLES:
- Violations are logged as warnings and returned as values
- Never raises, never mutates state, never blocks normal operation

============================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from candles import aggregator
from candles.models import Candle
from candles.service import CandleService
from core.clock import ClockProtocol, SystemClock
from core.config import AuditorConfig
from core.exceptions import InvariantViolation
from ledger.ledger import ScoreLedger
from ledger.models import ScoreEvent
from monitoring.metrics import PerformanceMetrics


logger = logging.getLogger(__name__)


@dataclass
class AuditReport:
    """Outcome of one audit run."""

    checked_at_ms: int
    candles_checked: int = 0
    events_checked: int = 0
    violations: List[InvariantViolation] = field(default_factory=list)
    slow_query_ms: Optional[float] = None
    error: Optional[str] = None

    @property
    def passed(self) -> bool:
        return not self.violations and self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "checked_at_ms": self.checked_at_ms,
            "candles_checked": self.candles_checked,
            "events_checked": self.events_checked,
            "violations": [v.to_dict() for v in self.violations],
            "slow_query_ms": self.slow_query_ms,
            "error": self.error,
            "passed": self.passed,
        }


def check_candles(candles: Sequence[Candle], bucket_size: Optional[int]) -> List[InvariantViolation]:
    """OHLC ordering and, when bucket_size is given, fixed volume."""
    violations: List[InvariantViolation] = []
    for index, candle in enumerate(candles):
        details = {"index": index, "bucket_start_ms": candle.bucket_start_ms}
        if candle.high < candle.low:
            violations.append(InvariantViolation(
                "ohlc_order", f"Candle {index}: high below low", details,
            ))
        if candle.high < max(candle.open, candle.close):
            violations.append(InvariantViolation(
                "ohlc_order", f"Candle {index}: high below open or close", details,
            ))
        if candle.low > min(candle.open, candle.close):
            violations.append(InvariantViolation(
                "ohlc_order", f"Candle {index}: low above open or close", details,
            ))
        if bucket_size is not None and candle.volume != bucket_size:
            violations.append(InvariantViolation(
                "fixed_volume",
                f"Candle {index}: volume {candle.volume} != {bucket_size}",
                {**details, "volume": candle.volume},
            ))
    return violations


def check_continuity(events: Sequence[ScoreEvent]) -> List[InvariantViolation]:
    """Running-score continuity across consecutive sequence numbers."""
    violations: List[InvariantViolation] = []
    for previous, event in zip(events, events[1:]):
        if event.sequence_number != previous.sequence_number + 1:
            # Gaps are tolerated; continuity only holds between neighbours
            continue
        expected = previous.cumulative_score + event.delta
        if event.cumulative_score != expected:
            violations.append(InvariantViolation(
                "ledger_continuity",
                f"Event {event.sequence_number}: score {event.cumulative_score} != {expected}",
                {"sequence_number": event.sequence_number, "expected": expected},
            ))
    return violations


class QualityAuditor:
    """Out-of-band auditor of candles and ledger."""

    def __init__(
        self,
        ledger: ScoreLedger,
        candle_service: CandleService,
        metrics: PerformanceMetrics,
        clock: Optional[ClockProtocol] = None,
        config: Optional[AuditorConfig] = None,
    ):
        self._ledger = ledger
        self._candles = candle_service
        self._metrics = metrics
        self._clock = clock or SystemClock()
        self._config = config or AuditorConfig()
        self._last_report: Optional[AuditReport] = None

    @property
    def last_report(self) -> Optional[AuditReport]:
        return self._last_report

    def audit_recent_candles(self) -> AuditReport:
        """Run all checks once and log the outcome."""
        report = AuditReport(checked_at_ms=self._clock.now_ms())
        # Sampling below records nothing, so this is the last served query
        query_time = self._metrics.snapshot().query_time_ms
        try:
            candles = self._sample_closed_candles()
            report.candles_checked = len(candles)
            if not candles:
                logger.warning("Quality check: no closed candles to audit")
            report.violations.extend(check_candles(candles, self._candles.config.bucket_size))

            events = self._ledger.newest(self._config.ledger_sample_events)
            report.events_checked = len(events)
            report.violations.extend(check_continuity(events))
        except Exception as e:
            report.error = str(e)
            logger.error(f"Quality check failed: {e}", exc_info=True)

        for violation in report.violations:
            logger.warning(f"Quality check violation [{violation.check}]: {violation.message}")
        if report.candles_checked and not report.violations and report.error is None:
            logger.info(f"Quality check passed ({report.candles_checked} candles)")

        if query_time > self._config.latency_threshold_ms:
            report.slow_query_ms = query_time
            logger.warning(
                f"Quality check: query time {query_time:.1f}ms exceeds "
                f"{self._config.latency_threshold_ms:.0f}ms"
            )

        self._last_report = report
        return report

    def _sample_closed_candles(self) -> List[Candle]:
        """Newest closed count candles, aggregated straight from the ledger."""
        config = self._candles.config
        size = config.bucket_size
        partial_len = self._ledger.count() % size
        events = self._ledger.newest(self._config.sample_size * size + partial_len)
        complete = events[:max(len(events) - partial_len, 0)]
        complete = complete[len(complete) % size:]
        return aggregator.aggregate_by_count(complete, size, config.bucket_period_ms)
