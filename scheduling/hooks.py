"""
Scheduling - Operational Hooks.

Single idempotent calls consumed by the job scheduler and by
operators. None depends on another having run first.
"""

import logging
from typing import Iterable, Optional

from candles.service import CandleService
from ledger.ledger import ScoreLedger
from monitoring.auditor import AuditReport, QualityAuditor


logger = logging.getLogger(__name__)


class OperationalHooks:
    """Warmup, metrics reset, retention cleanup, audit and cache sweep."""

    def __init__(
        self,
        ledger: ScoreLedger,
        candle_service: CandleService,
        auditor: QualityAuditor,
        retention_ms: int,
    ):
        self._ledger = ledger
        self._candles = candle_service
        self._auditor = auditor
        self._retention_ms = retention_ms

    def warmup_cache(self, presets: Optional[Iterable[int]] = None) -> int:
        return self._candles.warmup(presets)

    def reset_metrics(self) -> None:
        self._candles.reset_metrics()
        logger.info("Performance metrics reset")

    def cleanup_older_than(self, max_age_ms: Optional[int] = None) -> int:
        """
        Apply retention; defaults to the configured retention age.

        Removing events moves count-bucket boundaries, so the
        candle cache is cleared whenever anything was deleted.
        """
        age = self._retention_ms if max_age_ms is None else max_age_ms
        removed = self._ledger.cleanup_older_than(age)
        if removed:
            self._candles.cache.invalidate_all()
        return removed

    def audit_recent_candles(self) -> AuditReport:
        return self._auditor.audit_recent_candles()

    def sweep_cache(self) -> int:
        return self._candles.sweep_cache()
