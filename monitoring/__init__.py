"""
Monitoring Package.

============================================================
PURPOSE
============================================================
Strictly observational: performance metrics of the candle path
and the quality auditor. Nothing here mutates the ledger.

The auditor lives in monitoring.auditor and is imported from
there directly.

============================================================
"""

from monitoring.metrics import MetricsSnapshot, PerformanceMetrics

__all__ = [
    "MetricsSnapshot",
    "PerformanceMetrics",
]
