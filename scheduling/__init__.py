"""
Scheduling Package.

Trigger-driven, non-overlapping job runners and the operational
jobs of the score system (warmup, metrics reset, cleanup, audit,
cache sweep).
"""

from scheduling.runner import PeriodicRunner, RunnerStatus
from scheduling.triggers import IntervalTrigger, ManualTrigger, Trigger

__all__ = [
    "Trigger",
    "IntervalTrigger",
    "ManualTrigger",
    "PeriodicRunner",
    "RunnerStatus",
]
