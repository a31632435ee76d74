"""
Shared fixtures for the Block Score System tests.

============================================================
PURPOSE
============================================================
Deterministic building blocks: a MockClock pinned to a
day-aligned instant, an in-memory event store, and wired
ledger / cache / candle service instances.

No real timers are used anywhere in the suite.

============================================================
"""

import pytest

from candles.cache import CandleCache
from candles.service import CandleService
from core.clock import MockClock
from core.config import CandleConfig
from ledger.ledger import ScoreLedger
from ledger.store import InMemoryScoreEventStore
from monitoring.metrics import PerformanceMetrics

from tests.helpers import BASE_MS


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def clock():
    """Mock clock at BASE_MS."""
    return MockClock(BASE_MS)


@pytest.fixture
def store():
    return InMemoryScoreEventStore()


@pytest.fixture
def ledger(store, clock):
    return ScoreLedger(store, clock)


@pytest.fixture
def metrics():
    return PerformanceMetrics()


@pytest.fixture
def cache(clock):
    return CandleCache(clock, ttl_seconds=60, max_entries=50)


@pytest.fixture
def candle_config():
    return CandleConfig(bucket_size=20, bucket_period_ms=60_000)


@pytest.fixture
def candle_service(ledger, cache, clock, metrics, candle_config):
    return CandleService(ledger, cache, clock, metrics, candle_config)
