"""
Candle Package.

OHLCV candles derived from the score ledger:
- models: value types and query parameters
- aggregator: pure count- and time-bucketing functions
- cache: TTL result cache for closed candles
- service: cache-checked candle queries
- indicators: moving averages and RSI
"""

from candles.cache import CandleCache
from candles.models import (
    BucketKind,
    Candle,
    CandlePeriod,
    CandleQuery,
    CandleSet,
    PriceChangeStats,
)
from candles.service import CandleService

__all__ = [
    "BucketKind",
    "Candle",
    "CandlePeriod",
    "CandleQuery",
    "CandleSet",
    "PriceChangeStats",
    "CandleCache",
    "CandleService",
]
