"""
Pydantic schemas for Score API responses.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

# =======================
# COMMON
# =======================

class BaseResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    timestamp_ms: int


class ErrorResponse(BaseResponse):
    success: bool = False
    error: Dict[str, Any]

# =======================
# 1. LEDGER
# =======================

class ScorePoint(BaseModel):
    sequence_number: int
    timestamp_ms: int
    delta: int
    cumulative_score: int


class PointsData(BaseModel):
    window: str
    count: int
    points: List[ScorePoint]


class PointsResponse(BaseResponse):
    data: PointsData


class StatsData(BaseModel):
    window: str
    count: int
    min_score: int
    max_score: int
    start_score: int
    end_score: int
    net_change: int
    positive_count: int
    negative_count: int
    current_score: int


class StatsResponse(BaseResponse):
    data: StatsData

# =======================
# 2. CANDLES
# =======================

class CandleModel(BaseModel):
    bucket_start_ms: int
    open: int
    high: int
    low: int
    close: int
    volume: int
    change: int
    change_percent: float


class CandleMetadata(BaseModel):
    last_update_ms: int
    total_records: int
    cache_used: bool


class CandlesData(BaseModel):
    bucket_kind: str
    bucket_size: int
    limit: int
    candles: List[CandleModel]
    current: Optional[CandleModel] = None
    metadata: CandleMetadata


class CandlesResponse(BaseResponse):
    data: CandlesData


class PriceChangeData(BaseModel):
    total_change: int
    total_change_percent: float
    max_gain: int
    max_loss: int
    positive_count: int
    negative_count: int
    avg_volume: float
    volatility: float
    win_rate: float


class PriceChangeResponse(BaseResponse):
    data: PriceChangeData


class TrendData(BaseModel):
    window: str
    period: str
    candles: List[CandleModel]
    current: Optional[CandleModel] = None


class TrendResponse(BaseResponse):
    data: TrendData


class IndicatorsData(BaseModel):
    ma5: List[Optional[float]]
    ma10: List[Optional[float]]
    ma20: List[Optional[float]]
    rsi: List[Optional[float]]


class IndicatorsResponse(BaseResponse):
    data: IndicatorsData

# =======================
# 3. SYSTEM
# =======================

class HealthResponse(BaseModel):
    status: str
    timestamp_ms: int
    version: str
    uptime_seconds: float = 0


class PublisherStatusModel(BaseModel):
    running: bool
    subscriber_count: int
    last_cycle_ms: Optional[int] = None
    cycles: int
    failed_cycles: int
    skipped_triggers: int


class StatusResponse(BaseModel):
    total_records: int
    last_sequence_number: Optional[int] = None
    publisher: Optional[PublisherStatusModel] = None
    metrics: Dict[str, Any]
    cache: Dict[str, Any]
