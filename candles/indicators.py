"""
Candle Indicators.

Moving averages and RSI over the closes of closed candles.
Warm-up positions without enough history are None.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from candles.models import Candle


MA_PERIODS = (5, 10, 20)
RSI_PERIOD = 14


def moving_average(values: Sequence[float], period: int) -> List[Optional[float]]:
    """Simple moving average; the first period-1 positions are None."""
    result: List[Optional[float]] = []
    for i in range(len(values)):
        if i < period - 1:
            result.append(None)
        else:
            window = values[i - period + 1:i + 1]
            result.append(sum(window) / period)
    return result


def relative_strength_index(values: Sequence[float], period: int = RSI_PERIOD) -> List[Optional[float]]:
    """
    RSI over a trailing window of `period` changes.

    Uses plain averages of gains and losses inside the window
    (no Wilder smoothing). 100 when the window has no losses.
    """
    if len(values) < period + 1:
        return [None] * len(values)

    result: List[Optional[float]] = [None] * period
    for i in range(period, len(values)):
        gains = 0.0
        losses = 0.0
        for j in range(i - period + 1, i + 1):
            change = values[j] - values[j - 1]
            if change > 0:
                gains += change
            else:
                losses -= change
        if losses == 0:
            result.append(100.0)
        else:
            rs = gains / losses
            result.append(100 - 100 / (1 + rs))
    return result


@dataclass
class IndicatorSet:
    """Indicator series aligned with the candle list they came from."""

    ma5: List[Optional[float]] = field(default_factory=list)
    ma10: List[Optional[float]] = field(default_factory=list)
    ma20: List[Optional[float]] = field(default_factory=list)
    rsi: List[Optional[float]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"ma5": self.ma5, "ma10": self.ma10, "ma20": self.ma20, "rsi": self.rsi}


def compute_indicators(candles: Sequence[Candle]) -> IndicatorSet:
    closes = [float(c.close) for c in candles]
    if not closes:
        return IndicatorSet()
    ma5, ma10, ma20 = (moving_average(closes, p) for p in MA_PERIODS)
    return IndicatorSet(
        ma5=ma5,
        ma10=ma10,
        ma20=ma20,
        rsi=relative_strength_index(closes, RSI_PERIOD),
    )
