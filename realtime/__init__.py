"""
Real-Time Package.

Pushes score deltas, candle updates and stats updates to
subscribers through an explicit broadcast channel.
"""

from realtime.channel import BroadcastChannel, Subscription
from realtime.messages import CandleUpdate, Message, MessageKind, ScoreDelta, StatsUpdate
from realtime.publisher import PublisherStatus, RealTimePublisher

__all__ = [
    "BroadcastChannel",
    "Subscription",
    "MessageKind",
    "Message",
    "ScoreDelta",
    "CandleUpdate",
    "StatsUpdate",
    "RealTimePublisher",
    "PublisherStatus",
]
