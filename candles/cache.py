"""
Candle Result Cache.

============================================================
PURPOSE
============================================================
Time-to-live cache in front of the candle aggregator.

- Entries valid while now - created_at < TTL
- Bounded FIFO: when full, the least-recently-inserted entry
  is evicted before a new key is added
- Advisory only: a miss always recomputes from the ledger

Only CLOSED candles are stored. The current candle is rebuilt
on every call.

============================================================
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Optional, Sequence, Tuple

from candles.models import Candle
from core import constants
from core.clock import ClockProtocol, SystemClock


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """One cached candle list."""

    key: Hashable
    payload: Tuple[Candle, ...]
    created_at_ms: int

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.created_at_ms


class CandleCache:
    """
    Thread-safe TTL cache of closed candle lists.

    Constructed per application; there is no module-level instance.
    """

    def __init__(
        self,
        clock: Optional[ClockProtocol] = None,
        ttl_seconds: float = constants.DEFAULT_CACHE_TTL_SECONDS,
        max_entries: int = constants.DEFAULT_CACHE_MAX_ENTRIES,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")

        self._clock = clock or SystemClock()
        self._ttl_ms = int(ttl_seconds * 1000)
        self._max_entries = max_entries
        self._entries: "OrderedDict[Hashable, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: Hashable) -> Optional[Tuple[Candle, ...]]:
        """Cached payload, or None if absent or expired (expired entries are dropped)."""
        now = self._clock.now_ms()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.age_ms(now) >= self._ttl_ms:
                del self._entries[key]
                self._misses += 1
                logger.debug(f"Cache entry expired: {key}")
                return None
            self._hits += 1
            return entry.payload

    def set(self, key: Hashable, payload: Sequence[Candle]) -> None:
        """Insert or overwrite; evict the oldest insertion when full."""
        entry = CacheEntry(key=key, payload=tuple(payload), created_at_ms=self._clock.now_ms())
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Cache full, evicted oldest entry: {evicted}")
            self._entries[key] = entry

    def invalidate_all(self) -> int:
        """Drop every entry; return how many were removed."""
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        logger.info(f"Candle cache invalidated ({removed} entries)")
        return removed

    def cleanup(self) -> int:
        """Purge expired entries; return how many were removed."""
        now = self._clock.now_ms()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.age_ms(now) >= self._ttl_ms]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Candle cache sweep removed {len(expired)} expired entries")
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "size": len(self._entries),
                "max_entries": self._max_entries,
                "ttl_ms": self._ttl_ms,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }
