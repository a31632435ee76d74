"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines all system-wide constants.

- Provides single source of truth for magic values
- Documents the meaning of each constant

============================================================
"""

# ============================================================
# SYSTEM CONSTANTS
# ============================================================

SYSTEM_NAME = "block-score-kline"
SYSTEM_VERSION = "0.1.0"

# ============================================================
# TIME CONSTANTS (MILLISECONDS)
# ============================================================

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR

# ============================================================
# LEDGER CONSTANTS
# ============================================================

# Cumulative score of an empty ledger
DEFAULT_BASELINE_SCORE = 0

# Only unit deltas are accepted
ALLOWED_DELTAS = (-1, 1)

# Cap used by statsSince in place of "unbounded"
DEFAULT_STATS_MAX_EVENTS = 100_000

# Default result cap for window point queries
DEFAULT_POINTS_LIMIT = 1000
MAX_POINTS_LIMIT = 10_000

# Retention window applied by the cleanup job
DEFAULT_RETENTION_DAYS = 90

# ============================================================
# CANDLE CONSTANTS
# ============================================================

# One block every ~3s -> 20 blocks form a nominal one-minute candle
DEFAULT_BUCKET_SIZE = 20
DEFAULT_BUCKET_PERIOD_MS = MS_PER_MINUTE

# Upper bound on events scanned for one time-bucketed query
DEFAULT_MAX_SCAN_EVENTS = 200_000

# Largest candle count a single query may ask for
MAX_CANDLE_LIMIT = 1000

# ============================================================
# CACHE CONSTANTS
# ============================================================

DEFAULT_CACHE_TTL_SECONDS = 60
DEFAULT_CACHE_MAX_ENTRIES = 50

# Limits pre-computed by the warmup job
DEFAULT_WARMUP_LIMITS = (50, 100, 200)
