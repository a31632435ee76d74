"""
Core Module - Configuration.

============================================================
CONFIGURABLE SCORE SYSTEM
============================================================

All tunables of the ledger, candle cache, publisher, auditor
and scheduled jobs live here.

Configuration can be loaded from:
- Default values
- Environment variables (SCORE_*, .env honoured)
- YAML config file

============================================================
"""

import os
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv

from core import constants
from core.exceptions import ConfigurationError


logger = logging.getLogger(__name__)


# =============================================================
# SECTIONS
# =============================================================


@dataclass
class DatabaseConfig:
    """Connection settings for the durable event store."""

    url: str = "sqlite:///./data/score_events.db"
    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: int = 30
    pool_recycle: int = 1800
    echo: bool = False


@dataclass
class LedgerConfig:
    """Score ledger settings."""

    baseline_score: int = constants.DEFAULT_BASELINE_SCORE
    """Cumulative score the first event builds on (non-zero when replaying)."""

    stats_max_events: int = constants.DEFAULT_STATS_MAX_EVENTS
    """Cap standing in for 'unbounded' in statsSince."""

    retention_days: int = constants.DEFAULT_RETENTION_DAYS
    """Age after which the cleanup job deletes events."""

    @property
    def retention_ms(self) -> int:
        return self.retention_days * constants.MS_PER_DAY


@dataclass
class CacheConfig:
    """Candle result cache settings."""

    ttl_seconds: float = constants.DEFAULT_CACHE_TTL_SECONDS
    max_entries: int = constants.DEFAULT_CACHE_MAX_ENTRIES

    @property
    def ttl_ms(self) -> int:
        return int(self.ttl_seconds * 1000)


@dataclass
class CandleConfig:
    """Candle aggregation settings."""

    bucket_size: int = constants.DEFAULT_BUCKET_SIZE
    """Events per count-bucketed candle."""

    bucket_period_ms: Optional[int] = constants.DEFAULT_BUCKET_PERIOD_MS
    """Nominal period used to align count-bucketed candle starts (None = raw timestamp)."""

    max_scan_events: int = constants.DEFAULT_MAX_SCAN_EVENTS
    """Upper bound on events scanned by one time-bucketed query."""

    warmup_limits: Tuple[int, ...] = constants.DEFAULT_WARMUP_LIMITS


@dataclass
class PublisherConfig:
    """Real-time publisher settings."""

    interval_seconds: float = 30.0
    candle_limit: int = 10
    """Closed candles recomputed each cycle."""

    recent_candles: int = 5
    """Closed candles included in each CandleUpdate."""

    stats_window_ms: int = constants.MS_PER_HOUR
    """Trailing window for the StatsUpdate payload."""

    subscriber_queue_size: int = 100


@dataclass
class AuditorConfig:
    """Quality auditor settings."""

    sample_size: int = 10
    latency_threshold_ms: float = 1000.0
    ledger_sample_events: int = 500


@dataclass
class SchedulerConfig:
    """Intervals of the operational jobs."""

    warmup_interval_seconds: float = 3600.0
    metrics_reset_interval_seconds: float = 86400.0
    cleanup_interval_seconds: float = 86400.0
    audit_interval_seconds: float = 86400.0
    cache_sweep_interval_seconds: float = 300.0


@dataclass
class ApiConfig:
    """HTTP adapter settings."""

    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False


# =============================================================
# AGGREGATE CONFIG
# =============================================================


@dataclass
class AppConfig:
    """Complete configuration of the score system."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    candles: CandleConfig = field(default_factory=CandleConfig)
    publisher: PublisherConfig = field(default_factory=PublisherConfig)
    auditor: AuditorConfig = field(default_factory=AuditorConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    log_level: str = "INFO"
    log_format: str = "text"

    def validate(self) -> None:
        """Reject values that would make the system misbehave."""
        checks: List[Tuple[str, bool]] = [
            ("cache.ttl_seconds", self.cache.ttl_seconds > 0),
            ("cache.max_entries", self.cache.max_entries > 0),
            ("candles.bucket_size", self.candles.bucket_size > 0),
            ("candles.max_scan_events", self.candles.max_scan_events > 0),
            ("ledger.stats_max_events", self.ledger.stats_max_events > 0),
            ("ledger.retention_days", self.ledger.retention_days > 0),
            ("publisher.interval_seconds", self.publisher.interval_seconds > 0),
            ("publisher.subscriber_queue_size", self.publisher.subscriber_queue_size > 0),
            ("auditor.sample_size", self.auditor.sample_size > 0),
        ]
        if self.candles.bucket_period_ms is not None:
            checks.append(("candles.bucket_period_ms", self.candles.bucket_period_ms > 0))

        for key, ok in checks:
            if not ok:
                raise ConfigurationError(f"Invalid configuration value for {key}", config_key=key)

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "AppConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - SCORE_DATABASE_URL (falls back to DATABASE_URL)
        - SCORE_DATABASE_ECHO
        - SCORE_BASELINE_SCORE
        - SCORE_RETENTION_DAYS
        - SCORE_CACHE_TTL_SECONDS
        - SCORE_CACHE_MAX_ENTRIES
        - SCORE_BUCKET_SIZE
        - SCORE_BUCKET_PERIOD_MS
        - SCORE_PUBLISH_INTERVAL_SECONDS
        - SCORE_AUDIT_LATENCY_THRESHOLD_MS
        - SCORE_API_HOST / SCORE_API_PORT
        - LOG_LEVEL / LOG_FORMAT
        """
        load_dotenv(dotenv_path)
        config = cls()

        url = os.getenv("SCORE_DATABASE_URL") or os.getenv("DATABASE_URL")
        if url:
            config.database.url = url
        if os.getenv("SCORE_DATABASE_ECHO"):
            config.database.echo = os.getenv("SCORE_DATABASE_ECHO", "").lower() in ("1", "true", "yes")

        if os.getenv("SCORE_BASELINE_SCORE"):
            config.ledger.baseline_score = int(os.getenv("SCORE_BASELINE_SCORE"))
        if os.getenv("SCORE_RETENTION_DAYS"):
            config.ledger.retention_days = int(os.getenv("SCORE_RETENTION_DAYS"))

        if os.getenv("SCORE_CACHE_TTL_SECONDS"):
            config.cache.ttl_seconds = float(os.getenv("SCORE_CACHE_TTL_SECONDS"))
        if os.getenv("SCORE_CACHE_MAX_ENTRIES"):
            config.cache.max_entries = int(os.getenv("SCORE_CACHE_MAX_ENTRIES"))

        if os.getenv("SCORE_BUCKET_SIZE"):
            config.candles.bucket_size = int(os.getenv("SCORE_BUCKET_SIZE"))
        if os.getenv("SCORE_BUCKET_PERIOD_MS"):
            raw = os.getenv("SCORE_BUCKET_PERIOD_MS", "")
            config.candles.bucket_period_ms = None if raw.lower() == "none" else int(raw)

        if os.getenv("SCORE_PUBLISH_INTERVAL_SECONDS"):
            config.publisher.interval_seconds = float(os.getenv("SCORE_PUBLISH_INTERVAL_SECONDS"))

        if os.getenv("SCORE_AUDIT_LATENCY_THRESHOLD_MS"):
            config.auditor.latency_threshold_ms = float(os.getenv("SCORE_AUDIT_LATENCY_THRESHOLD_MS"))

        if os.getenv("SCORE_API_HOST"):
            config.api.host = os.getenv("SCORE_API_HOST")
        if os.getenv("SCORE_API_PORT"):
            config.api.port = int(os.getenv("SCORE_API_PORT"))

        config.log_level = os.getenv("LOG_LEVEL", config.log_level)
        config.log_format = os.getenv("LOG_FORMAT", config.log_format)

        config.validate()
        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "AppConfig":
        """Load configuration from YAML file."""
        import yaml

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        config = cls()
        sections = {
            "database": config.database,
            "ledger": config.ledger,
            "cache": config.cache,
            "candles": config.candles,
            "publisher": config.publisher,
            "auditor": config.auditor,
            "scheduler": config.scheduler,
            "api": config.api,
        }
        for name, values in data.items():
            section = sections.get(name)
            if section is None:
                if name in ("log_level", "log_format"):
                    setattr(config, name, values)
                    continue
                logger.warning(f"Ignoring unknown config section: {name}")
                continue
            for key, value in (values or {}).items():
                if not hasattr(section, key):
                    raise ConfigurationError(
                        f"Unknown configuration key {name}.{key}",
                        config_key=f"{name}.{key}",
                    )
                if key == "warmup_limits":
                    value = tuple(value)
                setattr(section, key, value)

        config.validate()
        logger.info(f"Loaded configuration from {path}")
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)
