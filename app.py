#!/usr/bin/env python3
"""
Block Score System - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Wires the ledger, candle service, publisher, auditor and job
scheduler into one controlled runtime.

- Compatible with PM2 process management
- Can be started, stopped, and restarted safely
- Handles SIGINT/SIGTERM gracefully: in-flight cycles and jobs
  finish before shutdown

============================================================
USAGE
============================================================
Direct execution:
    python app.py
    python app.py --config config.yaml --serve

With PM2:
    pm2 start app.py --interpreter python --name block-score -- --serve

Environment-based configuration:
    SCORE_DATABASE_URL=postgresql://... LOG_LEVEL=DEBUG python app.py

============================================================
"""

import argparse
import asyncio
import logging
import signal
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import uvicorn

from api.app import create_app
from candles.cache import CandleCache
from candles.service import CandleService
from core import constants
from core.clock import ClockProtocol, SystemClock
from core.config import AppConfig
from core.logging_config import setup_logging
from ingestion.service import IngestionService
from ledger.ledger import ScoreLedger
from ledger.store import ScoreEventStore, SqlScoreEventStore
from monitoring.auditor import QualityAuditor
from monitoring.metrics import PerformanceMetrics
from query.service import ScoreQueryService
from realtime.channel import BroadcastChannel
from realtime.publisher import RealTimePublisher
from scheduling.hooks import OperationalHooks
from scheduling.jobs import JobScheduler, create_default_scheduler
from storage.database import Database


logger = logging.getLogger(__name__)


# ============================================================
# MODULE WIRING
# ============================================================

@dataclass
class ScoreSystem:
    """All wired components of one running score system."""

    config: AppConfig
    clock: ClockProtocol
    database: Optional[Database]
    ledger: ScoreLedger
    cache: CandleCache
    metrics: PerformanceMetrics
    candles: CandleService
    channel: BroadcastChannel
    publisher: RealTimePublisher
    auditor: QualityAuditor
    hooks: OperationalHooks
    scheduler: JobScheduler
    ingestion: IngestionService
    query: ScoreQueryService

    async def start(self) -> None:
        """Start background services (publisher and jobs)."""
        await self.publisher.start()
        await self.scheduler.start()
        logger.info(f"{constants.SYSTEM_NAME} {constants.SYSTEM_VERSION} started")

    async def stop(self) -> None:
        """Stop background services; in-flight runs complete first."""
        await self.scheduler.stop()
        await self.publisher.stop()
        if self.database is not None:
            self.database.dispose()
        logger.info(f"{constants.SYSTEM_NAME} stopped")

    @asynccontextmanager
    async def lifespan(self, app=None):
        """FastAPI lifespan hook."""
        await self.start()
        try:
            yield
        finally:
            await self.stop()


def build_system(
    config: AppConfig,
    clock: Optional[ClockProtocol] = None,
    store: Optional[ScoreEventStore] = None,
) -> ScoreSystem:
    """
    Wire every component from configuration.

    Args:
        config: Application configuration
        clock: Time source (SystemClock by default)
        store: Event store; a SQL store on config.database when omitted
    """
    clock = clock or SystemClock()

    database = None
    if store is None:
        database = Database(config.database)
        database.initialize()
        store = SqlScoreEventStore(database)

    ledger = ScoreLedger(
        store,
        clock,
        baseline_score=config.ledger.baseline_score,
        stats_max_events=config.ledger.stats_max_events,
    )
    cache = CandleCache(clock, config.cache.ttl_seconds, config.cache.max_entries)
    metrics = PerformanceMetrics()
    candles = CandleService(ledger, cache, clock, metrics, config.candles)
    channel = BroadcastChannel(config.publisher.subscriber_queue_size)
    publisher = RealTimePublisher(ledger, candles, channel, clock, config.publisher)
    auditor = QualityAuditor(ledger, candles, metrics, clock, config.auditor)
    hooks = OperationalHooks(ledger, candles, auditor, config.ledger.retention_ms)

    return ScoreSystem(
        config=config,
        clock=clock,
        database=database,
        ledger=ledger,
        cache=cache,
        metrics=metrics,
        candles=candles,
        channel=channel,
        publisher=publisher,
        auditor=auditor,
        hooks=hooks,
        scheduler=create_default_scheduler(hooks, config.scheduler, clock),
        ingestion=IngestionService(ledger),
        query=ScoreQueryService(ledger, candles),
    )


# ============================================================
# CLI
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog=constants.SYSTEM_NAME,
        description="Block score ledger, candles and real-time publisher",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        metavar="PATH",
        help="YAML configuration file (default: environment variables)",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Also serve the HTTP/WebSocket API",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (overrides configuration)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        help="Logging format (overrides configuration)",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"%(prog)s {constants.SYSTEM_VERSION}",
    )
    return parser


def load_config(args: argparse.Namespace) -> AppConfig:
    config = AppConfig.from_yaml(args.config) if args.config else AppConfig.from_env()
    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format
    return config


# ============================================================
# MAIN FUNCTION
# ============================================================

async def run_application(args: argparse.Namespace) -> int:
    """
    Run the score system until SIGINT/SIGTERM.

    Returns:
        Exit code
    """
    config = load_config(args)
    setup_logging(config.log_level, config.log_format)

    try:
        system = build_system(config)
    except Exception as e:
        logger.error(f"Startup failed: {e}", exc_info=True)
        return 1

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop_event.set))

    await system.start()
    server_task = None
    try:
        if args.serve:
            api = create_app(
                system.query, system.ledger, system.candles,
                system.channel, system.publisher, system.clock,
            )
            server = uvicorn.Server(uvicorn.Config(
                api,
                host=config.api.host,
                port=config.api.port,
                log_level=config.log_level.lower(),
            ))
            # Signals are handled here, not by uvicorn
            server.install_signal_handlers = lambda: None
            server_task = asyncio.create_task(server.serve())
            logger.info(f"API listening on {config.api.host}:{config.api.port}")

        logger.info("Running (press Ctrl+C to stop)...")
        await stop_event.wait()
        logger.info("Shutdown requested")

        if server_task is not None:
            server.should_exit = True
            await server_task
        return 0
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        await system.stop()


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()
    return asyncio.run(run_application(args))


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
