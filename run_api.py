#!/usr/bin/env python
"""
Score API Server Runner.

Serves the HTTP/WebSocket API with the publisher and scheduled
jobs running alongside, started and stopped with the server.

Usage:
    python run_api.py

Or with PM2:
    pm2 start run_api.py --interpreter python
"""

import logging
import sys

import uvicorn

from api.app import create_app
from app import build_system
from core.config import AppConfig
from core.logging_config import setup_logging


logger = logging.getLogger(__name__)


def main():
    """Run the API server."""
    config = AppConfig.from_env()
    setup_logging(config.log_level, config.log_format)

    logger.info(f"Starting Score API on {config.api.host}:{config.api.port}")

    try:
        system = build_system(config)
        app = create_app(
            system.query,
            system.ledger,
            system.candles,
            channel=system.channel,
            publisher=system.publisher,
            clock=system.clock,
            lifespan=system.lifespan,
        )
        uvicorn.run(
            app,
            host=config.api.host,
            port=config.api.port,
            log_level=config.log_level.lower(),
            access_log=True,
        )
    except Exception as e:
        logger.error(f"Failed to start API: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
