"""
Score API - Application.

============================================================
RESPONSIBILITY
============================================================
Thin HTTP/WebSocket adapter over the query surface.

- GET endpoints map 1:1 onto ScoreQueryService calls
- Structured failures: 400 for invalid queries, 500 for
  storage failures, never a partial payload
- /ws relays the broadcast channel to a client

No authentication here; it belongs to the deployment layer.
============================================================
"""

import asyncio
import logging
import time
from typing import Callable, List, Optional

from fastapi import FastAPI, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.schemas import (
    CandlesResponse,
    ErrorResponse,
    HealthResponse,
    IndicatorsResponse,
    PointsResponse,
    PriceChangeResponse,
    StatsResponse,
    StatusResponse,
    TrendResponse,
)
from candles.service import CandleService
from core import constants
from core.clock import ClockProtocol, SystemClock
from ledger.ledger import ScoreLedger
from query.service import QueryResult, ScoreQueryService
from realtime.channel import BroadcastChannel
from realtime.messages import MessageKind
from realtime.publisher import RealTimePublisher

logger = logging.getLogger(__name__)


_ERROR_STATUS = {
    "InvalidQueryError": 400,
    "StorageFailureError": 500,
}


def _parse_kinds(raw: Optional[str]) -> Optional[List[MessageKind]]:
    if not raw:
        return None
    kinds = []
    for part in raw.split(","):
        part = part.strip()
        if part:
            kinds.append(MessageKind(part))
    return kinds


def create_app(
    query_service: ScoreQueryService,
    ledger: ScoreLedger,
    candle_service: CandleService,
    channel: Optional[BroadcastChannel] = None,
    publisher: Optional[RealTimePublisher] = None,
    clock: Optional[ClockProtocol] = None,
    lifespan: Optional[Callable] = None,
) -> FastAPI:
    """
    Build the FastAPI application around already-wired components.

    `lifespan` lets the caller start and stop background services
    together with the server.
    """
    clock = clock or SystemClock()
    started_at = time.monotonic()

    app = FastAPI(
        title="Block Score API",
        description="Score trajectory and OHLCV candles over block score events",
        version=constants.SYSTEM_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def respond(result: QueryResult):
        now = clock.now_ms()
        if result.success:
            return {"success": True, "timestamp_ms": now, "data": result.data}
        status = _ERROR_STATUS.get(result.error_type, 500)
        body = ErrorResponse(timestamp_ms=now, message=result.error.get("message"), error=result.error)
        return JSONResponse(status_code=status, content=body.model_dump())

    # ============================================================
    # System Endpoints
    # ============================================================

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            timestamp_ms=clock.now_ms(),
            version=constants.SYSTEM_VERSION,
            uptime_seconds=time.monotonic() - started_at,
        )

    @app.get("/status", response_model=StatusResponse, tags=["Status"])
    def get_status():
        """Ledger size, publisher state, metrics and cache counters."""
        return StatusResponse(
            total_records=ledger.count(),
            last_sequence_number=ledger.last_sequence_number,
            publisher=publisher.status().to_dict() if publisher else None,
            metrics=candle_service.metrics.snapshot().to_dict(),
            cache=candle_service.cache.stats(),
        )

    # ============================================================
    # Ledger Endpoints
    # ============================================================

    @app.get(
        "/api/points/{window}",
        response_model=PointsResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
        tags=["Ledger"],
    )
    def get_points(window: str, limit: int = Query(constants.DEFAULT_POINTS_LIMIT)):
        return respond(query_service.get_points_in_window(window, limit))

    @app.get(
        "/api/stats/{window}",
        response_model=StatsResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
        tags=["Ledger"],
    )
    def get_stats(window: str):
        return respond(query_service.get_stats(window))

    @app.get(
        "/api/trend/{window}",
        response_model=TrendResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
        tags=["Ledger"],
    )
    def get_trend(window: str):
        return respond(query_service.get_trend(window))

    # ============================================================
    # Candle Endpoints
    # ============================================================

    @app.get(
        "/api/candles",
        response_model=CandlesResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
        tags=["Candles"],
    )
    def get_candles(
        kind: str = Query("count"),
        size: Optional[str] = Query(None, description="Events per candle, or a period such as 1h"),
        limit: int = Query(100),
        include_current: bool = Query(True),
    ):
        return respond(query_service.get_candles(kind, size, limit, include_current))

    @app.get(
        "/api/candles/stats",
        response_model=PriceChangeResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
        tags=["Candles"],
    )
    def get_price_change_stats(
        kind: str = Query("count"),
        size: Optional[str] = Query(None),
        limit: int = Query(50),
    ):
        return respond(query_service.get_price_change_stats(kind, size, limit))

    @app.get(
        "/api/candles/indicators",
        response_model=IndicatorsResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
        tags=["Candles"],
    )
    def get_indicators(
        kind: str = Query("count"),
        size: Optional[str] = Query(None),
        limit: int = Query(100),
    ):
        return respond(query_service.get_indicators(kind, size, limit))

    # ============================================================
    # Real-Time Stream
    # ============================================================

    @app.websocket("/ws")
    async def stream(websocket: WebSocket, kinds: Optional[str] = None):
        """Relay channel messages; ?kinds=score_delta,stats_update filters."""
        if channel is None:
            await websocket.close(code=1013)
            return
        try:
            wanted = _parse_kinds(kinds)
        except ValueError:
            await websocket.close(code=1003)
            return

        await websocket.accept()
        subscription = channel.subscribe(wanted)

        async def relay() -> None:
            while True:
                message = await subscription.get()
                await websocket.send_json(message.to_dict())

        async def listen() -> None:
            # Client frames are ignored; receive only detects disconnects
            while True:
                await websocket.receive_text()

        tasks = [asyncio.create_task(relay()), asyncio.create_task(listen())]
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            for task in done:
                error = task.exception()
                if error is not None and not isinstance(error, WebSocketDisconnect):
                    logger.error(f"WebSocket subscriber {subscription.subscription_id} failed: {error}")
        finally:
            channel.unsubscribe(subscription)

    return app
