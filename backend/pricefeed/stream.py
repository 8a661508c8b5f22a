"""HTTP surface: SSE price stream, current quotes and history."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from .errors import FetchError
from .history import HistoricalSeriesClient, Timeframe
from .models import Symbol
from .service import DEFAULT_INTERVAL, LiveFeedService

logger = logging.getLogger(__name__)


def create_stream_router(
    service: LiveFeedService,
    history_client: HistoricalSeriesClient | None = None,
) -> APIRouter:
    """Create the price router bound to a LiveFeedService.

    This factory pattern lets us inject the service without globals.
    """
    router = APIRouter(tags=["prices"])

    @router.get("/api/stream/prices")
    async def stream_prices(
        request: Request,
        symbols: str = Query(..., description="Comma-separated tickers, e.g. btc,ETHUSDT"),
        interval: float = Query(DEFAULT_INTERVAL, description="Poll interval in seconds"),
    ) -> StreamingResponse:
        """SSE endpoint for live price snapshots.

        Each event carries the subscription's latest snapshot:

            data: {"bitcoin": {"value": 65000.0, "timestamp": 1707580800.0}, ...}

        Arguments are validated up front (400); the subscription itself is
        opened when streaming starts and released when it ends.
        """
        tickers = [t for t in symbols.split(",") if t.strip()]
        try:
            resolved, interval = service.validate_subscription(tickers, interval)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        return StreamingResponse(
            _generate_events(service, resolved, interval, request),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering if proxied
            },
        )

    @router.get("/api/prices/{symbol}")
    async def get_price(symbol: str) -> dict:
        """Latest known quote for a symbol."""
        quote = service.quote(symbol)
        if quote is None:
            raise HTTPException(status_code=404, detail=f"No price for {symbol}")
        return quote.to_dict()

    @router.get("/api/prices/{symbol}/history")
    async def get_history(symbol: str, timeframe: Timeframe = Timeframe.LIVE) -> dict:
        """Price history: the rolling buffer for ``live``, the provider series otherwise."""
        resolved = service.resolver.resolve(symbol)
        if timeframe is Timeframe.LIVE:
            points = service.history(resolved)
        elif history_client is None:
            raise HTTPException(status_code=404, detail="Historical series are not configured")
        else:
            try:
                points = await history_client.fetch(resolved, timeframe)
            except FetchError as e:
                logger.warning("History fetch failed for %s: %s", resolved, e)
                raise HTTPException(status_code=502, detail=str(e)) from e
        return {
            "symbol": resolved.canonical,
            "timeframe": timeframe.value,
            "points": [p.to_dict() for p in points],
        }

    return router


async def _generate_events(
    service: LiveFeedService,
    symbols: list[Symbol],
    interval: float,
    request: Request,
    heartbeat: float = 15.0,
) -> AsyncGenerator[str, None]:
    """Async generator that yields SSE-formatted snapshot events.

    The subscription lives exactly as long as the generator body, so it is
    released however the stream ends. Sends a comment line every
    ``heartbeat`` seconds without data so proxies keep the connection open
    and disconnects are noticed.
    """
    # Tell the client to retry after 1 second if the connection drops
    yield "retry: 1000\n\n"

    client_ip = request.client.host if request.client else "unknown"
    try:
        subscription = await service.subscribe(symbols, interval)
    except RuntimeError as e:
        logger.warning("SSE stream for %s not started: %s", client_ip, e)
        return
    logger.info("SSE client connected: %s (%r)", client_ip, subscription)

    try:
        while True:
            if await request.is_disconnected():
                logger.info("SSE client disconnected: %s", client_ip)
                break
            try:
                snapshot = await asyncio.wait_for(subscription.__anext__(), timeout=heartbeat)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            except StopAsyncIteration:
                break
            yield f"data: {json.dumps(snapshot.to_dict())}\n\n"
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled for: %s", client_ip)
    finally:
        await service.unsubscribe(subscription)
