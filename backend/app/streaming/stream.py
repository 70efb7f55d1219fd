"""HTTP surface for the dashboard: SSE message relay, status, and channel tracking."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, HTTPException, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from .buffer import MessageBuffer
from .factory import StreamServices
from .intents import (
    MalformedIntentError,
    MarketBookIntent,
    OhlcIntent,
    OrdersIntent,
    PricesIntent,
    SubscriptionIntent,
)
from .models import ChannelKind

logger = logging.getLogger(__name__)


class TrackSymbolsRequest(BaseModel):
    """Comma-separated text as typed in the form, or an explicit list."""

    symbols: str | list[str] = ""


class TrackOhlcRequest(BaseModel):
    """``timeframe,symbol,depth`` entries separated by ``|``."""

    ohlc: str = ""


class TrackOrdersRequest(BaseModel):
    enabled: bool = True


def create_stream_router(services: StreamServices) -> APIRouter:
    """Create the stream router bound to one set of services.

    This factory pattern lets us inject the services without globals.
    """
    router = APIRouter(prefix="/api/stream", tags=["streaming"])
    manager = services.manager
    buffer = services.buffer
    controller = services.controller

    @router.get("/messages")
    async def stream_messages(request: Request) -> StreamingResponse:
        """SSE endpoint relaying every buffered stream message, oldest first.

        Events look like:

            data: {"sequence": 42, "received_at": 1718000000.1, "payload": {...}}
        """
        return StreamingResponse(
            _generate_events(buffer, request),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering if proxied
            },
        )

    @router.get("/status")
    async def stream_status() -> dict:
        """Streaming and control-plane state, reported independently."""
        last = controller.last_results()
        return {
            "connection": manager.status.to_dict(),
            "control": {kind.value: (last[kind].to_dict() if kind in last else None) for kind in ChannelKind},
            "subscribers": len(services.registry),
            "buffered": len(buffer),
            "diagnostics": services.diagnostics.to_dict(),
        }

    @router.get("/buffer")
    async def get_buffer() -> dict:
        """Retained messages, newest first."""
        return {
            "capacity": buffer.capacity,
            "messages": [message.to_dict() for message in buffer.snapshot()],
        }

    @router.delete("/buffer")
    async def clear_buffer() -> dict:
        return {"cleared": buffer.clear()}

    @router.post("/connect")
    async def connect() -> dict:
        """Open the data-plane connection if none exists (manual reconnect)."""
        await manager.connect()
        return manager.status.to_dict()

    @router.post("/track/prices")
    async def track_prices(body: TrackSymbolsRequest) -> Response:
        intent = (
            PricesIntent.from_text(body.symbols)
            if isinstance(body.symbols, str)
            else PricesIntent.from_symbols(body.symbols)
        )
        return await _submit(intent, clear_on_success=True)

    @router.post("/track/mbook")
    async def track_market_book(body: TrackSymbolsRequest) -> Response:
        intent = (
            MarketBookIntent.from_text(body.symbols)
            if isinstance(body.symbols, str)
            else MarketBookIntent.from_symbols(body.symbols)
        )
        return await _submit(intent)

    @router.post("/track/ohlc")
    async def track_ohlc(body: TrackOhlcRequest) -> Response:
        try:
            intent = OhlcIntent.from_text(body.ohlc)
        except MalformedIntentError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        return await _submit(intent, clear_on_success=True)

    @router.post("/track/orders")
    async def track_orders(body: TrackOrdersRequest) -> Response:
        return await _submit(OrdersIntent(enabled=body.enabled))

    async def _submit(intent: SubscriptionIntent, clear_on_success: bool = False) -> Response:
        result = await controller.submit(intent)
        if not result.ok:
            return JSONResponse(status_code=502, content=result.to_dict())
        if clear_on_success:
            # A new price/OHLC selection starts a fresh message log
            buffer.clear()
        return JSONResponse(content=result.to_dict())

    return router


async def _generate_events(
    buffer: MessageBuffer,
    request: Request,
    interval: float = 0.5,
) -> AsyncGenerator[str, None]:
    """Async generator that yields SSE-formatted stream messages.

    Sends whatever arrived since the last pass every ``interval`` seconds.
    Stops when the client disconnects (detected via request.is_disconnected()).
    """
    # Tell the client to retry after 1 second if the connection drops
    yield "retry: 1000\n\n"

    last_version = -1
    last_sequence = 0
    client_ip = request.client.host if request.client else "unknown"
    logger.info("SSE client connected: %s", client_ip)

    try:
        while True:
            if await request.is_disconnected():
                logger.info("SSE client disconnected: %s", client_ip)
                break

            current_version = buffer.version
            if current_version != last_version:
                last_version = current_version
                for message in buffer.since(last_sequence):
                    last_sequence = message.sequence
                    yield f"data: {json.dumps(message.to_dict())}\n\n"

            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled for: %s", client_ip)
