"""Control-plane HTTP API of the simulated bridge.

Mirrors the real bridge's ``/v1/track/*`` routes and body shapes, so the
SubscriptionController talks to it exactly as it would to the real thing
(in-process, through ``httpx.ASGITransport``).
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .simulator import SimulatedBridge


class TrackSymbolsBody(BaseModel):
    symbols: list[str] = []


class OhlcItem(BaseModel):
    time_frame: str
    symbol: str
    depth: int


class TrackOhlcBody(BaseModel):
    ohlc: list[OhlcItem] = []


class TrackOrdersBody(BaseModel):
    enabled: bool | str


def create_control_app(bridge: SimulatedBridge, prefix: str = "/v1") -> FastAPI:
    app = FastAPI(title="Simulated bridge control plane")

    @app.post(f"{prefix}/track/prices")
    async def track_prices(body: TrackSymbolsBody) -> dict:
        bridge.track_prices(body.symbols)
        return {"message": "Tracking prices", "symbols": body.symbols}

    @app.post(f"{prefix}/track/mbook")
    async def track_mbook(body: TrackSymbolsBody) -> dict:
        bridge.track_market_book(body.symbols)
        return {"message": "Tracking market book", "symbols": body.symbols}

    @app.post(f"{prefix}/track/ohlc")
    async def track_ohlc(body: TrackOhlcBody):
        bad = [item.symbol for item in body.ohlc if item.depth < 1]
        if bad:
            return JSONResponse(status_code=400, content={"message": f"Depth must be positive for {', '.join(bad)}"})
        bridge.track_ohlc([item.model_dump() for item in body.ohlc])
        return {"message": "Tracking OHLC", "count": len(body.ohlc)}

    @app.post(f"{prefix}/track/orders")
    async def track_orders(body: TrackOrdersBody):
        enabled = body.enabled
        if isinstance(enabled, str):
            if enabled.lower() not in ("true", "false"):
                return JSONResponse(status_code=400, content={"message": f"Invalid enabled flag: {enabled!r}"})
            enabled = enabled.lower() == "true"
        bridge.track_orders(enabled)
        return {"message": "Order events " + ("enabled" if enabled else "disabled")}

    return app
