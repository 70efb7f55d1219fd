"""In-process stand-in for the MT5 bridge, used when no bridge host is configured."""

from __future__ import annotations

import asyncio
import json
import logging
import math
import random
import time
from collections import deque
from collections.abc import AsyncIterator, Iterable

import numpy as np

from .interface import StreamTransport
from .seed_prices import (
    CORRELATION_GROUPS,
    CROSS_GROUP_CORR,
    DEFAULT_DIGITS,
    DEFAULT_PARAMS,
    GOLD_CORR,
    INTRA_USD_QUOTE_CORR,
    INTRA_YEN_CORR,
    PRICE_DIGITS,
    SEED_PRICES,
    SYMBOL_PARAMS,
)

logger = logging.getLogger(__name__)


def price_digits(symbol: str) -> int:
    for marker, digits in PRICE_DIGITS.items():
        if marker in symbol:
            return digits
    return DEFAULT_DIGITS


class GBMSimulator:
    """Geometric Brownian Motion simulator for correlated FX quotes.

    Math:
        S(t+dt) = S(t) * exp((mu - sigma^2/2) * dt + sigma * sqrt(dt) * Z)

    FX trades around the clock five days a week, so a year is taken as
    260 days * 24h. A 500ms tick is then dt ~= 2.2e-8.
    """

    TRADING_SECONDS_PER_YEAR = 260 * 24 * 3600
    DEFAULT_DT = 0.5 / TRADING_SECONDS_PER_YEAR

    def __init__(
        self,
        symbols: Iterable[str] = (),
        dt: float = DEFAULT_DT,
        event_probability: float = 0.001,
    ) -> None:
        self._dt = dt
        self._event_prob = event_probability

        self._symbols: list[str] = []
        self._prices: dict[str, float] = {}
        self._params: dict[str, dict[str, float]] = {}
        self._cholesky: np.ndarray | None = None

        for symbol in symbols:
            self._add_symbol_internal(symbol)
        self._rebuild_cholesky()

    # --- Public API ---

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    def step(self) -> dict[str, float]:
        """Advance every symbol by one tick. Returns {symbol: new_mid}."""
        n = len(self._symbols)
        if n == 0:
            return {}

        z = np.random.standard_normal(n)
        if self._cholesky is not None:
            z = self._cholesky @ z

        result: dict[str, float] = {}
        for i, symbol in enumerate(self._symbols):
            mu = self._params[symbol]["mu"]
            sigma = self._params[symbol]["sigma"]
            drift = (mu - 0.5 * sigma**2) * self._dt
            diffusion = sigma * math.sqrt(self._dt) * z[i]
            self._prices[symbol] *= math.exp(drift + diffusion)

            # Occasional news spike
            if random.random() < self._event_prob:
                shock = random.uniform(0.002, 0.01) * random.choice([-1, 1])
                self._prices[symbol] *= 1 + shock
                logger.debug("Simulated spike on %s: %+.2f%%", symbol, shock * 100)

            result[symbol] = round(self._prices[symbol], price_digits(symbol))
        return result

    def add_symbol(self, symbol: str) -> None:
        if symbol in self._prices:
            return
        self._add_symbol_internal(symbol)
        self._rebuild_cholesky()

    def remove_symbol(self, symbol: str) -> None:
        if symbol not in self._prices:
            return
        self._symbols.remove(symbol)
        del self._prices[symbol]
        del self._params[symbol]
        self._rebuild_cholesky()

    def get_price(self, symbol: str) -> float | None:
        return self._prices.get(symbol)

    # --- Internals ---

    def _add_symbol_internal(self, symbol: str) -> None:
        if symbol in self._prices:
            return
        self._symbols.append(symbol)
        self._prices[symbol] = SEED_PRICES.get(symbol, random.uniform(0.5, 2.0))
        self._params[symbol] = SYMBOL_PARAMS.get(symbol, dict(DEFAULT_PARAMS))

    def _rebuild_cholesky(self) -> None:
        n = len(self._symbols)
        if n <= 1:
            self._cholesky = None
            return

        corr = np.eye(n)
        for i in range(n):
            for j in range(i + 1, n):
                rho = self._pairwise_correlation(self._symbols[i], self._symbols[j])
                corr[i, j] = rho
                corr[j, i] = rho
        self._cholesky = np.linalg.cholesky(corr)

    @staticmethod
    def _pairwise_correlation(s1: str, s2: str) -> float:
        if s1 == "XAUUSD" or s2 == "XAUUSD":
            return GOLD_CORR
        for group, rho in (("usd_quote", INTRA_USD_QUOTE_CORR), ("yen", INTRA_YEN_CORR)):
            members = CORRELATION_GROUPS[group]
            if s1 in members and s2 in members:
                return rho
        return CROSS_GROUP_CORR


class SimulatedBridge:
    """Emits price, market-book and OHLC frames for whatever is being tracked.

    Control-plane calls (see sim_control.create_control_app) replace the
    tracked set for a channel, just like the real bridge. Every attached
    SimulatorTransport receives every frame as a JSON string.
    """

    TICKS_PER_BAR = 10
    HISTORY_TICKS = 1000
    BOOK_LEVELS = 5

    def __init__(
        self,
        update_interval: float = 0.5,
        event_probability: float = 0.001,
        spread_points: int = 2,
    ) -> None:
        self._interval = update_interval
        self._spread_points = spread_points
        self._sim = GBMSimulator(event_probability=event_probability)
        self._history: dict[str, deque[float]] = {}

        self._price_symbols: list[str] = []
        self._book_symbols: list[str] = []
        self._ohlc: list[dict] = []
        self._orders_enabled = False

        self._queues: set[asyncio.Queue] = set()
        self._task: asyncio.Task | None = None

    # --- Control plane ---

    def track_prices(self, symbols: list[str]) -> None:
        self._price_symbols = list(symbols)
        self._sync_symbols()
        logger.info("Simulated bridge: tracking prices for %s", self._price_symbols)

    def track_market_book(self, symbols: list[str]) -> None:
        self._book_symbols = list(symbols)
        self._sync_symbols()
        logger.info("Simulated bridge: tracking market book for %s", self._book_symbols)

    def track_ohlc(self, entries: list[dict]) -> None:
        self._ohlc = [dict(entry) for entry in entries]
        self._sync_symbols()
        logger.info("Simulated bridge: tracking %d OHLC series", len(self._ohlc))

    def track_orders(self, enabled: bool) -> None:
        # The simulator never trades, so enabling order events produces no frames
        self._orders_enabled = enabled
        logger.info("Simulated bridge: order events %s", "enabled" if enabled else "disabled")

    def tracked(self) -> dict:
        return {
            "prices": list(self._price_symbols),
            "mbook": list(self._book_symbols),
            "ohlc": [dict(entry) for entry in self._ohlc],
            "orders": self._orders_enabled,
        }

    # --- Data plane ---

    def attach(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.add(queue)
        return queue

    def detach(self, queue: asyncio.Queue) -> None:
        self._queues.discard(queue)

    @property
    def listeners(self) -> int:
        return len(self._queues)

    async def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self._run_loop(), name="simulated-bridge")
        logger.info("Simulated bridge started")

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        # Close every attached stream cleanly
        for queue in list(self._queues):
            queue.put_nowait(None)
        self._queues.clear()
        logger.info("Simulated bridge stopped")

    def step(self) -> list[dict]:
        """Advance the market one tick and build the frames for tracked channels."""
        now = time.time()
        mids = self._sim.step()
        for symbol, mid in mids.items():
            self._history.setdefault(symbol, deque(maxlen=self.HISTORY_TICKS)).append(mid)

        frames: list[dict] = []
        for symbol in self._price_symbols:
            if symbol in mids:
                bid, ask = self._quote(symbol, mids[symbol])
                frames.append({"event": "price", "symbol": symbol, "bid": bid, "ask": ask, "time": now})
        for symbol in self._book_symbols:
            if symbol in mids:
                frames.append({"event": "mbook", "symbol": symbol, "book": self._book(symbol, mids[symbol]), "time": now})
        for entry in self._ohlc:
            symbol = entry["symbol"]
            if symbol in mids:
                frames.append(
                    {
                        "event": "ohlc",
                        "symbol": symbol,
                        "time_frame": entry["time_frame"],
                        "rates": self._bars(symbol, entry["depth"]),
                        "time": now,
                    }
                )
        return frames

    def publish(self, frames: list[dict]) -> None:
        for frame in frames:
            raw = json.dumps(frame)
            for queue in self._queues:
                queue.put_nowait(raw)

    # --- Internals ---

    async def _run_loop(self) -> None:
        while True:
            try:
                self.publish(self.step())
            except Exception:
                logger.exception("Simulated bridge step failed")
            await asyncio.sleep(self._interval)

    def _sync_symbols(self) -> None:
        wanted = set(self._price_symbols) | set(self._book_symbols) | {entry["symbol"] for entry in self._ohlc}
        for symbol in self._sim.symbols:
            if symbol not in wanted:
                self._sim.remove_symbol(symbol)
                self._history.pop(symbol, None)
        for symbol in sorted(wanted):
            self._sim.add_symbol(symbol)

    def _point(self, symbol: str) -> float:
        return 10 ** -price_digits(symbol)

    def _quote(self, symbol: str, mid: float) -> tuple[float, float]:
        digits = price_digits(symbol)
        half = self._spread_points * self._point(symbol) / 2
        return round(mid - half, digits), round(mid + half, digits)

    def _book(self, symbol: str, mid: float) -> list[dict]:
        digits = price_digits(symbol)
        bid, ask = self._quote(symbol, mid)
        point = self._point(symbol)
        levels = []
        for level in range(self.BOOK_LEVELS):
            volume = round(random.uniform(0.5, 5.0) * (level + 1), 2)
            levels.append({"type": "sell", "price": round(ask + level * point, digits), "volume": volume})
            levels.append({"type": "buy", "price": round(bid - level * point, digits), "volume": volume})
        return levels

    def _bars(self, symbol: str, depth: int) -> list[dict]:
        ticks = list(self._history.get(symbol, ()))[-depth * self.TICKS_PER_BAR :]
        bars = []
        for start in range(0, len(ticks), self.TICKS_PER_BAR):
            chunk = ticks[start : start + self.TICKS_PER_BAR]
            bars.append({"open": chunk[0], "high": max(chunk), "low": min(chunk), "close": chunk[-1]})
        return bars


class SimulatorTransport(StreamTransport):
    """StreamTransport fed directly by a SimulatedBridge."""

    def __init__(self, bridge: SimulatedBridge) -> None:
        self._bridge = bridge
        self._queue: asyncio.Queue | None = None

    @property
    def url(self) -> str:
        return "sim://bridge"

    async def open(self) -> None:
        self._queue = self._bridge.attach()

    async def frames(self) -> AsyncIterator[str | bytes]:
        if self._queue is None:
            raise RuntimeError("SimulatorTransport.frames() called before open()")
        queue = self._queue
        while True:
            frame = await queue.get()
            if frame is None:
                return
            yield frame

    async def close(self) -> None:
        if self._queue is not None:
            self._bridge.detach(self._queue)
            self._queue.put_nowait(None)
            self._queue = None
