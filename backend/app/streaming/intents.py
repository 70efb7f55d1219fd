"""Subscription intents: validated requests to change what the bridge streams.

Each intent maps to exactly one control-plane request. Intents are built from
the raw text the dashboard forms collect:

    PricesIntent.from_text(" eurusd , , gbpusd ")   -> symbols ("EURUSD", "GBPUSD")
    OhlcIntent.from_text("M1,EURUSD,5|M5,GBPUSD,10")
    MarketBookIntent.from_text("EURUSD, USDJPY")
    OrdersIntent(enabled=True)
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import ClassVar

from .models import ChannelKind

DEFAULT_OHLC_DEPTH = 5

OHLC_FORMAT_HINT = "Use: M1,EURUSD,5|M5,GBPUSD,10"

_LEADING_INT = re.compile(r"\s*[+-]?\d+")


class MalformedIntentError(ValueError):
    """Raised when form input cannot be turned into an intent."""


def normalize_symbols(symbols: Iterable[str]) -> tuple[str, ...]:
    """Trim and uppercase each symbol, dropping empties. Order and duplicates are kept."""
    normalized = (symbol.strip().upper() for symbol in symbols)
    return tuple(symbol for symbol in normalized if symbol)


def _parse_depth(raw: object) -> int:
    """Leading integer of ``raw`` (``"10abc"`` -> 10, ``"12.7"`` -> 12), else the default."""
    match = _LEADING_INT.match(str(raw))
    if match is None:
        return DEFAULT_OHLC_DEPTH
    depth = int(match.group())
    # A zero or negative depth asks the bridge for nothing
    return depth if depth >= 1 else DEFAULT_OHLC_DEPTH


@dataclass(frozen=True, slots=True)
class OhlcEntry:
    time_frame: str
    symbol: str
    depth: int = DEFAULT_OHLC_DEPTH

    def to_dict(self) -> dict:
        return {"time_frame": self.time_frame, "symbol": self.symbol, "depth": self.depth}


def parse_ohlc(text: str, entry_delimiter: str = "|", field_delimiter: str = ",") -> tuple[OhlcEntry, ...]:
    """Parse ``timeframe,symbol,depth`` entries separated by ``entry_delimiter``.

    All-or-nothing: one malformed entry rejects the whole submission, so a
    partial list is never sent to the bridge.
    """
    entries: list[OhlcEntry] = []
    for position, chunk in enumerate(text.split(entry_delimiter), start=1):
        if not chunk.strip():
            continue
        fields = [part.strip() for part in chunk.split(field_delimiter)]
        if len(fields) != 3:
            raise MalformedIntentError(
                f"Invalid OHLC entry #{position} {chunk.strip()!r}: expected "
                f"timeframe,symbol,depth but got {len(fields)} field(s). {OHLC_FORMAT_HINT}"
            )
        time_frame, symbol, depth = fields
        if not time_frame or not symbol:
            raise MalformedIntentError(
                f"Invalid OHLC entry #{position} {chunk.strip()!r}: time frame and symbol are required. "
                f"{OHLC_FORMAT_HINT}"
            )
        entries.append(OhlcEntry(time_frame=time_frame, symbol=symbol.upper(), depth=_parse_depth(depth)))
    return tuple(entries)


@dataclass(frozen=True, slots=True)
class PricesIntent:
    symbols: tuple[str, ...] = ()

    kind: ClassVar[ChannelKind] = ChannelKind.PRICES

    @classmethod
    def from_text(cls, text: str, delimiter: str = ",") -> PricesIntent:
        return cls(symbols=normalize_symbols(text.split(delimiter)))

    @classmethod
    def from_symbols(cls, symbols: Iterable[str]) -> PricesIntent:
        return cls(symbols=normalize_symbols(symbols))

    def to_body(self) -> dict:
        return {"symbols": list(self.symbols)}


@dataclass(frozen=True, slots=True)
class MarketBookIntent:
    symbols: tuple[str, ...] = ()

    kind: ClassVar[ChannelKind] = ChannelKind.MARKET_BOOK

    @classmethod
    def from_text(cls, text: str, delimiter: str = ",") -> MarketBookIntent:
        return cls(symbols=normalize_symbols(text.split(delimiter)))

    @classmethod
    def from_symbols(cls, symbols: Iterable[str]) -> MarketBookIntent:
        return cls(symbols=normalize_symbols(symbols))

    def to_body(self) -> dict:
        return {"symbols": list(self.symbols)}


@dataclass(frozen=True, slots=True)
class OhlcIntent:
    entries: tuple[OhlcEntry, ...] = ()

    kind: ClassVar[ChannelKind] = ChannelKind.OHLC

    @classmethod
    def from_text(cls, text: str) -> OhlcIntent:
        return cls(entries=parse_ohlc(text))

    @classmethod
    def from_entries(cls, entries: Iterable[tuple]) -> OhlcIntent:
        """Build from ``(time_frame, symbol[, depth])`` tuples. Depth defaults to 5."""
        parsed = []
        for entry in entries:
            if len(entry) not in (2, 3):
                raise MalformedIntentError(f"Invalid OHLC entry {entry!r}. {OHLC_FORMAT_HINT}")
            time_frame, symbol = str(entry[0]).strip(), str(entry[1]).strip().upper()
            if not time_frame or not symbol:
                raise MalformedIntentError(f"Invalid OHLC entry {entry!r}: time frame and symbol are required.")
            depth = _parse_depth(entry[2]) if len(entry) == 3 else DEFAULT_OHLC_DEPTH
            parsed.append(OhlcEntry(time_frame=time_frame, symbol=symbol, depth=depth))
        return cls(entries=tuple(parsed))

    def to_body(self) -> dict:
        return {"ohlc": [entry.to_dict() for entry in self.entries]}


@dataclass(frozen=True, slots=True)
class OrdersIntent:
    enabled: bool = True

    kind: ClassVar[ChannelKind] = ChannelKind.ORDERS

    def to_body(self, stringify: bool = True) -> dict:
        """The bridge expects ``"true"``/``"false"``; pass ``stringify=False`` for a JSON boolean."""
        if stringify:
            return {"enabled": "true" if self.enabled else "false"}
        return {"enabled": self.enabled}


SubscriptionIntent = PricesIntent | OhlcIntent | MarketBookIntent | OrdersIntent
