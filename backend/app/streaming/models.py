"""Data models for the stream multiplexer."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


class ChannelKind(str, Enum):
    """Independent subscription categories on the bridge."""

    PRICES = "prices"
    OHLC = "ohlc"
    MARKET_BOOK = "mbook"
    ORDERS = "orders"


class DiagnosticKind(str, Enum):
    DECODE_ERROR = "decode_error"
    SUBSCRIBER_ERROR = "subscriber_error"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True, slots=True)
class StreamMessage:
    """One decoded inbound frame. Immutable once created."""

    sequence: int
    payload: Any
    received_at: float = field(default_factory=time.time)  # Unix seconds

    def to_dict(self) -> dict:
        """Serialize for JSON / SSE transmission."""
        return {
            "sequence": self.sequence,
            "received_at": self.received_at,
            "payload": self.payload,
        }


@dataclass(frozen=True, slots=True)
class ConnectionStatus:
    """Read-only view of the data-plane connection at a point in time."""

    state: ConnectionState
    url: str | None = None
    connection_id: int | None = None
    connected_at: float | None = None
    messages_received: int = 0
    last_error: str | None = None

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "connected": self.is_connected,
            "url": self.url,
            "connection_id": self.connection_id,
            "connected_at": self.connected_at,
            "messages_received": self.messages_received,
            "last_error": self.last_error,
        }


@dataclass(frozen=True, slots=True)
class ControlResult:
    """Outcome of one control-plane request.

    A failure carries a human-readable ``reason``. It never implies anything
    about the data-plane connection, which is reported separately.
    """

    channel: ChannelKind
    ok: bool
    reason: str | None = None
    status_code: int | None = None
    body: str | None = None
    completed_at: float = field(default_factory=time.time)

    @classmethod
    def success(cls, channel: ChannelKind, status_code: int, body: str | None = None) -> ControlResult:
        return cls(channel=channel, ok=True, status_code=status_code, body=body)

    @classmethod
    def failure(cls, channel: ChannelKind, reason: str, status_code: int | None = None) -> ControlResult:
        return cls(channel=channel, ok=False, reason=reason, status_code=status_code)

    def to_dict(self) -> dict:
        return {
            "channel": self.channel.value,
            "ok": self.ok,
            "reason": self.reason,
            "status_code": self.status_code,
            "body": self.body,
            "completed_at": self.completed_at,
        }


@dataclass(frozen=True, slots=True)
class DiagnosticEvent:
    """A dropped frame, a failing subscriber, or a transport fault."""

    kind: DiagnosticKind
    detail: str
    sequence: int | None = None  # Message being dispatched, if any
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "detail": self.detail,
            "sequence": self.sequence,
            "timestamp": self.timestamp,
        }
