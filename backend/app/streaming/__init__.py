"""Real-time stream multiplexer for the trading dashboard.

Public API:
    StreamMessage        - Immutable decoded inbound frame
    MessageBuffer        - Bounded newest-first message log
    SubscriberRegistry   - Fan-out of messages to independent consumers
    ConnectionManager    - Owner of the single data-plane connection
    SubscriptionController - Control-plane client for /track/* requests
    PricesIntent, OhlcIntent, MarketBookIntent, OrdersIntent - Subscription intents
    create_stream_services - Factory that selects the bridge or the simulator
    create_stream_router - FastAPI router factory for the dashboard endpoints
"""

from .buffer import MessageBuffer
from .connection import ConnectionManager, NoReconnectPolicy
from .controller import SubscriptionController
from .factory import StreamServices, create_stream_services
from .intents import (
    MalformedIntentError,
    MarketBookIntent,
    OhlcEntry,
    OhlcIntent,
    OrdersIntent,
    PricesIntent,
)
from .interface import DiagnosticSink, DisconnectPolicy, StreamTransport
from .models import ChannelKind, ConnectionState, ConnectionStatus, ControlResult, StreamMessage
from .registry import SubscriberRegistry, Subscription
from .stream import create_stream_router

__all__ = [
    "StreamMessage",
    "ConnectionState",
    "ConnectionStatus",
    "ChannelKind",
    "ControlResult",
    "MessageBuffer",
    "SubscriberRegistry",
    "Subscription",
    "ConnectionManager",
    "NoReconnectPolicy",
    "SubscriptionController",
    "MalformedIntentError",
    "PricesIntent",
    "OhlcEntry",
    "OhlcIntent",
    "MarketBookIntent",
    "OrdersIntent",
    "StreamTransport",
    "DisconnectPolicy",
    "DiagnosticSink",
    "StreamServices",
    "create_stream_services",
    "create_stream_router",
]
