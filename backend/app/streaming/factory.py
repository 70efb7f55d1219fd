"""Factory for wiring the stream services from environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from .buffer import DEFAULT_CAPACITY, MessageBuffer
from .connection import ConnectionManager
from .controller import SubscriptionController
from .diagnostics import DiagnosticLog
from .interface import DisconnectPolicy
from .registry import SubscriberRegistry, Subscription

if TYPE_CHECKING:
    from .simulator import SimulatedBridge

logger = logging.getLogger(__name__)

DEFAULT_STREAM_PORT = 8890
DEFAULT_API_PORT = 8891
DEFAULT_API_PREFIX = "/v1"


@dataclass
class StreamServices:
    """Everything the app needs, built once at startup and passed by reference."""

    registry: SubscriberRegistry
    diagnostics: DiagnosticLog
    buffer: MessageBuffer
    buffer_subscription: Subscription
    manager: ConnectionManager
    controller: SubscriptionController
    simulator: SimulatedBridge | None = None

    async def start(self) -> None:
        if self.simulator is not None:
            await self.simulator.start()
        await self.manager.connect()

    async def stop(self) -> None:
        await self.manager.close()
        await self.controller.aclose()
        if self.simulator is not None:
            await self.simulator.stop()


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %d", name, raw, default)
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def create_stream_services(disconnect_policy: DisconnectPolicy | None = None) -> StreamServices:
    """Build the stream services based on environment variables.

    - BRIDGE_HOST set and non-empty → WebSocket data plane at
      ws://BRIDGE_HOST:BRIDGE_STREAM_PORT and control plane at
      http://BRIDGE_HOST:BRIDGE_API_PORT/v1
    - Otherwise → in-process SimulatedBridge for both planes

    The message buffer is subscribed immediately; the connection is not opened
    until StreamServices.start().
    """
    host = os.environ.get("BRIDGE_HOST", "").strip()
    capacity = _env_int("STREAM_BUFFER_CAPACITY", DEFAULT_CAPACITY)
    stringify_orders = _env_bool("BRIDGE_ORDERS_STRINGIFY", True)

    diagnostics = DiagnosticLog()
    registry = SubscriberRegistry(diagnostics=diagnostics)
    buffer = MessageBuffer(capacity=capacity)
    buffer_subscription = registry.subscribe(buffer)

    simulator: SimulatedBridge | None = None
    if host:
        from .transport import WebSocketTransport

        stream_url = f"ws://{host}:{_env_int('BRIDGE_STREAM_PORT', DEFAULT_STREAM_PORT)}"
        prefix = os.environ.get("BRIDGE_API_PREFIX", DEFAULT_API_PREFIX).strip() or DEFAULT_API_PREFIX
        api_url = f"http://{host}:{_env_int('BRIDGE_API_PORT', DEFAULT_API_PORT)}{prefix}"

        logger.info("Stream source: bridge at %s (control plane %s)", stream_url, api_url)
        transport_factory = lambda: WebSocketTransport(stream_url)  # noqa: E731
        controller = SubscriptionController(api_url, stringify_order_flag=stringify_orders)
    else:
        from .sim_control import create_control_app
        from .simulator import SimulatedBridge, SimulatorTransport

        logger.info("Stream source: simulated bridge")
        simulator = SimulatedBridge()
        transport_factory = lambda: SimulatorTransport(simulator)  # noqa: E731
        api_url = f"http://simulator{DEFAULT_API_PREFIX}"
        controller = SubscriptionController(
            api_url,
            transport=httpx.ASGITransport(app=create_control_app(simulator)),
            stringify_order_flag=stringify_orders,
        )

    manager = ConnectionManager(
        transport_factory,
        registry,
        diagnostics=diagnostics,
        disconnect_policy=disconnect_policy,
    )
    return StreamServices(
        registry=registry,
        diagnostics=diagnostics,
        buffer=buffer,
        buffer_subscription=buffer_subscription,
        manager=manager,
        controller=controller,
        simulator=simulator,
    )
