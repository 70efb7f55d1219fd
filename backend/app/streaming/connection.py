"""Connection manager: owns the single data-plane connection and fans frames out."""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from .interface import DiagnosticSink, DisconnectPolicy, StreamTransport
from .models import (
    ConnectionState,
    ConnectionStatus,
    DiagnosticEvent,
    DiagnosticKind,
    StreamMessage,
)
from .registry import SubscriberRegistry

logger = logging.getLogger(__name__)


class NoReconnectPolicy(DisconnectPolicy):
    """Default policy: stay closed until someone calls connect() again."""

    def on_disconnect(self, manager: ConnectionManager, error: BaseException | None) -> None:
        if error is None:
            logger.info("Stream closed; reconnection is left to the caller")
        else:
            logger.warning("Stream lost (%s); reconnection is left to the caller", error)


@dataclass
class _Connection:
    id: int
    transport: StreamTransport
    connected_at: float | None = None
    reader: asyncio.Task | None = None


class ConnectionManager:
    """Owns at most one live data-plane connection.

    State machine:
        DISCONNECTED --connect()--> CONNECTING --open ok--> CONNECTED
        CONNECTING/CONNECTED --transport close/error--> CLOSED (reference cleared)
        CLOSED --connect()--> CONNECTING (fresh transport)

    Every decoded frame becomes a StreamMessage and is dispatched synchronously
    to the SubscriberRegistry. The manager itself keeps no messages.

    Lifecycle:
        manager = ConnectionManager(lambda: WebSocketTransport(url), registry)
        await manager.connect()
        # ... frames flow to registry subscribers ...
        await manager.close()   # application shutdown
    """

    def __init__(
        self,
        transport_factory: Callable[[], StreamTransport],
        registry: SubscriberRegistry,
        diagnostics: DiagnosticSink | None = None,
        disconnect_policy: DisconnectPolicy | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._transport_factory = transport_factory
        self._registry = registry
        self._diagnostics = diagnostics
        self._policy = disconnect_policy or NoReconnectPolicy()
        self._clock = clock

        self._connection: _Connection | None = None
        self._state = ConnectionState.DISCONNECTED
        self._url: str | None = None
        self._last_error: str | None = None
        self._messages_received = 0
        self._sequence = itertools.count(1)  # Shared across reconnects
        self._connection_ids = itertools.count(1)

    # --- Public API ---

    @property
    def status(self) -> ConnectionStatus:
        connection = self._connection
        return ConnectionStatus(
            state=self._state,
            url=self._url,
            connection_id=connection.id if connection else None,
            connected_at=connection.connected_at if connection else None,
            messages_received=self._messages_received,
            last_error=self._last_error,
        )

    @property
    def registry(self) -> SubscriberRegistry:
        return self._registry

    async def connect(self) -> None:
        """Open the connection unless one already exists (idempotent).

        A failed open leaves the manager CLOSED and is reported through the
        diagnostic sink and the disconnect policy rather than raised.
        """
        if self._connection is not None:
            logger.debug("Connection %d already exists, skipping connect", self._connection.id)
            return

        connection = _Connection(id=next(self._connection_ids), transport=self._transport_factory())
        # Claim the slot before the first await so a concurrent connect() is a no-op
        self._connection = connection
        self._state = ConnectionState.CONNECTING
        self._url = connection.transport.url
        logger.info("Opening stream connection %d to %s", connection.id, self._url)

        try:
            await connection.transport.open()
        except Exception as e:
            logger.error("Stream connection %d to %s failed: %s", connection.id, self._url, e)
            await self._safe_close(connection)
            if self._connection is connection:
                self._teardown(e)
            return

        if self._connection is not connection:
            # Shut down while we were opening
            await self._safe_close(connection)
            return

        connection.connected_at = self._clock()
        self._state = ConnectionState.CONNECTED
        self._last_error = None
        connection.reader = asyncio.create_task(
            self._read_loop(connection), name=f"stream-reader-{connection.id}"
        )
        logger.info("Stream connection %d established", connection.id)

    def on_frame(self, raw: str | bytes) -> StreamMessage | None:
        """Decode one inbound frame and fan it out. Undecodable frames are dropped."""
        try:
            text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
            payload = json.loads(text)
        except (UnicodeDecodeError, ValueError, RecursionError) as e:
            # RecursionError: pathologically nested JSON
            logger.warning("Dropping undecodable frame: %s", e)
            self._record(DiagnosticKind.DECODE_ERROR, f"{type(e).__name__}: {e}")
            return None

        message = StreamMessage(sequence=next(self._sequence), payload=payload, received_at=self._clock())
        self._messages_received += 1
        self._registry.dispatch(message)
        return message

    def on_close(self) -> None:
        """Transport closed cleanly."""
        if self._connection is None:
            return
        logger.info("Stream connection %d closed by peer", self._connection.id)
        self._teardown(None)

    def on_error(self, error: BaseException) -> None:
        """Transport failed."""
        if self._connection is None:
            return
        logger.error("Stream connection %d error: %s", self._connection.id, error)
        self._teardown(error)

    async def close(self) -> None:
        """Shut the connection down for good (application shutdown). Safe to call repeatedly.

        Does not consult the disconnect policy.
        """
        connection = self._connection
        if connection is None:
            return
        self._connection = None
        self._state = ConnectionState.CLOSED

        if connection.reader and not connection.reader.done():
            connection.reader.cancel()
            try:
                await connection.reader
            except asyncio.CancelledError:
                pass
        await self._safe_close(connection)
        logger.info("Stream connection %d shut down", connection.id)

    # --- Internal ---

    async def _read_loop(self, connection: _Connection) -> None:
        try:
            async for raw in connection.transport.frames():
                self.on_frame(raw)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._connection is connection:
                self.on_error(e)
        else:
            if self._connection is connection:
                self.on_close()
        finally:
            await self._safe_close(connection)

    def _teardown(self, error: BaseException | None) -> None:
        connection, self._connection = self._connection, None
        if connection and connection.reader and not connection.reader.done():
            if connection.reader is not asyncio.current_task():
                connection.reader.cancel()
        self._state = ConnectionState.CLOSED
        if error is not None:
            self._last_error = f"{type(error).__name__}: {error}"
            self._record(DiagnosticKind.TRANSPORT_ERROR, self._last_error)
        self._policy.on_disconnect(self, error)

    async def _safe_close(self, connection: _Connection) -> None:
        try:
            await connection.transport.close()
        except Exception:
            logger.exception("Error closing stream connection %d", connection.id)

    def _record(self, kind: DiagnosticKind, detail: str) -> None:
        if self._diagnostics is not None:
            self._diagnostics.record(DiagnosticEvent(kind=kind, detail=detail))
