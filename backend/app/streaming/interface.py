"""Abstract seams of the stream multiplexer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from .models import DiagnosticEvent

if TYPE_CHECKING:
    from .connection import ConnectionManager


class StreamTransport(ABC):
    """One push connection to the bridge's data plane.

    The ConnectionManager creates a fresh transport for every connection it
    opens and drives it like this:

        transport = transport_factory()
        await transport.open()
        async for frame in transport.frames():
            ...
        await transport.close()

    Transports are receive-only. Nothing is ever sent on the data plane.
    """

    @property
    @abstractmethod
    def url(self) -> str:
        """Address this transport connects to (for status display)."""

    @abstractmethod
    async def open(self) -> None:
        """Establish the connection. Raises on failure."""

    @abstractmethod
    def frames(self) -> AsyncIterator[str | bytes]:
        """Yield raw inbound frames in arrival order.

        Iteration ends when the peer closes cleanly and raises when the
        transport fails.
        """

    @abstractmethod
    async def close(self) -> None:
        """Release the connection. Safe to call multiple times."""


class DisconnectPolicy(ABC):
    """Decides what happens after the data-plane connection goes away.

    Called after the manager has already moved to CLOSED and dropped its
    connection reference, so scheduling ``manager.connect()`` from here opens
    a fresh one. Not called when the application itself shuts the manager down.
    """

    @abstractmethod
    def on_disconnect(self, manager: ConnectionManager, error: BaseException | None) -> None:
        """``error`` is None for a clean close."""


class DiagnosticSink(ABC):
    """Receives decode errors, subscriber faults and transport errors."""

    @abstractmethod
    def record(self, event: DiagnosticEvent) -> None:
        """Must not raise."""
