"""WebSocket transport for the bridge's data plane."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import websockets

from .interface import StreamTransport

logger = logging.getLogger(__name__)


class WebSocketTransport(StreamTransport):
    """StreamTransport over a plain ``ws://`` connection (default port 8890).

    Clean closes end ``frames()``; abnormal closes surface as
    ``websockets.exceptions.ConnectionClosedError``.
    """

    def __init__(self, url: str, open_timeout: float | None = None) -> None:
        self._url = url
        self._open_timeout = open_timeout
        self._ws: Any = None

    @property
    def url(self) -> str:
        return self._url

    async def open(self) -> None:
        self._ws = await websockets.connect(self._url, open_timeout=self._open_timeout)
        logger.info("WebSocket connected to %s", self._url)

    async def frames(self) -> AsyncIterator[str | bytes]:
        if self._ws is None:
            raise RuntimeError("WebSocketTransport.frames() called before open()")
        async for frame in self._ws:
            yield frame

    async def close(self) -> None:
        if self._ws is not None:
            ws, self._ws = self._ws, None
            await ws.close()
            logger.info("WebSocket to %s closed", self._url)
