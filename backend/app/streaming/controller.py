"""Subscription controller: tells the bridge which channels to emit."""

from __future__ import annotations

import logging

import httpx

from .intents import (
    MarketBookIntent,
    OhlcIntent,
    OrdersIntent,
    PricesIntent,
    SubscriptionIntent,
)
from .models import ChannelKind, ControlResult

logger = logging.getLogger(__name__)

TRACK_PATHS: dict[ChannelKind, str] = {
    ChannelKind.PRICES: "/track/prices",
    ChannelKind.OHLC: "/track/ohlc",
    ChannelKind.MARKET_BOOK: "/track/mbook",
    ChannelKind.ORDERS: "/track/orders",
}

CHANNEL_LABELS: dict[ChannelKind, str] = {
    ChannelKind.PRICES: "Prices API",
    ChannelKind.OHLC: "OHLC API",
    ChannelKind.MARKET_BOOK: "Market Book API",
    ChannelKind.ORDERS: "Orders API",
}

MAX_ERROR_TEXT = 200


def extract_error_message(response: httpx.Response, label: str = "Control") -> str:
    """Best human-readable reason from a non-2xx control-plane response.

    JSON bodies (``application/json`` or any ``+json`` type): ``message``, then
    ``error`` (string, or ``{details|message}``), then ``detail``. Text bodies
    are returned as-is, except HTML error pages (usually a missing route) and
    overly long bodies. Falls back to ``HTTP <status>``.
    """
    fallback = f"HTTP {response.status_code}"
    media_type = response.headers.get("content-type", "").split(";")[0].strip().lower()

    if media_type == "application/json" or media_type.endswith("+json"):
        try:
            data = response.json()
        except ValueError:
            return fallback
        if not isinstance(data, dict):
            return fallback
        for key in ("message", "error", "detail"):
            value = data.get(key)
            if isinstance(value, dict):
                value = value.get("details") or value.get("message")
            if value:
                return str(value)
        return fallback

    text = response.text.strip()
    if not text:
        return fallback
    lowered = text[:512].lower()
    if "<!doctype html" in lowered or "<html" in lowered:
        return f"{label} endpoint not found ({fallback}). Check that the bridge is running and the route exists."
    if len(text) > MAX_ERROR_TEXT:
        return text[:MAX_ERROR_TEXT] + "..."
    return text


class SubscriptionController:
    """Sends one control-plane POST per intent and reports the outcome.

    Failures come back as ``ControlResult.failure`` with the upstream message
    (or a connection error message); nothing is raised, nothing is retried,
    and the data-plane connection is never touched.
    """

    def __init__(
        self,
        base_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
        stringify_order_flag: bool = True,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        # No timeout: requests run until the transport completes or fails
        self._client = httpx.AsyncClient(base_url=self._base_url, transport=transport, timeout=None)
        self._stringify_order_flag = stringify_order_flag
        self._last_results: dict[ChannelKind, ControlResult] = {}

    @property
    def base_url(self) -> str:
        return self._base_url

    async def track_prices(self, intent: PricesIntent) -> ControlResult:
        return await self._post(ChannelKind.PRICES, intent.to_body())

    async def track_ohlc(self, intent: OhlcIntent) -> ControlResult:
        return await self._post(ChannelKind.OHLC, intent.to_body())

    async def track_market_book(self, intent: MarketBookIntent) -> ControlResult:
        return await self._post(ChannelKind.MARKET_BOOK, intent.to_body())

    async def track_orders(self, intent: OrdersIntent) -> ControlResult:
        return await self._post(ChannelKind.ORDERS, intent.to_body(stringify=self._stringify_order_flag))

    async def submit(self, intent: SubscriptionIntent) -> ControlResult:
        """Route any intent to its channel's request."""
        if isinstance(intent, PricesIntent):
            return await self.track_prices(intent)
        if isinstance(intent, OhlcIntent):
            return await self.track_ohlc(intent)
        if isinstance(intent, MarketBookIntent):
            return await self.track_market_book(intent)
        if isinstance(intent, OrdersIntent):
            return await self.track_orders(intent)
        raise TypeError(f"Unsupported intent: {intent!r}")

    def last_result(self, channel: ChannelKind) -> ControlResult | None:
        return self._last_results.get(channel)

    def last_results(self) -> dict[ChannelKind, ControlResult]:
        return dict(self._last_results)

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- Internal ---

    async def _post(self, channel: ChannelKind, body: dict) -> ControlResult:
        path = TRACK_PATHS[channel]
        label = CHANNEL_LABELS[channel]
        logger.info("Sending %s request to %s%s", label, self._base_url, path)
        logger.debug("Payload: %s", body)

        try:
            response = await self._client.post(path, json=body)
        except httpx.TransportError as e:
            logger.error("%s request failed: %s", label, e)
            result = ControlResult.failure(
                channel,
                f"Cannot connect to control plane at {self._base_url}. Make sure the bridge is running.",
            )
        except httpx.RequestError as e:
            # Undecodable body, redirect loop
            logger.error("%s request failed: %s", label, e)
            result = ControlResult.failure(channel, f"{label} request failed: {type(e).__name__}: {e}")
        else:
            if response.is_success:
                logger.info("%s request succeeded (%d)", label, response.status_code)
                result = ControlResult.success(channel, response.status_code, response.text)
            else:
                reason = extract_error_message(response, label)
                logger.warning("%s request rejected (%d): %s", label, response.status_code, reason)
                result = ControlResult.failure(channel, reason, response.status_code)

        self._last_results[channel] = result
        return result
