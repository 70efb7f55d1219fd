"""Subscriber registry: every registered callback receives every message."""

from __future__ import annotations

import logging
from collections.abc import Callable

from .interface import DiagnosticSink
from .models import DiagnosticEvent, DiagnosticKind, StreamMessage

logger = logging.getLogger(__name__)

Subscriber = Callable[[StreamMessage], None]


class Subscription:
    """Handle returned by SubscriberRegistry.subscribe()."""

    __slots__ = ("_registry", "callback")

    def __init__(self, registry: SubscriberRegistry, callback: Subscriber) -> None:
        self._registry = registry
        self.callback = callback

    @property
    def active(self) -> bool:
        return self in self._registry

    def unsubscribe(self) -> None:
        self._registry.unsubscribe(self)

    def __repr__(self) -> str:
        name = getattr(self.callback, "__qualname__", type(self.callback).__name__)
        return f"<Subscription {name} active={self.active}>"


class SubscriberRegistry:
    """Set of callbacks fed by the ConnectionManager.

    Membership is independent of the connection: subscribing never opens it and
    unsubscribing never closes it. A callback that raises is logged and
    reported to the diagnostic sink; the remaining callbacks still run.
    """

    def __init__(self, diagnostics: DiagnosticSink | None = None) -> None:
        # Keyed by handle identity so the same callable can be registered twice
        self._subscriptions: dict[Subscription, Subscriber] = {}
        self._diagnostics = diagnostics

    def subscribe(self, callback: Subscriber) -> Subscription:
        handle = Subscription(self, callback)
        self._subscriptions[handle] = callback
        logger.debug("Subscriber added (%d total)", len(self._subscriptions))
        return handle

    def unsubscribe(self, handle: Subscription) -> None:
        """Remove a subscription. Unknown or already removed handles are ignored."""
        if self._subscriptions.pop(handle, None) is not None:
            logger.debug("Subscriber removed (%d total)", len(self._subscriptions))

    def dispatch(self, message: StreamMessage) -> int:
        """Deliver ``message`` to every current subscriber. Returns the number that succeeded.

        Iterates a snapshot, so callbacks may subscribe or unsubscribe freely;
        a subscriber added during dispatch first sees the next message.
        """
        delivered = 0
        for handle, callback in list(self._subscriptions.items()):
            try:
                callback(message)
                delivered += 1
            except Exception as e:
                logger.exception("Subscriber %r failed on message %d", handle, message.sequence)
                if self._diagnostics is not None:
                    self._diagnostics.record(
                        DiagnosticEvent(
                            kind=DiagnosticKind.SUBSCRIBER_ERROR,
                            detail=f"{type(e).__name__}: {e}",
                            sequence=message.sequence,
                        )
                    )
        return delivered

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __contains__(self, handle: object) -> bool:
        return handle in self._subscriptions
