"""Default diagnostic sink: log, count, and keep the most recent events."""

from __future__ import annotations

import logging
from collections import Counter, deque

from .interface import DiagnosticSink
from .models import DiagnosticEvent, DiagnosticKind

logger = logging.getLogger(__name__)


class DiagnosticLog(DiagnosticSink):
    """Logs every event and keeps the last ``maxlen`` for the status endpoint."""

    def __init__(self, maxlen: int = 50) -> None:
        self._events: deque[DiagnosticEvent] = deque(maxlen=maxlen)
        self._counts: Counter[DiagnosticKind] = Counter()

    def record(self, event: DiagnosticEvent) -> None:
        self._events.append(event)
        self._counts[event.kind] += 1
        logger.warning("Stream diagnostic [%s]: %s", event.kind.value, event.detail)

    def recent(self) -> list[DiagnosticEvent]:
        """Retained events, oldest first."""
        return list(self._events)

    def counts(self) -> dict[str, int]:
        return {kind.value: self._counts.get(kind, 0) for kind in DiagnosticKind}

    def to_dict(self) -> dict:
        return {
            "counts": self.counts(),
            "recent": [event.to_dict() for event in self._events],
        }
