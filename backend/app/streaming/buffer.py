"""Bounded in-memory log of the most recent stream messages."""

from __future__ import annotations

from collections import deque
from threading import Lock

from .models import StreamMessage

DEFAULT_CAPACITY = 100


class MessageBuffer:
    """Keeps the newest ``capacity`` messages, newest first.

    Instances are callable so they can be registered directly with a
    SubscriberRegistry. Readers always get a snapshot, never the live deque.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._messages: deque[StreamMessage] = deque(maxlen=capacity)
        self._lock = Lock()
        self._version: int = 0  # Bumped on every append or clear

    def __call__(self, message: StreamMessage) -> None:
        self.append(message)

    def append(self, message: StreamMessage) -> None:
        """Insert at the front; the oldest message falls off the back on overflow."""
        with self._lock:
            self._messages.appendleft(message)
            self._version += 1

    def snapshot(self) -> tuple[StreamMessage, ...]:
        """All retained messages, newest first."""
        with self._lock:
            return tuple(self._messages)

    def latest(self) -> StreamMessage | None:
        with self._lock:
            return self._messages[0] if self._messages else None

    def since(self, sequence: int) -> list[StreamMessage]:
        """Retained messages with a sequence above ``sequence``, oldest first."""
        with self._lock:
            newer = [message for message in self._messages if message.sequence > sequence]
        newer.reverse()
        return newer

    def clear(self) -> int:
        """Drop every retained message. Returns how many were dropped."""
        with self._lock:
            dropped = len(self._messages)
            self._messages.clear()
            self._version += 1
            return dropped

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def version(self) -> int:
        """Current version counter. Useful for SSE change detection."""
        return self._version

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)
