"""Tests for MessageBuffer."""

import pytest

from app.streaming.buffer import MessageBuffer
from app.streaming.models import StreamMessage


def _message(sequence: int) -> StreamMessage:
    return StreamMessage(sequence=sequence, payload={"n": sequence}, received_at=float(sequence))


class TestMessageBuffer:
    """Unit tests for the bounded message log."""

    def test_newest_first(self):
        """Test that the newest message comes first."""
        buffer = MessageBuffer()
        for sequence in (1, 2, 3):
            buffer.append(_message(sequence))
        assert [m.sequence for m in buffer.snapshot()] == [3, 2, 1]

    def test_keeps_most_recent_hundred(self):
        """After 150 messages the buffer holds exactly 150..51."""
        buffer = MessageBuffer()
        for sequence in range(1, 151):
            buffer.append(_message(sequence))
        assert len(buffer) == 100
        assert [m.sequence for m in buffer.snapshot()] == list(range(150, 50, -1))

    def test_never_exceeds_capacity(self):
        """Test the capacity bound after every insert."""
        buffer = MessageBuffer(capacity=3)
        for sequence in range(1, 10):
            buffer.append(_message(sequence))
            assert len(buffer) <= 3

    def test_callable_as_subscriber(self):
        """Test that the buffer can be used directly as a callback."""
        buffer = MessageBuffer()
        buffer(_message(1))
        assert buffer.latest().sequence == 1

    def test_snapshot_is_detached(self):
        """Test that later appends do not change an earlier snapshot."""
        buffer = MessageBuffer()
        buffer.append(_message(1))
        snapshot = buffer.snapshot()
        buffer.append(_message(2))
        assert [m.sequence for m in snapshot] == [1]
        assert isinstance(snapshot, tuple)

    def test_latest_empty(self):
        """Test latest() on an empty buffer."""
        assert MessageBuffer().latest() is None

    def test_since_is_oldest_first(self):
        """Test that since() returns only newer messages in arrival order."""
        buffer = MessageBuffer()
        for sequence in range(1, 6):
            buffer.append(_message(sequence))
        assert [m.sequence for m in buffer.since(2)] == [3, 4, 5]
        assert buffer.since(5) == []

    def test_clear(self):
        """Test clearing the buffer."""
        buffer = MessageBuffer()
        buffer.append(_message(1))
        buffer.append(_message(2))
        assert buffer.clear() == 2
        assert len(buffer) == 0
        assert buffer.snapshot() == ()

    def test_version_increments(self):
        """Test that version changes on append and clear."""
        buffer = MessageBuffer()
        v0 = buffer.version
        buffer.append(_message(1))
        assert buffer.version == v0 + 1
        buffer.clear()
        assert buffer.version == v0 + 2

    def test_invalid_capacity(self):
        """Test that a capacity below one is rejected."""
        with pytest.raises(ValueError):
            MessageBuffer(capacity=0)

    def test_capacity_property(self):
        """Test the configured capacity is exposed."""
        assert MessageBuffer().capacity == 100
        assert MessageBuffer(capacity=5).capacity == 5
