"""Tests for SubscriberRegistry."""

import random

from fakes import RecordingSink

from app.streaming.models import StreamMessage
from app.streaming.registry import SubscriberRegistry


def _message(sequence: int) -> StreamMessage:
    return StreamMessage(sequence=sequence, payload={}, received_at=0.0)


class TestSubscriberRegistry:
    """Unit tests for subscriber fan-out."""

    def test_every_subscriber_receives_every_message(self):
        """Test basic fan-out."""
        registry = SubscriberRegistry()
        a, b = [], []
        registry.subscribe(a.append)
        registry.subscribe(b.append)

        assert registry.dispatch(_message(1)) == 2
        assert [m.sequence for m in a] == [1]
        assert [m.sequence for m in b] == [1]

    def test_unsubscribe_stops_delivery(self):
        """Test that an unsubscribed callback gets nothing further."""
        registry = SubscriberRegistry()
        received = []
        handle = registry.subscribe(received.append)
        registry.dispatch(_message(1))
        registry.unsubscribe(handle)
        registry.dispatch(_message(2))
        assert [m.sequence for m in received] == [1]

    def test_unsubscribe_is_idempotent(self):
        """Test that removing a handle twice is a no-op."""
        registry = SubscriberRegistry()
        handle = registry.subscribe(lambda m: None)
        registry.unsubscribe(handle)
        registry.unsubscribe(handle)  # Should not raise
        handle.unsubscribe()  # Should not raise
        assert len(registry) == 0

    def test_handle_active(self):
        """Test the handle's active flag."""
        registry = SubscriberRegistry()
        handle = registry.subscribe(lambda m: None)
        assert handle.active
        handle.unsubscribe()
        assert not handle.active

    def test_same_callback_twice_gets_two_handles(self):
        """Test that each subscribe() call is independent."""
        registry = SubscriberRegistry()
        received = []
        first = registry.subscribe(received.append)
        registry.subscribe(received.append)
        registry.dispatch(_message(1))
        assert len(received) == 2

        first.unsubscribe()
        registry.dispatch(_message(2))
        assert len(received) == 3

    def test_failing_subscriber_is_isolated(self):
        """A subscriber that raises on N does not block N for others, nor N+1 for anyone."""
        sink = RecordingSink()
        registry = SubscriberRegistry(diagnostics=sink)
        good, flaky_calls = [], []

        def flaky(message):
            flaky_calls.append(message.sequence)
            if message.sequence == 1:
                raise RuntimeError("render failed")

        registry.subscribe(flaky)
        registry.subscribe(good.append)

        assert registry.dispatch(_message(1)) == 1
        assert registry.dispatch(_message(2)) == 2
        assert [m.sequence for m in good] == [1, 2]
        assert flaky_calls == [1, 2]
        assert sink.kinds() == ["subscriber_error"]
        assert sink.events[0].sequence == 1
        assert "render failed" in sink.events[0].detail

    def test_failure_without_sink(self):
        """Test that faults are still isolated with no diagnostic sink."""
        registry = SubscriberRegistry()
        received = []
        registry.subscribe(lambda m: 1 / 0)
        registry.subscribe(received.append)
        registry.dispatch(_message(1))
        assert len(received) == 1

    def test_subscribe_during_dispatch_sees_next_message(self):
        """Test that a subscriber added mid-dispatch misses the current message."""
        registry = SubscriberRegistry()
        late = []

        def adder(message):
            if message.sequence == 1:
                registry.subscribe(late.append)

        registry.subscribe(adder)
        registry.dispatch(_message(1))
        assert late == []
        registry.dispatch(_message(2))
        assert [m.sequence for m in late] == [2]

    def test_unsubscribe_during_dispatch(self):
        """Test that unsubscribing from inside a callback does not corrupt fan-out."""
        registry = SubscriberRegistry()
        received = []
        handles = []

        def remover(message):
            for handle in handles:
                registry.unsubscribe(handle)

        registry.subscribe(remover)
        handles.append(registry.subscribe(received.append))

        # Registered when dispatch started, so it still gets this one
        registry.dispatch(_message(1))
        registry.dispatch(_message(2))
        assert [m.sequence for m in received] == [1]

    def test_random_interleaving(self):
        """Subscribers registered at dispatch time get exactly one call; later ones get none."""
        rng = random.Random(1234)
        registry = SubscriberRegistry()
        calls: dict[int, list[int]] = {}
        active: dict[int, object] = {}
        expected: dict[int, list[int]] = {}
        next_id = 0
        sequence = 0

        for _ in range(500):
            op = rng.random()
            if op < 0.35:
                sid = next_id
                next_id += 1
                calls[sid] = []
                expected[sid] = []
                active[sid] = registry.subscribe(lambda m, sid=sid: calls[sid].append(m.sequence))
            elif op < 0.55 and active:
                sid = rng.choice(list(active))
                registry.unsubscribe(active.pop(sid))
            else:
                sequence += 1
                for sid in active:
                    expected[sid].append(sequence)
                registry.dispatch(_message(sequence))

        assert calls == expected

    def test_len_and_contains(self):
        """Test membership helpers."""
        registry = SubscriberRegistry()
        handle = registry.subscribe(lambda m: None)
        assert len(registry) == 1
        assert handle in registry
        handle.unsubscribe()
        assert handle not in registry
