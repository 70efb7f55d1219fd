"""Fixtures for stream multiplexer tests."""

import pytest

from fakes import FakeTransport, RecordingPolicy, RecordingSink


@pytest.fixture
def transports():
    """Every FakeTransport handed out by ``transport_factory``, in order."""
    return []


@pytest.fixture
def transport_factory(transports):
    def factory():
        transport = FakeTransport()
        transports.append(transport)
        return transport

    return factory


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def policy():
    return RecordingPolicy()
