"""Pytest configuration and shared fixtures."""

from typing import Any

import pytest

from portal_client.protocol.names import REQUEST_INTERFACE, RESPONSE_SIGNAL, SCREENCAST_INTERFACE
from portal_client.transport import MockBusConnection, SignalMessage


def build_response_signal(path: str, status: int, results: Any) -> SignalMessage:
    """Build a Request::Response signal as the portal would emit it."""
    return SignalMessage(
        path=path,
        interface=REQUEST_INTERFACE,
        member=RESPONSE_SIGNAL,
        body=(status, results),
    )


@pytest.fixture
def response_signal():
    """Factory for Request::Response signals."""
    return build_response_signal


@pytest.fixture
def connection() -> MockBusConnection:
    """Mock connection answering CreateSession with request path /r/1."""
    conn = MockBusConnection()
    conn.set_reply(SCREENCAST_INTERFACE, "CreateSession", ("/r/1",))
    conn.set_reply(REQUEST_INTERFACE, "Close", ())
    return conn
