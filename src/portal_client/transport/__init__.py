"""Bus connections: the protocol, its base class and implementations.

- sdbus: Real D-Bus connection through sd-bus
- mock: In-memory connection for testing
"""

from .base import (
    BaseBusConnection,
    BusConnection,
    ConnectionState,
    MatchRule,
    MethodCall,
    SignalMessage,
)
from .mock import MockBusConnection

__all__ = [
    "BusConnection",
    "BaseBusConnection",
    "ConnectionState",
    "MethodCall",
    "SignalMessage",
    "MatchRule",
    "MockBusConnection",
]
